"""
Continuation query engine.

Drives the request executor in a loop: each round asks for at most one
server page of records, hands the response to a record parser, and echoes
the server's ``<continue .../>`` attributes back in the next request until
the server stops sending them or the caller's limit is reached.
"""

import logging
import threading
from typing import (
    Any, Callable, Dict, Iterable, List, Mapping, Optional, TypeVar
)

from ..core.session import Session
from ..parsing.scanner import attributes, scan_elements, section
from . import classifier
from .batcher import chunk_ids, chunk_titles
from .classifier import ErrorHandler
from .executor import RequestExecutor


logger = logging.getLogger(__name__)


T = TypeVar("T")

ListParser = Callable[[str, List[T]], None]
VectorParser = Callable[[str, Dict[str, List[T]]], None]


def continuation(text: str) -> Optional[Dict[str, str]]:
    """The continuation token set of a response, or None on the last page."""
    element = section(text, "continue")
    if element is None:
        return None
    return attributes(element) or None


def _replace_all(titles: List[str], old: str, new: str) -> None:
    for i, title in enumerate(titles):
        if title == old:
            titles[i] = new


class QueryEngine:
    """
    Paginated and batched queries on top of a RequestExecutor.

    Record parsers receive the raw response text of one page plus the
    accumulator, and append what they find. They never see continuation
    handling or batching.
    """

    def __init__(
        self,
        session: Session,
        executor: RequestExecutor,
        normalizer: Optional[Callable[[str], str]] = None,
    ):
        """
        Initialize the query engine.

        Args:
            session: Session supplying page and batch size limits
            executor: Executor used for every request
            normalizer: Title normalisation applied before batching titles
        """
        self.session = session
        self.executor = executor
        self.normalizer = normalizer

    def _query_loop(
        self,
        prefix: Optional[str],
        get_params: Mapping[str, Any],
        post_params: Optional[Mapping[str, Any]],
        limit: int,
        handle_page: Callable[[str], None],
        count: Callable[[], int],
        overrides: Optional[Mapping[str, ErrorHandler]],
        caller: str,
        cancel: Optional[threading.Event],
        deadline: Optional[float],
    ) -> int:
        params = dict(get_params)
        previous_keys: Iterable[str] = ()
        requests = 0

        while count() < limit:
            if prefix:
                remaining = limit - count()
                params[f"{prefix}limit"] = min(remaining, self.session.max_page_size)

            text = self.executor.execute(params, post_params, cancel=cancel, deadline=deadline)
            requests += 1
            classifier.check(text, overrides, caller)
            handle_page(text)

            tokens = continuation(text)
            for key in previous_keys:
                params.pop(key, None)
            if tokens is None:
                break
            params.update(tokens)
            previous_keys = tuple(tokens)

        logger.debug(f"{caller}: {count()} records in {requests} requests")
        return requests

    def list_query(
        self,
        prefix: Optional[str],
        get_params: Mapping[str, Any],
        parser: ListParser,
        post_params: Optional[Mapping[str, Any]] = None,
        limit: Optional[int] = None,
        overrides: Optional[Mapping[str, ErrorHandler]] = None,
        caller: Optional[str] = None,
        cancel: Optional[threading.Event] = None,
        deadline: Optional[float] = None,
    ) -> List[T]:
        """
        Run a paginated list query to exhaustion or ``limit``.

        Args:
            prefix: Module parameter prefix, e.g. 'rc' sets ``rclimit``;
                None for queries without a limit parameter
            get_params: Query parameters
            parser: Appends the records of one response page to the accumulator
            post_params: Optional POST parameters
            limit: Maximum records, defaults to the session's query limit
            overrides: Per-call error code handlers
            caller: Operation name for logs and error messages

        Returns:
            At most ``limit`` records in server order
        """
        limit = self.session.query_limit if limit is None else limit
        results: List[T] = []
        self._query_loop(
            prefix, get_params, post_params, limit,
            handle_page=lambda text: parser(text, results),
            count=lambda: len(results),
            overrides=overrides,
            caller=caller or get_params.get("list") or get_params.get("action") or "query",
            cancel=cancel,
            deadline=deadline,
        )
        return results[:limit]

    def vectorized_query(
        self,
        prefix: Optional[str],
        get_params: Mapping[str, Any],
        titles: Iterable[str],
        parser: VectorParser,
        post_params: Optional[Mapping[str, Any]] = None,
        limit: Optional[int] = None,
        overrides: Optional[Mapping[str, ErrorHandler]] = None,
        caller: Optional[str] = None,
        cancel: Optional[threading.Event] = None,
        deadline: Optional[float] = None,
    ) -> List[List[T]]:
        """
        Run one query per batch of titles and return one result list per input title.

        The server answers in sorted batch order and may rename titles
        (normalisation) or substitute redirect targets. A working copy of the
        input list is rewritten from the response's ``<normalized>`` and,
        when redirects are resolved, ``<redirects>`` blocks; results keyed by
        the server's title are then projected back onto input positions.

        Note:
            Two distinct inputs that normalise to the same title both receive
            that title's results.

        Args:
            prefix: Module parameter prefix for the per-request limit, or None
            get_params: Query parameters (without ``titles``)
            titles: Input titles in caller order, duplicates allowed
            parser: Fills a title -> records mapping from one response page
            post_params: Optional extra POST parameters
            limit: Maximum records per batch, defaults to the session's query limit

        Returns:
            A list aligned with ``titles``
        """
        titles = list(titles)
        working = [self.normalizer(t) for t in titles] if self.normalizer else list(titles)
        limit = self.session.query_limit if limit is None else limit
        caller = caller or get_params.get("prop") or "query"
        resolve_redirects = self.session.resolve_redirects
        results: Dict[str, List[T]] = {}

        def handle_page(text: str) -> None:
            self._apply_renames(text, working, resolve_redirects)
            parser(text, results)

        for batch in chunk_titles(working, self.session.slowmax):
            post = dict(post_params or {})
            post["titles"] = batch
            batch_start = sum(len(v) for v in results.values())
            self._query_loop(
                prefix, get_params, post, limit,
                handle_page=handle_page,
                count=lambda: sum(len(v) for v in results.values()) - batch_start,
                overrides=overrides,
                caller=caller,
                cancel=cancel,
                deadline=deadline,
            )

        return [list(results.get(title, [])) for title in working]

    def id_query(
        self,
        prefix: Optional[str],
        get_params: Mapping[str, Any],
        id_param: str,
        ids: Iterable[int],
        parser: ListParser,
        limit: Optional[int] = None,
        overrides: Optional[Mapping[str, ErrorHandler]] = None,
        caller: Optional[str] = None,
        cancel: Optional[threading.Event] = None,
        deadline: Optional[float] = None,
    ) -> List[T]:
        """
        Run a query over numeric IDs in server-sized batches.

        Results come back in sorted ID order, not input order; callers
        re-associate by ID.
        """
        limit = self.session.query_limit if limit is None else limit
        results: List[T] = []
        for batch in chunk_ids(ids, self.session.slowmax):
            if len(results) >= limit:
                break
            params = dict(get_params)
            params[id_param] = batch
            batch_start = len(results)
            batch_limit = limit - batch_start
            self._query_loop(
                prefix, params, None, batch_limit,
                handle_page=lambda text: parser(text, results),
                count=lambda: len(results) - batch_start,
                overrides=overrides,
                caller=caller or id_param,
                cancel=cancel,
                deadline=deadline,
            )
        return results[:limit]

    @staticmethod
    def _apply_renames(text: str, working: List[str], resolve_redirects: bool) -> None:
        normalized = section(text, "normalized")
        if normalized is not None:
            for element in scan_elements(normalized, "n"):
                attrs = attributes(element)
                _replace_all(working, attrs.get("from", ""), attrs.get("to", ""))

        if not resolve_redirects:
            return
        redirects = section(text, "redirects")
        if redirects is not None:
            for element in scan_elements(redirects, "r"):
                attrs = attributes(element)
                _replace_all(working, attrs.get("from", ""), attrs.get("to", ""))
