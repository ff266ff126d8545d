"""
Wiki: one object per wiki wiring the protocol engine together.

The operations here are deliberately thin. Each one states which module,
parameters and record parser to use; batching, continuation, retries,
backpressure and error classification all happen in the engine.
"""

import logging
import sys
import threading
import time
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from .config import WikiConfig
from .connectors import HttpConnector
from .core.connector import Connector
from .core.exceptions import ApiError, CredentialError, EditConflictError, FailedLoginError
from .core.models import LogEntry, Revision
from .core.session import Session
from .engine import classifier
from .engine.batcher import chunk_titles, namespace_string
from .engine.executor import RequestExecutor
from .engine.query import QueryEngine
from .engine.throttle import WriteThrottle
from .engine.upload import ChunkedUploader
from .parsing.records import parse_log_entry, parse_revision
from .parsing.scanner import attributes, element_text, has_attribute, scan_elements, section
from .site.metadata import SiteMetadataCache


logger = logging.getLogger(__name__)


REVISION_PROPS = "ids|timestamp|user|comment|parsedcomment|flags|size|sha1|tags"
RECENT_CHANGES_PROPS = "title|ids|user|timestamp|flags|comment|parsedcomment|sizes|sha1|tags"
LOG_PROPS = "ids|title|type|user|timestamp|comment|parsedcomment|details|tags"


# record parsers

def _page_title(page: str) -> Optional[str]:
    return attributes(page).get("title")


def _parse_page_info(text: str, results: Dict[str, List[Dict[str, Any]]]) -> None:
    for page in scan_elements(text, "page"):
        attrs = attributes(page)
        title = attrs.get("title")
        if title is None:
            continue
        missing = has_attribute(page, "missing") or has_attribute(page, "invalid")
        results.setdefault(title, []).append({
            "pagename": title,
            "exists": not missing,
            "pageid": int(attrs.get("pageid", -1)),
            "ns": int(attrs.get("ns", 0)),
            "size": int(attrs.get("length", -1)),
            "lastrevid": int(attrs.get("lastrevid", -1)),
            "redirect": has_attribute(page, "redirect"),
            "touched": attrs.get("touched"),
        })


def _parse_page_text(text: str, results: Dict[str, List[str]]) -> None:
    for page in scan_elements(text, "page"):
        title = _page_title(page)
        if title is None or has_attribute(page, "missing"):
            continue
        content = section(page, "slot") or section(page, "rev")
        if content is not None:
            results.setdefault(title, []).append(element_text(content))


def _parse_page_revisions(text: str, results: List[Revision]) -> None:
    for page in scan_elements(text, "page"):
        title = _page_title(page)
        for rev in scan_elements(page, "rev"):
            results.append(parse_revision(rev, title))


def _parse_recent_changes(text: str, results: List[Revision]) -> None:
    for rc in scan_elements(text, "rc"):
        results.append(parse_revision(rc))


def _parse_log_entries(text: str, results: List[LogEntry]) -> None:
    block = section(text, "logevents")
    if block is None:
        return
    for item in scan_elements(block, "item"):
        results.append(parse_log_entry(item))


def _parse_watchlist(text: str, results: List[str]) -> None:
    for wr in scan_elements(text, "wr"):
        title = attributes(wr).get("title")
        if title is not None:
            results.append(title)


class Wiki:
    """
    Client for one MediaWiki installation.

    Thread-safe: any number of threads may call read operations
    concurrently; write operations share one throttle.
    """

    def __init__(
        self,
        session: Session,
        connector: Optional[Connector] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize the client.

        Args:
            session: Session holding identity and request configuration
            connector: Transport; defaults to an HttpConnector built from the session
            sleep: Sleep function for the executor (injectable for tests)
        """
        self.session = session
        self.connector = connector or HttpConnector(
            timeout=session.read_timeout,
            user_agent=session.user_agent,
            compress=session.compress,
        )
        self.executor = RequestExecutor(session, self.connector, sleep=sleep)
        self.site = SiteMetadataCache(self.executor)
        self.queries = QueryEngine(session, self.executor, normalizer=self.site.normalize)
        self.throttle = WriteThrottle(lambda: self.session.throttle_interval)
        self.uploader = ChunkedUploader(session, self.executor)

        self._watchlist_lock = threading.Lock()
        self._watchlist: Optional[List[str]] = None

    @classmethod
    def from_config(cls, config: WikiConfig, connector: Optional[Connector] = None) -> "Wiki":
        return cls(Session.from_config(config), connector)

    def close(self) -> None:
        self.connector.close()

    def __repr__(self) -> str:
        return f"Wiki({self.session!r})"

    # site metadata pass-throughs

    def namespace(self, title: str) -> int:
        return self.site.namespace(title)

    def namespace_identifier(self, namespace: int) -> str:
        return self.site.namespace_identifier(namespace)

    def normalize(self, title: str) -> str:
        return self.site.normalize(title)

    # authentication

    def get_token(self, token_type: str = "csrf") -> str:
        """
        Fetch a token of the given type (csrf, login, watch, ...).

        Raises:
            ApiError: the server did not return the requested token
        """
        text = self.executor.execute({"action": "query", "meta": "tokens", "type": token_type})
        classifier.check(text, caller="tokens")
        tokens = section(text, "tokens")
        token = attributes(tokens).get(f"{token_type}token") if tokens else None
        if token is None:
            raise ApiError(f"No {token_type} token in response", code="notoken")
        return token

    def login(self, username: str, password: str) -> None:
        """
        Log in with a bot password and load the account's rights.

        Raises:
            FailedLoginError: the server rejected the credentials
        """
        token = self.get_token("login")
        text = self.executor.execute(
            {"action": "login"},
            {"lgname": username, "lgpassword": password, "lgtoken": token},
        )
        classifier.check(text, caller="login")
        result = attributes(section(text, "login") or "<login />")
        if result.get("result") != "Success":
            reason = result.get("reason", result.get("result", "unknown"))
            logger.warning(f"Login failed for {username}: {reason}", extra={"wiki": self.session.host})
            raise FailedLoginError(
                f"Login to {self.session.host} failed: {reason}",
                code=result.get("result"),
                info=reason,
            )

        name = result.get("lgusername", username)
        self.session.set_user(name, self._get_rights())
        with self._watchlist_lock:
            self._watchlist = None
        logger.info(f"Logged in to {self.session.host} as {name}", extra={"wiki": self.session.host})

    def _get_rights(self) -> List[str]:
        text = self.executor.execute({"action": "query", "meta": "userinfo", "uiprop": "rights"})
        classifier.check(text, caller="userinfo")
        rights = section(text, "rights")
        if rights is None:
            return []
        return [element_text(r) for r in scan_elements(rights, "r")]

    def logout(self) -> None:
        """Log out, drop cookies and reset per-user state."""
        token = self.get_token("csrf")
        text = self.executor.execute({"action": "logout"}, {"token": token})
        classifier.check(text, caller="logout")
        self.connector.clear_cookies()
        self.session.reset_credentials()
        with self._watchlist_lock:
            self._watchlist = None
        logger.info(f"Logged out of {self.session.host}", extra={"wiki": self.session.host})

    # reads

    def get_page_info(self, titles: Sequence[str]) -> List[Dict[str, Any]]:
        """
        Basic page metadata for each title.

        Returns:
            One dict per input title, in input order
        """
        pages = self.queries.vectorized_query(
            None,
            {"action": "query", "prop": "info"},
            titles,
            _parse_page_info,
            caller="getPageInfo",
        )
        return [p[0] if p else {"pagename": t, "exists": False} for t, p in zip(titles, pages)]

    def get_page_text(self, titles: Sequence[str]) -> List[Optional[str]]:
        """Current wikitext of each title, None for missing pages."""
        pages = self.queries.vectorized_query(
            None,
            {"action": "query", "prop": "revisions", "rvprop": "content", "rvslots": "main"},
            titles,
            _parse_page_text,
            caller="getPageText",
        )
        return [p[0] if p else None for p in pages]

    def get_revisions(self, ids: Sequence[int]) -> List[Optional[Revision]]:
        """Revisions by ID, aligned with ``ids``; None for IDs the server does not know."""
        found = self.queries.id_query(
            None,
            {"action": "query", "prop": "revisions", "rvprop": REVISION_PROPS},
            "revids",
            ids,
            _parse_page_revisions,
            caller="getRevisions",
        )
        by_id = {rev.id: rev for rev in found}
        return [by_id.get(i) for i in ids]

    def get_page_history(
        self,
        title: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> List[Revision]:
        """
        Revisions of a page, newest first.

        Args:
            title: Page title
            start: Newest timestamp to include
            end: Oldest timestamp to include
            limit: Maximum revisions, defaults to the session's query limit
        """
        if start is not None and end is not None and start < end:
            raise ValueError("History start must not be older than its end")
        return self.queries.list_query(
            "rv",
            {
                "action": "query",
                "prop": "revisions",
                "titles": self.normalize(title),
                "rvprop": REVISION_PROPS,
                "rvstart": start,
                "rvend": end,
            },
            _parse_page_revisions,
            limit=limit,
            caller="getPageHistory",
        )

    def recent_changes(
        self,
        limit: Optional[int] = None,
        namespaces: Optional[Iterable[int]] = None,
    ) -> List[Revision]:
        """Recent edits and page creations, newest first."""
        return self.queries.list_query(
            "rc",
            {
                "action": "query",
                "list": "recentchanges",
                "rcprop": RECENT_CHANGES_PROPS,
                "rctype": "edit|new",
                "rcnamespace": namespace_string(namespaces) if namespaces else None,
            },
            _parse_recent_changes,
            limit=limit,
            caller="recentChanges",
        )

    def get_log_entries(
        self,
        log_type: Optional[str] = None,
        action: Optional[str] = None,
        limit: Optional[int] = None,
        user: Optional[str] = None,
        title: Optional[str] = None,
    ) -> List[LogEntry]:
        """
        Log entries, newest first.

        Args:
            log_type: Log type such as 'delete'; None for all logs
            action: Log action within the type such as 'delete' or 'restore'
            limit: Maximum entries, defaults to the session's query limit
            user: Only entries performed by this user
            title: Only entries targeting this page
        """
        params: Dict[str, Any] = {
            "action": "query",
            "list": "logevents",
            "leprop": LOG_PROPS,
            "leuser": user,
            "letitle": title,
        }
        if action is not None:
            if log_type is None:
                raise ValueError("A log action needs a log type")
            params["leaction"] = f"{log_type}/{action}"
        else:
            params["letype"] = log_type
        return self.queries.list_query(
            "le", params, _parse_log_entries, limit=limit, caller="getLogEntries"
        )

    # watchlist

    def _require_login(self, operation: str) -> None:
        if not self.session.logged_in:
            raise CredentialError(f"{operation} requires a logged in user", code="notloggedin")

    def get_raw_watchlist(self, cache: bool = True) -> List[str]:
        """
        Titles on the user's watchlist, talk pages included.

        Args:
            cache: Return the cached copy if one exists
        """
        self._require_login("Watchlist")
        with self._watchlist_lock:
            if cache and self._watchlist is not None:
                return list(self._watchlist)
            titles = self.queries.list_query(
                "wr",
                {"action": "query", "list": "watchlistraw"},
                _parse_watchlist,
                limit=sys.maxsize,
                caller="getRawWatchlist",
            )
            self._watchlist = titles
            return list(titles)

    def is_watched(self, titles: Sequence[str]) -> List[bool]:
        watched = set(self.get_raw_watchlist())
        return [title in watched for title in titles]

    def watch(self, titles: Sequence[str]) -> None:
        self._watch(titles, unwatch=False)

    def unwatch(self, titles: Sequence[str]) -> None:
        self._watch(titles, unwatch=True)

    def _watch(self, titles: Sequence[str], unwatch: bool) -> None:
        self._require_login("Watch" if not unwatch else "Unwatch")
        token = self.get_token("watch")
        for batch in chunk_titles(titles, self.session.slowmax):
            text = self.executor.execute(
                {"action": "watch"},
                {"titles": batch, "unwatch": unwatch, "token": token},
            )
            classifier.check(text, caller="unwatch" if unwatch else "watch")

        with self._watchlist_lock:
            if self._watchlist is None:
                return
            if unwatch:
                removed = set(titles)
                self._watchlist = [t for t in self._watchlist if t not in removed]
            else:
                present = set(self._watchlist)
                self._watchlist.extend(t for t in dict.fromkeys(titles) if t not in present)

    # writes

    def edit(
        self,
        title: str,
        text: str,
        summary: str,
        minor: bool = False,
        bot: bool = True,
        basetimestamp: Optional[datetime] = None,
    ) -> Dict[str, str]:
        """
        Replace the text of a page.

        Args:
            title: Page to edit
            text: New wikitext
            summary: Edit summary
            minor: Mark as a minor edit
            bot: Mark as a bot edit (ignored without the bot right)
            basetimestamp: Timestamp of the revision the edit is based on,
                for edit conflict detection

        Returns:
            The attributes of the server's ``<edit>`` result

        Raises:
            EditConflictError: the page changed since ``basetimestamp``
        """
        self.throttle.throttle()
        token = self.get_token("csrf")
        response = self.executor.execute(
            {"action": "edit"},
            {
                "title": title,
                "text": text,
                "summary": summary,
                "minor": minor,
                "bot": bot,
                "basetimestamp": basetimestamp,
                "token": token,
            },
        )
        classifier.check(response, {"editconflict": EditConflictError}, caller="edit")
        result = attributes(section(response, "edit") or "<edit />")
        if result.get("result") != "Success":
            raise ApiError(
                f"Edit to {title} was not saved: {result.get('result', 'no result')}",
                code=result.get("result"),
            )
        logger.info(f"Edited {title}", extra={"wiki": self.session.host, "action": "edit"})
        return result

    def upload(self, data: bytes, filename: str, description: str = "", reason: str = "") -> str:
        """Upload a file, in chunks if it is large. Throttled once as a whole."""
        self.throttle.throttle()
        token = self.get_token("csrf")
        return self.uploader.upload(data, filename, description, reason, token)
