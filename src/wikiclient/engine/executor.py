"""
Request executor: builds one API request and drives it through the
retry/backpressure loop.

Two independent retry mechanisms apply:

- Transport failures (connection errors, timeouts, 5xx, empty bodies) are
  retried up to the session's ``max_retries`` with a short backoff, then
  propagated.
- Server-signalled backpressure (replication lag above ``maxlag``, rate
  limiting, read-only database) sleeps for the advised time and re-sends
  the identical request without touching the transport budget.

Waits are interruptible by a caller-supplied cancellation event or
monotonic deadline.
"""

import logging
import threading
import time
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from ..core.connector import Connector, ConnectorRequest, ConnectorResponse
from ..core.exceptions import (
    HttpStatusError,
    ProtocolError,
    RequestCancelledError,
    TransportError,
)
from ..core.session import Session
from ..parsing.records import format_timestamp
from .classifier import find_error


logger = logging.getLogger(__name__)


DEFAULT_RETRY_AFTER = 10
RATELIMIT_WAIT = 10
READONLY_WAIT = 10
MAX_TRANSPORT_BACKOFF = 30.0


def to_wire(value: Any) -> Optional[str]:
    """
    Convert a parameter value to its wire form.

    Strings pass through, numbers are stringified, datetimes become API
    timestamps, collections are pipe-joined. ``None`` and ``False`` mean
    "omit the parameter" (the API treats presence as true).
    """
    if value is None or value is False:
        return None
    if value is True:
        return "1"
    if isinstance(value, str):
        return value
    if isinstance(value, Enum):
        return to_wire(value.value)
    if isinstance(value, datetime):
        return format_timestamp(value)
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, (set, frozenset)):
        value = sorted(value)
    if isinstance(value, (list, tuple)):
        return "|".join(to_wire(v) or "" for v in value)
    raise TypeError(f"Cannot send {type(value).__name__} as an API parameter")


def encode_params(params: Optional[Mapping[str, Any]]) -> Dict[str, str]:
    """Convert a parameter map to strings, dropping omitted values."""
    encoded = {}
    for key, value in (params or {}).items():
        wire = to_wire(value)
        if wire is not None:
            encoded[key] = wire
    return encoded


def encode_post(
    post_params: Mapping[str, Any]
) -> Tuple[Dict[str, str], Optional[Dict[str, Tuple[str, bytes]]]]:
    """
    Split POST parameters into form fields and multipart file parts.

    Any bytes value forces a multipart body; its part is named after the
    ``filename`` field when one is present.
    """
    fields = {}
    files = {}
    filename = post_params.get("filename")
    for key, value in post_params.items():
        if isinstance(value, (bytes, bytearray)):
            files[key] = (str(filename or key), bytes(value))
            continue
        wire = to_wire(value)
        if wire is not None:
            fields[key] = wire
    return fields, (files or None)


class RequestExecutor:
    """
    Sends API requests for one session.

    Safe to share between threads: all per-request state lives on the
    stack, configuration is read from the session on every call.
    """

    def __init__(
        self,
        session: Session,
        connector: Connector,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the executor.

        Args:
            session: Session supplying URL, defaults and retry budget
            connector: Transport performing single attempts
            sleep: Sleep function (injectable for tests)
            clock: Monotonic clock used for deadlines
        """
        self.session = session
        self.connector = connector
        self._sleep = sleep
        self._clock = clock

    def build_request(
        self,
        get_params: Optional[Mapping[str, Any]],
        post_params: Optional[Mapping[str, Any]] = None,
    ) -> ConnectorRequest:
        """Build the wire request: defaults first, caller parameters last."""
        params = self.session.default_params()
        params.update(encode_params(get_params))

        if post_params:
            data, files = encode_post(post_params)
            method = "POST"
        else:
            data, files = None, None
            method = "GET"

        return ConnectorRequest(
            uri=self.session.api_url,
            method=method,
            params=params,
            data=data,
            files=files,
            headers=self.session.request_headers(),
            timeout=self.session.read_timeout,
        )

    def execute(
        self,
        get_params: Optional[Mapping[str, Any]],
        post_params: Optional[Mapping[str, Any]] = None,
        *,
        cancel: Optional[threading.Event] = None,
        deadline: Optional[float] = None,
    ) -> str:
        """
        Execute one logical API request.

        Args:
            get_params: Query string parameters
            post_params: POST body parameters; bytes values force multipart
            cancel: Event that aborts the request when set
            deadline: Monotonic time after which no further attempt or wait starts

        Returns:
            The raw response text

        Raises:
            TransportError: network failure after the retry budget is exhausted
            ProtocolError: the server returned an empty body
            RequestCancelledError: cancelled or past the deadline
        """
        request = self.build_request(get_params, post_params)
        action = request.action
        max_retries = self.session.max_retries
        failures = 0
        attempt = 0

        while True:
            attempt += 1
            self._check_cancelled(cancel, deadline)
            if deadline is not None:
                remaining = deadline - self._clock()
                if request.timeout is None or remaining < request.timeout:
                    request.timeout = max(remaining, 0.001)

            context = {"wiki": self.session.host, "action": action, "attempt": attempt}
            logger.debug(f"{request.method} {action} (attempt {attempt})", extra=context)

            try:
                response = self.connector.fetch(request)
            except HttpStatusError:
                raise
            except TransportError as e:
                failures += 1
                if failures > max_retries:
                    logger.error(
                        f"{action}: giving up after {failures} failed attempts: {e}",
                        extra=context,
                    )
                    raise TransportError(
                        f"{action} failed after {failures} attempts: {e}",
                        url=request.uri,
                        attempts=failures,
                    ) from e
                delay = self._transport_backoff(failures)
                logger.warning(
                    f"{action}: transport failure ({e}), retry {failures}/{max_retries} in {delay:.1f}s",
                    extra=context,
                )
                self._wait(delay, cancel, deadline)
                continue

            if not response.text.strip():
                logger.error(f"{action}: empty response from server", extra=context)
                raise ProtocolError(f"Received empty response from server for {action}")

            wait = self._server_backoff(response, action, context)
            if wait is not None:
                self._wait(wait, cancel, deadline)
                continue

            return response.text

    def _server_backoff(
        self, response: ConnectorResponse, action: Optional[str], context: Dict[str, Any]
    ) -> Optional[float]:
        """Seconds to wait before re-sending, or None if the response is final."""
        error = find_error(response.text) or {}
        code = error.get("code")
        lag_header = response.header("X-Database-Lag")

        if code == "maxlag" or lag_header is not None:
            retry_after = response.header("Retry-After")
            wait = int(retry_after) if retry_after and retry_after.isdigit() else DEFAULT_RETRY_AFTER
            lag = error.get("lag") or lag_header
            logger.warning(
                f"{action}: database lag ({lag}s) exceeds maxlag ({self.session.maxlag}s), "
                f"waiting {wait}s",
                extra={**context, "wait_seconds": wait},
            )
            return wait
        if code == "ratelimited":
            logger.warning(
                f"{action}: server-side throttle hit, waiting {RATELIMIT_WAIT}s",
                extra={**context, "wait_seconds": RATELIMIT_WAIT},
            )
            return RATELIMIT_WAIT
        if code == "readonly":
            logger.warning(
                f"{action}: database locked, waiting {READONLY_WAIT}s",
                extra={**context, "wait_seconds": READONLY_WAIT},
            )
            return READONLY_WAIT
        return None

    def _transport_backoff(self, failures: int) -> float:
        return min(float(2 ** (failures - 1)), MAX_TRANSPORT_BACKOFF)

    def _check_cancelled(self, cancel: Optional[threading.Event], deadline: Optional[float]) -> None:
        if cancel is not None and cancel.is_set():
            raise RequestCancelledError("Request cancelled")
        if deadline is not None and self._clock() >= deadline:
            raise RequestCancelledError("Request deadline exceeded")

    def _wait(
        self, seconds: float, cancel: Optional[threading.Event], deadline: Optional[float]
    ) -> None:
        if deadline is not None and self._clock() + seconds > deadline:
            raise RequestCancelledError(
                f"Request deadline exceeded: cannot wait {seconds:.1f}s"
            )
        if cancel is not None:
            if cancel.wait(seconds):
                raise RequestCancelledError("Request cancelled")
            return
        self._sleep(seconds)
