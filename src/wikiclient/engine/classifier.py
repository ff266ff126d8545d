"""
Classification of API error codes.

Every ``<error code="..."/>`` returned by the server maps to exactly one
outcome:

- RETRY: transient server condition, handled by the request executor
- RECOVERABLE: a caller-whitelisted code; the caller's callback runs and
  the operation continues
- FATAL: one of the typed ApiError subclasses is raised

The same code can mean different things to different operations (for
example "page already protected" is harmless for a bot re-applying
protection), so callers may override the mapping per call.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Mapping, Optional, Type, Union

from ..core.exceptions import (
    AccountLockedError,
    ApiError,
    AssertionFailedError,
    CredentialError,
    PermissionDeniedError,
    UnknownProtocolError,
)
from ..core.models import ErrorKind
from ..parsing.scanner import attributes, section


logger = logging.getLogger(__name__)


ErrorHandler = Union[Type[ApiError], Callable[[str, str], None]]

TRANSIENT_CODES = frozenset({"maxlag", "ratelimited", "readonly"})

ASSERTION_CODES = frozenset({
    "assertuserfailed",
    "assertbotfailed",
    "assertnameduserfailed",
})

PERMISSION_CODES = frozenset({
    "permissiondenied",
    "readapidenied",
    "writeapidenied",
    "noapiwrite",
    "mustbeloggedin",
    "cantcreate",
    "cantcreate-anon",
    "noedit",
    "noedit-anon",
})

CREDENTIAL_CODES = frozenset({
    "protectedpage",
    "protectedtitle",
    "protectednamespace",
    "protectednamespace-interface",
    "cascadeprotected",
    "customcssjsprotected",
    "notloggedin",
    "badtoken",
})

LOCKED_CODES = frozenset({
    "autoblocked",
    "locked",
    "globalblocking-blocked",
    "globalblocking-ipblocked",
})


@dataclass(frozen=True)
class Classification:
    """
    Result of classifying one error code.

    Attributes:
        kind: Retry, recoverable or fatal
        exception_type: Exception to raise when fatal
        callback: Callback to invoke when recoverable
    """
    kind: ErrorKind
    exception_type: Optional[Type[ApiError]] = None
    callback: Optional[Callable[[str, str], None]] = None


def classify(code: str, overrides: Optional[Mapping[str, ErrorHandler]] = None) -> Classification:
    """
    Classify a wire error code.

    Args:
        code: The error code from the server
        overrides: Per-call mapping of code to either an ApiError subclass
            (raise it) or a callable (treat as a warning and call it)

    Returns:
        The Classification for ``code``
    """
    if overrides and code in overrides:
        handler = overrides[code]
        if isinstance(handler, type) and issubclass(handler, Exception):
            return Classification(ErrorKind.FATAL, exception_type=handler)
        return Classification(ErrorKind.RECOVERABLE, callback=handler)

    if code in TRANSIENT_CODES:
        return Classification(ErrorKind.RETRY)
    if code in ASSERTION_CODES:
        return Classification(ErrorKind.FATAL, exception_type=AssertionFailedError)
    if code in PERMISSION_CODES:
        return Classification(ErrorKind.FATAL, exception_type=PermissionDeniedError)
    if code in CREDENTIAL_CODES:
        return Classification(ErrorKind.FATAL, exception_type=CredentialError)
    if code in LOCKED_CODES or code.startswith("blocked"):
        return Classification(ErrorKind.FATAL, exception_type=AccountLockedError)
    return Classification(ErrorKind.FATAL, exception_type=UnknownProtocolError)


def find_error(text: str) -> Optional[Dict[str, str]]:
    """Attributes of the top-level ``<error>`` element, or None if there is none."""
    element = section(text, "error")
    if element is None:
        return None
    return attributes(element)


def check(
    text: str,
    overrides: Optional[Mapping[str, ErrorHandler]] = None,
    caller: str = "request",
) -> None:
    """
    Inspect a response and raise or warn according to its error code.

    Args:
        text: Raw response text
        overrides: Per-call code handlers, see ``classify``
        caller: Operation name for log messages

    Raises:
        ApiError subclass for fatal codes. A RETRY code reaching this point
        means the executor gave up on it and is raised as UnknownProtocolError.
    """
    error = find_error(text)
    if error is None:
        return

    code = error.get("code", "")
    info = error.get("info", "")
    result = classify(code, overrides)

    if result.kind is ErrorKind.RECOVERABLE:
        logger.warning(f"{caller}: ignoring API error {code}: {info}", extra={"code": code})
        result.callback(code, info)
        return

    exception_type = result.exception_type or UnknownProtocolError
    if exception_type is UnknownProtocolError:
        logger.error(f"{caller}: unknown API error {code}: {info}", extra={"code": code})
    else:
        logger.warning(f"{caller}: API error {code}: {info}", extra={"code": code})
    raise exception_type(f"{caller} failed: {code}: {info}", code=code, info=info)


def ignore(code: str, info: str) -> None:
    """No-op handler for codes that only warrant a log line."""
    pass
