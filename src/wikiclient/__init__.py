"""
wikiclient: a MediaWiki API protocol engine.

Handles request construction, retries and server backpressure,
continuation-driven pagination, title batching, write throttling, chunked
uploads and error classification. Endpoint wrappers on ``Wiki`` stay thin.
"""

from .config import WikiConfig
from .core.exceptions import (
    AccountLockedError,
    ApiError,
    AssertionFailedError,
    CredentialError,
    EditConflictError,
    FailedLoginError,
    HttpStatusError,
    PermissionDeniedError,
    ProtocolError,
    RequestCancelledError,
    TransportError,
    UnknownProtocolError,
    UnsupportedOperationError,
    WikiConfigError,
    WikiError,
)
from .core.models import AssertionMode, Event, LogEntry, Revision, SiteInfo
from .core.session import Session
from .wiki import Wiki

__version__ = "0.1.0"

__all__ = [
    "WikiConfig",
    "AccountLockedError",
    "ApiError",
    "AssertionFailedError",
    "CredentialError",
    "EditConflictError",
    "FailedLoginError",
    "HttpStatusError",
    "PermissionDeniedError",
    "ProtocolError",
    "RequestCancelledError",
    "TransportError",
    "UnknownProtocolError",
    "UnsupportedOperationError",
    "WikiConfigError",
    "WikiError",
    "AssertionMode",
    "Event",
    "LogEntry",
    "Revision",
    "SiteInfo",
    "Session",
    "Wiki",
]
