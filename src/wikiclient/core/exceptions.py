"""
Custom exceptions for the wiki client.

The hierarchy mirrors how failures are handled: transport problems are
retried by the request executor, API errors are classified by error code,
and everything else is fatal.
"""

from typing import Optional


class WikiError(Exception):
    """Base exception for all wiki client errors."""
    pass


class WikiConfigError(WikiError):
    """
    Error in client configuration.

    Raised when:
    - Configuration file is invalid
    - An environment override cannot be parsed
    """
    pass


class TransportError(WikiError):
    """
    Low-level network failure.

    Raised when:
    - The server is unreachable or the connection drops
    - The request times out
    - The retry budget is exhausted
    """

    def __init__(self, message: str, url: str = None, attempts: int = None):
        super().__init__(message)
        self.url = url
        self.attempts = attempts


class HttpStatusError(TransportError):
    """The server answered with an HTTP error status."""

    def __init__(self, message: str, status_code: int, url: str = None):
        super().__init__(message, url=url)
        self.status_code = status_code


class ProtocolError(WikiError):
    """
    The server response violates the API contract.

    Raised when:
    - The response body is empty
    - A chunked upload response lacks a file key
    - A record lacks a parsable timestamp
    """
    pass


class RequestCancelledError(WikiError):
    """The caller cancelled the request or its deadline passed."""
    pass


class UnsupportedOperationError(WikiError):
    """The wiki lacks an extension or feature the operation needs."""
    pass


class ApiError(WikiError):
    """
    Error reported by the API via an ``<error code="..." info="..."/>`` element.

    Attributes:
        code: The wire error code
        info: Human-readable description from the server
    """

    def __init__(self, message: str, code: Optional[str] = None, info: Optional[str] = None):
        super().__init__(message)
        self.code = code
        self.info = info


class AssertionFailedError(ApiError):
    """An ``assert=`` precondition failed: the session lost its login or bot flag."""
    pass


class PermissionDeniedError(ApiError):
    """The current user lacks the right to perform the action."""
    pass


class CredentialError(ApiError):
    """
    The action needs different credentials.

    Raised for protected pages and namespaces; callers may log in again
    and retry.
    """
    pass


class FailedLoginError(CredentialError):
    """Login was rejected by the server."""
    pass


class AccountLockedError(ApiError):
    """The current user or IP is blocked or locked."""
    pass


class EditConflictError(ApiError):
    """The page changed between fetching it and saving the edit."""
    pass


class UnknownProtocolError(ApiError):
    """
    Unrecognised error code.

    Indicates either a bug in this client or an undocumented change in the
    server API. Always fatal.
    """
    pass
