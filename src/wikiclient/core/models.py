"""
Core data models for the wiki client.

Records returned by list queries are immutable value objects. Nullable
fields together with the ``*_deleted`` flags encode server-side redaction
(RevisionDelete): a redacted field is ``None`` with its flag set, a field
that was simply not requested is ``None`` with its flag clear.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, Flag
from typing import Dict, FrozenSet, Optional, Tuple, Union


class AssertionMode(Flag):
    """Server-side ``assert=`` preconditions attached to every request."""
    NONE = 0
    USER = 1
    BOT = 2


class ErrorKind(str, Enum):
    """Outcome of classifying a wire error code."""
    RETRY = "retry"
    RECOVERABLE = "recoverable"
    FATAL = "fatal"


@dataclass(frozen=True)
class Event:
    """
    Something that happened on the wiki at a point in time.

    Attributes:
        id: Revision ID or log ID
        timestamp: When the event happened (UTC)
        user: Performer, None if redacted or not requested
        title: Affected page, None if redacted or not requested
        comment: Edit summary or log reason
        parsed_comment: Comment rendered to HTML by the server
        tags: Change tags
        user_deleted: Whether the user was RevisionDeleted
        comment_deleted: Whether the comment was RevisionDeleted
        content_deleted: Whether the content (or log action) was RevisionDeleted
    """
    id: int
    timestamp: datetime
    user: Optional[str] = None
    title: Optional[str] = None
    comment: Optional[str] = None
    parsed_comment: Optional[str] = None
    tags: Tuple[str, ...] = ()
    user_deleted: bool = False
    comment_deleted: bool = False
    content_deleted: bool = False

    def __post_init__(self):
        if self.user_deleted and self.user is not None:
            raise ValueError("a redacted user must be None")
        if self.comment_deleted and (self.comment is not None or self.parsed_comment is not None):
            raise ValueError("a redacted comment must be None")

    def sort_key(self) -> Tuple[datetime, int]:
        """Chronological ordering key, ties broken by ID."""
        return (self.timestamp, self.id)


@dataclass(frozen=True)
class Revision(Event):
    """
    A page revision.

    Attributes:
        sha1: Content hash, None if redacted or not requested
        minor: Marked as a minor edit
        bot: Made with the bot flag (recent changes only)
        is_new: Created the page
        size: Size of the revision in bytes
        size_diff: Change in size relative to the previous revision
        rcid: Recent changes ID, if the revision came from recent changes
    """
    sha1: Optional[str] = None
    minor: bool = False
    bot: bool = False
    is_new: bool = False
    size: int = 0
    size_diff: int = 0
    rcid: Optional[int] = None

    def permanent_url(self, index_url: str) -> str:
        """Permanent link to this revision given the wiki's index.php URL."""
        return f"{index_url}?oldid={self.id}"


@dataclass(frozen=True)
class LogEntry(Event):
    """
    A log entry.

    Attributes:
        log_type: Log type (e.g. 'delete', 'block')
        action: Log action, None if redacted
        details: Type-specific parameters reported by the server
    """
    log_type: str = ""
    action: Optional[str] = None
    details: Dict[str, str] = field(default_factory=dict, hash=False)


Record = Union[Revision, LogEntry]


@dataclass(frozen=True)
class SiteInfo:
    """
    Site metadata fetched once per session.

    Attributes:
        namespace_name_to_id: Lower-cased local names, canonical names and aliases
        id_to_canonical_name: Canonical (English) namespace names
        id_to_local_name: Localised namespace names as the wiki displays them
        subpage_namespaces: Namespaces where '/' denotes a subpage
        case_sensitive_namespaces: Namespaces exempt from first-letter capitalisation
        capitalizes_first_letter: Site-wide capitalisation rule
        timezone: Server timezone name
        locale: Content language code
        mw_version: MediaWiki version string
        installed_extensions: Names of installed extensions
    """
    namespace_name_to_id: Dict[str, int]
    id_to_canonical_name: Dict[int, str]
    id_to_local_name: Dict[int, str]
    subpage_namespaces: FrozenSet[int]
    case_sensitive_namespaces: FrozenSet[int]
    capitalizes_first_letter: bool
    timezone: str
    locale: str
    mw_version: str
    installed_extensions: FrozenSet[str]
