"""
Parsers turning single XML record elements into Revision and LogEntry objects.

RevisionDelete handling: the server marks redacted fields with
``userhidden``, ``commenthidden``, ``texthidden``/``sha1hidden`` or
``actionhidden`` and omits their values. Redacted fields come back as
None with the matching ``*_deleted`` flag set; fields that were not
requested come back as None with the flag clear.
"""

from datetime import datetime, timezone
from typing import Dict, Optional

from ..core.exceptions import ProtocolError
from ..core.models import LogEntry, Revision
from .scanner import attributes, element_text, scan_elements


TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


def parse_timestamp(value: str) -> datetime:
    """Parse an API timestamp (``2024-01-31T12:00:00Z``) into an aware UTC datetime."""
    return datetime.strptime(value, TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)


def format_timestamp(value: datetime) -> str:
    """Format a datetime as an API timestamp, converting aware values to UTC."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.strftime(TIMESTAMP_FORMAT)


def _int(attrs: Dict[str, str], key: str, default: int = 0) -> int:
    value = attrs.get(key)
    return int(value) if value not in (None, "") else default


def _tags(element: str) -> tuple:
    return tuple(element_text(tag) for tag in scan_elements(element, "tag"))


def _timestamp(attrs: Dict[str, str], element: str) -> datetime:
    value = attrs.get("timestamp")
    if not value:
        raise ProtocolError(f"Record has no timestamp (request it in the prop list): {element[:80]}")
    try:
        return parse_timestamp(value)
    except ValueError as e:
        raise ProtocolError(f"Malformed timestamp {value!r}: {element[:80]}") from e


def parse_revision(element: str, title: Optional[str] = None) -> Revision:
    """
    Parse a ``<rev>``, ``<rc>`` or contribution ``<item>`` element.

    Args:
        element: The raw element text
        title: Page title when the element itself does not carry one
            (revisions nested under a ``<page>``)

    Returns:
        The parsed Revision
    """
    attrs = attributes(element)

    user_deleted = "userhidden" in attrs
    comment_deleted = "commenthidden" in attrs
    content_deleted = "texthidden" in attrs or "sha1hidden" in attrs

    if "newlen" in attrs:
        # recent changes report both lengths
        size = _int(attrs, "newlen")
        size_diff = size - _int(attrs, "oldlen")
    else:
        size = _int(attrs, "size")
        size_diff = _int(attrs, "sizediff")

    rcid = attrs.get("rcid")

    return Revision(
        id=_int(attrs, "revid"),
        timestamp=_timestamp(attrs, element),
        user=None if user_deleted else attrs.get("user"),
        title=attrs.get("title", title),
        comment=None if comment_deleted else attrs.get("comment"),
        parsed_comment=None if comment_deleted else attrs.get("parsedcomment"),
        tags=_tags(element),
        user_deleted=user_deleted,
        comment_deleted=comment_deleted,
        content_deleted=content_deleted,
        sha1=None if content_deleted else attrs.get("sha1"),
        minor="minor" in attrs,
        bot="bot" in attrs,
        is_new="new" in attrs or attrs.get("parentid") == "0",
        size=size,
        size_diff=size_diff,
        rcid=int(rcid) if rcid else None,
    )


def parse_log_entry(element: str) -> LogEntry:
    """
    Parse a log event ``<item>`` element.

    Type-specific parameters are taken from the attributes of the nested
    ``<params>`` element.
    """
    attrs = attributes(element)

    user_deleted = "userhidden" in attrs
    comment_deleted = "commenthidden" in attrs
    action_deleted = "actionhidden" in attrs

    details: Dict[str, str] = {}
    for params in scan_elements(element, "params"):
        details.update(attributes(params))

    return LogEntry(
        id=_int(attrs, "logid"),
        timestamp=_timestamp(attrs, element),
        user=None if user_deleted else attrs.get("user"),
        title=None if action_deleted else attrs.get("title"),
        comment=None if comment_deleted else attrs.get("comment"),
        parsed_comment=None if comment_deleted else attrs.get("parsedcomment"),
        tags=_tags(element),
        user_deleted=user_deleted,
        comment_deleted=comment_deleted,
        content_deleted=action_deleted,
        log_type=attrs.get("type", ""),
        action=None if action_deleted else attrs.get("action"),
        details=details,
    )
