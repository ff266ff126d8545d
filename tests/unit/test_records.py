"""
Unit tests for record parsing.
"""

from datetime import datetime, timedelta, timezone

import pytest

from wikiclient.core.exceptions import ProtocolError
from wikiclient.parsing.records import (
    format_timestamp,
    parse_log_entry,
    parse_revision,
    parse_timestamp,
)


class TestTimestamps:
    """Tests for API timestamp conversion."""

    def test_parse_is_utc(self):
        """Test parsed timestamps are timezone-aware UTC."""
        parsed = parse_timestamp("2024-01-31T12:00:00Z")

        assert parsed == datetime(2024, 1, 31, 12, 0, tzinfo=timezone.utc)
        assert parsed.tzinfo is timezone.utc

    def test_format_converts_to_utc(self):
        """Test aware datetimes in other zones are converted before formatting."""
        plus_two = timezone(timedelta(hours=2))

        assert format_timestamp(datetime(2024, 1, 31, 14, 0, tzinfo=plus_two)) == "2024-01-31T12:00:00Z"

    def test_format_naive(self):
        """Test naive datetimes are formatted as-is."""
        assert format_timestamp(datetime(2024, 1, 31, 12, 0)) == "2024-01-31T12:00:00Z"


class TestParseRevision:
    """Tests for parse_revision."""

    def test_page_revision(self):
        """Test a revision nested under a page takes the page title."""
        element = (
            '<rev revid="123" parentid="0" minor="" user="Alice" timestamp="2024-01-31T12:00:00Z"'
            ' size="100" sizediff="100" comment="new &amp; shiny" parsedcomment="new &amp;amp; shiny"'
            ' sha1="abc"><tags><tag>mobile edit</tag><tag>visualeditor</tag></tags></rev>'
        )

        revision = parse_revision(element, title="Main Page")

        assert revision.id == 123
        assert revision.title == "Main Page"
        assert revision.user == "Alice"
        assert revision.comment == "new & shiny"
        assert revision.parsed_comment == "new &amp; shiny"
        assert revision.minor is True
        assert revision.bot is False
        assert revision.is_new is True
        assert revision.size == 100
        assert revision.sha1 == "abc"
        assert revision.tags == ("mobile edit", "visualeditor")
        assert revision.rcid is None

    def test_recent_change(self):
        """Test a recent change uses old/new lengths and carries its rcid."""
        element = (
            '<rc type="edit" ns="0" title="Example" rcid="555" revid="9" old_revid="8"'
            ' user="Bot" bot="" oldlen="10" newlen="15" timestamp="2024-01-31T12:00:00Z" />'
        )

        revision = parse_revision(element)

        assert revision.title == "Example"
        assert revision.rcid == 555
        assert revision.bot is True
        assert revision.size == 15
        assert revision.size_diff == 5
        assert revision.is_new is False

    def test_redacted_fields(self):
        """Test RevisionDeleted fields are None with their flags set."""
        element = (
            '<rev revid="5" parentid="4" userhidden="" commenthidden="" sha1hidden=""'
            ' timestamp="2024-01-31T12:00:00Z" size="3" />'
        )

        revision = parse_revision(element, title="Secret")

        assert revision.user is None
        assert revision.user_deleted is True
        assert revision.comment is None
        assert revision.parsed_comment is None
        assert revision.comment_deleted is True
        assert revision.sha1 is None
        assert revision.content_deleted is True

    def test_unrequested_fields(self):
        """Test fields that were not requested are None without flags."""
        revision = parse_revision('<rev revid="5" timestamp="2024-01-31T12:00:00Z" />')

        assert revision.user is None
        assert revision.user_deleted is False
        assert revision.comment is None
        assert revision.comment_deleted is False


    def test_missing_timestamp(self):
        """Test a revision without a timestamp is a protocol error."""
        with pytest.raises(ProtocolError, match="no timestamp"):
            parse_revision('<rev revid="5" user="Example" />')

    def test_malformed_timestamp(self):
        """Test an unparsable timestamp is a protocol error."""
        with pytest.raises(ProtocolError):
            parse_revision('<rev revid="5" timestamp="yesterday" />')


class TestParseLogEntry:
    """Tests for parse_log_entry."""

    def test_log_entry_with_params(self):
        """Test type-specific parameters come from the params element."""
        element = (
            '<item logid="77" ns="2" title="User:Vandal" type="block" action="block" user="Admin"'
            ' timestamp="2024-01-31T12:00:00Z" comment="spam">'
            '<params duration="infinite" flags="nocreate" /></item>'
        )

        entry = parse_log_entry(element)

        assert entry.id == 77
        assert entry.log_type == "block"
        assert entry.action == "block"
        assert entry.title == "User:Vandal"
        assert entry.user == "Admin"
        assert entry.comment == "spam"
        assert entry.details == {"duration": "infinite", "flags": "nocreate"}

    def test_hidden_action(self):
        """Test a hidden log action hides the target and action."""
        element = (
            '<item logid="78" type="delete" actionhidden="" userhidden=""'
            ' timestamp="2024-01-31T12:00:00Z" comment="x" />'
        )

        entry = parse_log_entry(element)

        assert entry.title is None
        assert entry.action is None
        assert entry.content_deleted is True
        assert entry.user is None
        assert entry.user_deleted is True
        assert entry.comment == "x"
        assert entry.details == {}
