"""
Unit tests for the request executor.

The executor is driven by a ScriptedConnector; sleeps are recorded rather
than performed so backoff behaviour can be asserted directly.
"""

from datetime import datetime, timezone
from unittest.mock import Mock

import pytest

from wikiclient.core.connector import ConnectorResponse
from wikiclient.core.exceptions import (
    HttpStatusError,
    ProtocolError,
    RequestCancelledError,
    TransportError,
)
from wikiclient.core.models import AssertionMode
from wikiclient.engine.executor import RequestExecutor, encode_post, to_wire


OK = '<?xml version="1.0"?><api batchcomplete=""><query /></api>'


def maxlag_response(retry_after: str = "3") -> ConnectorResponse:
    return ConnectorResponse(
        status_code=200,
        text='<api><error code="maxlag" info="Waiting for db1: 7 seconds lagged" lag="7" /></api>',
        headers={"Retry-After": retry_after, "X-Database-Lag": "7"},
    )


class TestWireEncoding:
    """Tests for parameter conversion."""

    def test_scalars(self):
        """Test scalar conversions and omission."""
        assert to_wire("x") == "x"
        assert to_wire(5) == "5"
        assert to_wire(True) == "1"
        assert to_wire(False) is None
        assert to_wire(None) is None

    def test_collections(self):
        """Test lists are pipe-joined and sets sorted."""
        assert to_wire(["a", "b"]) == "a|b"
        assert to_wire({3, 1, 2}) == "1|2|3"

    def test_datetime_and_enum(self):
        """Test timestamps and enum values."""
        assert to_wire(datetime(2024, 1, 31, 12, 0, tzinfo=timezone.utc)) == "2024-01-31T12:00:00Z"
        assert to_wire(AssertionMode.BOT) == "2"

    def test_unsupported_type(self):
        """Test unsupported values are rejected."""
        with pytest.raises(TypeError):
            to_wire({"a": 1})

    def test_encode_post_splits_files(self):
        """Test bytes values become multipart parts named after the file."""
        fields, files = encode_post({"filename": "Cat.png", "token": "t+\\", "file": b"\x89PNG"})

        assert fields == {"filename": "Cat.png", "token": "t+\\"}
        assert files == {"file": ("Cat.png", b"\x89PNG")}

    def test_encode_post_without_files(self):
        """Test plain POST bodies carry no files."""
        fields, files = encode_post({"text": "hello", "minor": False})

        assert fields == {"text": "hello"}
        assert files is None


class TestBuildRequest:
    """Tests for request construction."""

    def test_get_request(self, executor):
        """Test defaults come first and caller parameters last."""
        request = executor.build_request({"action": "query", "maxlag": 10, "list": None})

        assert request.method == "GET"
        assert request.uri == "https://test.wikipedia.org/w/api.php"
        assert request.params == {"format": "xml", "maxlag": "10", "action": "query"}
        assert request.timeout == 180.0

    def test_post_request(self, executor):
        """Test POST parameters go to the body."""
        request = executor.build_request({"action": "edit"}, {"text": "hi", "token": "abc"})

        assert request.method == "POST"
        assert request.data == {"text": "hi", "token": "abc"}
        assert request.files is None
        assert request.action == "edit"

    def test_headers_follow_session(self, session, executor, connector):
        """Test user agent and compression changes reach the next request."""
        session.user_agent = "ExampleBot/2.0"
        session.compress = False
        connector.enqueue(OK)

        executor.execute({"action": "query"})

        sent = connector.request_history[0]
        assert sent.headers["User-Agent"] == "ExampleBot/2.0"
        assert sent.headers["Accept-Encoding"] == "identity"


class TestTransportRetries:
    """Tests for transport failure handling."""

    def test_success(self, executor, connector, sleeps):
        """Test a clean response is returned after one attempt."""
        connector.enqueue(OK)

        assert executor.execute({"action": "query"}) == OK
        assert len(connector.request_history) == 1
        assert sleeps == []

    def test_retry_then_success(self, executor, connector, sleeps):
        """Test a transport failure is retried with backoff."""
        connector.enqueue(TransportError("connection reset"), OK)

        assert executor.execute({"action": "query"}) == OK
        assert len(connector.request_history) == 2
        assert sleeps == [1.0]

    def test_budget_exhausted(self, executor, connector, sleeps):
        """Test max_retries + 1 failures propagate the error."""
        connector.enqueue(*(TransportError("timeout") for _ in range(3)))

        with pytest.raises(TransportError) as exc_info:
            executor.execute({"action": "query"})

        assert exc_info.value.attempts == 3
        assert len(connector.request_history) == 3
        assert sleeps == [1.0, 2.0]

    def test_http_status_not_retried(self, executor, connector):
        """Test client errors propagate immediately."""
        connector.enqueue(HttpStatusError("HTTP 404", status_code=404), OK)

        with pytest.raises(HttpStatusError):
            executor.execute({"action": "query"})

        assert len(connector.request_history) == 1

    def test_empty_body_is_fatal(self, executor, connector, sleeps):
        """Test an empty body raises at once without re-sending."""
        connector.enqueue("", OK)

        with pytest.raises(ProtocolError):
            executor.execute({"action": "query"})

        assert len(connector.request_history) == 1
        assert connector.remaining == 1
        assert sleeps == []

    def test_whitespace_body_is_fatal(self, executor, connector):
        """Test a whitespace-only body counts as empty."""
        connector.enqueue("  \n")

        with pytest.raises(ProtocolError):
            executor.execute({"action": "query"})

    def test_empty_body_after_transport_retry(self, executor, connector, sleeps):
        """Test an empty body after a recovered transport failure is still fatal."""
        connector.enqueue(TransportError("reset"), "", OK)

        with pytest.raises(ProtocolError):
            executor.execute({"action": "query"})

        assert len(connector.request_history) == 2
        assert sleeps == [1.0]


class TestServerBackoff:
    """Tests for maxlag, ratelimited and readonly handling."""

    def test_maxlag_honours_retry_after(self, executor, connector, sleeps):
        """Test a lagged response waits Retry-After seconds and re-sends the same request."""
        connector.enqueue(maxlag_response("3"), OK)

        assert executor.execute({"action": "query", "titles": "A|B"}) == OK
        assert sleeps == [3]
        first, second = connector.request_history
        assert first.params == second.params
        assert first.params["maxlag"] == "5"

    def test_maxlag_default_wait(self, executor, connector, sleeps):
        """Test a missing Retry-After falls back to the default wait."""
        connector.enqueue(
            '<api><error code="maxlag" info="lagged" lag="12" /></api>',
            OK,
        )

        executor.execute({"action": "query"})

        assert sleeps == [10]

    def test_maxlag_does_not_consume_retries(self, session, executor, connector, sleeps):
        """Test lag retries are independent of the transport budget."""
        session.max_retries = 0
        connector.enqueue(maxlag_response("5"), maxlag_response("5"), maxlag_response("5"), OK)

        assert executor.execute({"action": "query"}) == OK
        assert sleeps == [5, 5, 5]

    @pytest.mark.parametrize("code", ["ratelimited", "readonly"])
    def test_rate_limit_and_readonly(self, executor, connector, sleeps, code):
        """Test throttling and read-only responses wait and retry."""
        connector.enqueue(f'<api><error code="{code}" info="slow down" /></api>', OK)

        assert executor.execute({"action": "edit"}, {"text": "x"}) == OK
        assert sleeps == [10]
        assert len(connector.request_history) == 2


class TestCancellation:
    """Tests for cancellation and deadlines."""

    def test_cancelled_before_start(self, executor, connector):
        """Test a set cancel event prevents any request."""
        cancel = Mock()
        cancel.is_set.return_value = True

        with pytest.raises(RequestCancelledError):
            executor.execute({"action": "query"}, cancel=cancel)

        assert connector.request_history == []

    def test_cancelled_during_wait(self, executor, connector):
        """Test a cancel during a server-requested wait aborts the request."""
        cancel = Mock()
        cancel.is_set.return_value = False
        cancel.wait.return_value = True
        connector.enqueue(maxlag_response("5"), OK)

        with pytest.raises(RequestCancelledError):
            executor.execute({"action": "query"}, cancel=cancel)

        cancel.wait.assert_called_once_with(5)
        assert len(connector.request_history) == 1

    def test_deadline_stops_long_wait(self, session, connector):
        """Test a wait that would pass the deadline is not started."""
        executor = RequestExecutor(session, connector, sleep=Mock(), clock=lambda: 100.0)
        connector.enqueue(maxlag_response("10"), OK)

        with pytest.raises(RequestCancelledError):
            executor.execute({"action": "query"}, deadline=105.0)

        assert connector.request_history[0].timeout == 5.0

    def test_past_deadline(self, session, connector):
        """Test an expired deadline prevents any request."""
        executor = RequestExecutor(session, connector, sleep=Mock(), clock=lambda: 100.0)

        with pytest.raises(RequestCancelledError):
            executor.execute({"action": "query"}, deadline=99.0)

        assert connector.request_history == []
