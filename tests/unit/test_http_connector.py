"""
Unit tests for the HTTP connector.

requests is mocked; no network access is needed.
"""

from unittest.mock import MagicMock

import pytest
import requests

from wikiclient.connectors import HttpConnector
from wikiclient.core.connector import ConnectorRequest
from wikiclient.core.exceptions import HttpStatusError, TransportError


API = "https://test.wikipedia.org/w/api.php"


def fake_response(status_code: int = 200, text: str = "<api />", headers=None) -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    response.text = text
    response.headers = headers or {"Content-Type": "text/xml; charset=utf-8"}
    response.url = API
    return response


@pytest.fixture
def http() -> HttpConnector:
    connector = HttpConnector(user_agent="wikiclient-tests/1.0", timeout=60.0)
    connector.session = MagicMock()
    return connector


class TestHttpConnector:
    """Tests for HttpConnector."""

    def test_get(self, http):
        """Test GET requests send params, headers and timeouts."""
        http.session.get.return_value = fake_response(headers={"X-Database-Lag": "3"})

        response = http.fetch(ConnectorRequest(uri=API, params={"action": "query"}, timeout=30.0))

        assert response.status_code == 200
        assert response.text == "<api />"
        assert response.header("x-database-lag") == "3"
        _, kwargs = http.session.get.call_args
        assert kwargs["params"] == {"action": "query"}
        assert kwargs["headers"]["User-Agent"] == "wikiclient-tests/1.0"
        assert kwargs["headers"]["Accept-Encoding"] == "gzip"
        assert kwargs["timeout"] == (30.0, 30.0)

    def test_no_compression_sends_identity(self):
        """Test turning gzip off overrides the requests default on the wire."""
        connector = HttpConnector(compress=False)
        connector.session = MagicMock()
        connector.session.get.return_value = fake_response()

        connector.fetch(ConnectorRequest(uri=API))

        _, kwargs = connector.session.get.call_args
        assert kwargs["headers"]["Accept-Encoding"] == "identity"

    def test_request_headers_win(self, http):
        """Test per-request headers replace the connector defaults."""
        http.session.post.return_value = fake_response()

        http.fetch(ConnectorRequest(
            uri=API,
            method="POST",
            data={"text": "x"},
            headers={"User-Agent": "bot/2.0", "Accept-Encoding": "identity"},
        ))

        _, kwargs = http.session.post.call_args
        assert kwargs["headers"]["User-Agent"] == "bot/2.0"
        assert kwargs["headers"]["Accept-Encoding"] == "identity"

    def test_form_post(self, http):
        """Test plain POST bodies are form encoded."""
        http.session.post.return_value = fake_response()

        http.fetch(ConnectorRequest(uri=API, method="POST", params={"action": "edit"}, data={"text": "x"}))

        _, kwargs = http.session.post.call_args
        assert kwargs["data"] == {"text": "x"}
        assert "files" not in kwargs

    def test_multipart_post(self, http):
        """Test file parts force a multipart body with text fields as parts."""
        http.session.post.return_value = fake_response()

        http.fetch(ConnectorRequest(
            uri=API,
            method="POST",
            params={"action": "upload"},
            data={"filename": "X.png", "token": "t"},
            files={"file": ("X.png", b"\x89PNG")},
        ))

        _, kwargs = http.session.post.call_args
        assert kwargs["files"] == {
            "filename": (None, "X.png"),
            "token": (None, "t"),
            "file": ("X.png", b"\x89PNG", "application/octet-stream"),
        }

    def test_connection_error(self, http):
        """Test network failures become transport errors."""
        http.session.get.side_effect = requests.exceptions.ConnectionError("refused")

        with pytest.raises(TransportError):
            http.fetch(ConnectorRequest(uri=API))

    def test_server_error_is_transport_error(self, http):
        """Test 5xx responses are retryable transport errors."""
        http.session.get.return_value = fake_response(status_code=503)

        with pytest.raises(TransportError) as exc_info:
            http.fetch(ConnectorRequest(uri=API))

        assert not isinstance(exc_info.value, HttpStatusError)

    def test_client_error(self, http):
        """Test other statuses raise HttpStatusError."""
        http.session.get.return_value = fake_response(status_code=404)

        with pytest.raises(HttpStatusError) as exc_info:
            http.fetch(ConnectorRequest(uri=API))

        assert exc_info.value.status_code == 404

    def test_encoding_forced(self, http):
        """Test the body is decoded as UTF-8."""
        raw = fake_response()
        http.session.get.return_value = raw

        http.fetch(ConnectorRequest(uri=API))

        assert raw.encoding == "utf-8"

    def test_unsupported_method(self, http):
        """Test unsupported methods are rejected."""
        with pytest.raises(ValueError):
            http.fetch(ConnectorRequest(uri=API, method="DELETE"))

    def test_clear_cookies(self, http):
        """Test cookies are cleared on the underlying session."""
        http.clear_cookies()

        http.session.cookies.clear.assert_called_once()
