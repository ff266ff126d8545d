"""
HTTP connector: one wire request per call over a shared requests.Session.
"""

import logging
import time
from typing import Dict, Optional

import requests

from ...core.connector import Connector, ConnectorRequest, ConnectorResponse
from ...core.exceptions import HttpStatusError, TransportError


logger = logging.getLogger(__name__)


class HttpConnector(Connector):
    """
    HTTP transport for the wiki API.

    Supports:
    - GET, URL-form POST and multipart POST requests
    - gzip negotiation (decoded transparently by requests)
    - Cookie persistence across requests for login sessions

    The underlying requests.Session is shared by all threads using this
    connector; its connection pool is safe for concurrent use.
    """

    def __init__(
        self,
        name: str = "http",
        timeout: float = 180.0,
        connect_timeout: float = 30.0,
        user_agent: Optional[str] = None,
        compress: bool = True,
    ):
        """
        Initialize the HTTP connector.

        Args:
            name: Connector name
            timeout: Default read timeout in seconds
            connect_timeout: Connection timeout in seconds
            user_agent: Custom User-Agent header
            compress: Whether to accept gzip; False sends Accept-Encoding: identity
        """
        self.name = name
        self.timeout = timeout
        self.connect_timeout = connect_timeout
        self.user_agent = user_agent or "wikiclient/0.1"
        self.compress = compress
        self.session = requests.Session()

    def fetch(self, request: ConnectorRequest) -> ConnectorResponse:
        """
        Send a single request.

        Args:
            request: The request to execute

        Returns:
            ConnectorResponse with the decoded body

        Raises:
            TransportError: on connection failure, timeout or 5xx status
            HttpStatusError: on other non-200 status codes
        """
        headers = self._build_headers(request.headers)
        timeout = (self.connect_timeout, request.timeout or self.timeout)
        method = request.method.upper()

        start_time = time.time()
        try:
            if method == "GET":
                response = self.session.get(
                    request.uri,
                    params=request.params,
                    headers=headers,
                    timeout=timeout,
                )
            elif method == "POST":
                if request.files:
                    # text fields travel as filename-less parts
                    parts = {k: (None, v) for k, v in (request.data or {}).items()}
                    for key, (filename, payload) in request.files.items():
                        parts[key] = (filename, payload, "application/octet-stream")
                    response = self.session.post(
                        request.uri,
                        params=request.params,
                        files=parts,
                        headers=headers,
                        timeout=timeout,
                    )
                else:
                    response = self.session.post(
                        request.uri,
                        params=request.params,
                        data=request.data or {},
                        headers=headers,
                        timeout=timeout,
                    )
            else:
                raise ValueError(f"Unsupported HTTP method: {request.method}")
        except requests.exceptions.RequestException as e:
            raise TransportError(f"{method} {request.uri} failed: {e}", url=request.uri) from e

        duration_ms = int((time.time() - start_time) * 1000)
        logger.debug(
            f"{method} {response.url} -> {response.status_code} in {duration_ms}ms"
        )

        if response.status_code >= 500:
            raise TransportError(
                f"Server error {response.status_code} from {request.uri}",
                url=request.uri,
            )
        if response.status_code != 200:
            raise HttpStatusError(
                f"HTTP {response.status_code} from {request.uri}",
                status_code=response.status_code,
                url=request.uri,
            )

        # the API always answers in UTF-8
        response.encoding = "utf-8"
        return ConnectorResponse(
            status_code=response.status_code,
            text=response.text,
            headers=dict(response.headers),
            duration_ms=duration_ms,
        )

    def _build_headers(self, extra: Optional[Dict[str, str]]) -> Dict[str, str]:
        # requests.Session adds "gzip, deflate" unless told otherwise
        headers = {
            "User-Agent": self.user_agent,
            "Accept-Encoding": "gzip" if self.compress else "identity",
        }
        if extra:
            headers.update(extra)
        return headers

    def get_name(self) -> str:
        """Return the connector name."""
        return self.name

    def clear_cookies(self) -> None:
        """Forget login cookies."""
        self.session.cookies.clear()

    def close(self) -> None:
        """Close the session."""
        if self.session:
            self.session.close()
