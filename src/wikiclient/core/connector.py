"""
Connector interface for sending single wire requests to a wiki.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple


@dataclass
class ConnectorRequest:
    """
    One wire request, already reduced to strings.

    Attributes:
        uri: The endpoint to call (api.php)
        method: HTTP method, GET or POST
        params: Query string parameters
        data: URL-form encoded POST fields
        files: Multipart parts as (filename, bytes); forces a multipart body
        headers: Extra request headers
        timeout: Read timeout in seconds
    """
    uri: str
    method: str = "GET"
    params: Dict[str, str] = field(default_factory=dict)
    data: Optional[Dict[str, str]] = None
    files: Optional[Dict[str, Tuple[str, bytes]]] = None
    headers: Optional[Dict[str, str]] = None
    timeout: Optional[float] = None

    @property
    def action(self) -> Optional[str]:
        """The API action, taken from the query string or POST body."""
        if "action" in self.params:
            return self.params["action"]
        if self.data and "action" in self.data:
            return self.data["action"]
        return None


@dataclass
class ConnectorResponse:
    """
    Response from a connector.

    Attributes:
        status_code: HTTP status code
        text: Decoded response body
        headers: Response headers
        duration_ms: Time taken for the request in milliseconds
    """
    status_code: int
    text: str
    headers: Dict[str, str] = field(default_factory=dict)
    duration_ms: Optional[int] = None

    def header(self, name: str) -> Optional[str]:
        """Case-insensitive header lookup."""
        lowered = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lowered:
                return value
        return None


class Connector(ABC):
    """
    Abstract base class for all connectors.

    A connector performs exactly one attempt per call; retry policy belongs
    to the request executor.
    """

    @abstractmethod
    def fetch(self, request: ConnectorRequest) -> ConnectorResponse:
        """
        Send one request.

        Args:
            request: The request to execute

        Returns:
            ConnectorResponse with the result

        Raises:
            TransportError if the request could not be completed
        """
        pass

    @abstractmethod
    def get_name(self) -> str:
        """Return the connector name/identifier."""
        pass

    def clear_cookies(self) -> None:
        """Drop any session cookies. Connectors without cookies do nothing."""
        pass

    def close(self) -> None:
        """Release any held resources."""
        pass
