"""
Scripted connector for offline testing.

Replays canned API responses without any network access and records every
request it receives, so tests can assert on exactly what went over the
wire.
"""

import logging
import threading
import time
from collections import deque
from typing import Callable, Deque, List, Optional, Union

from ..core.connector import Connector, ConnectorRequest, ConnectorResponse

logger = logging.getLogger(__name__)


ScriptItem = Union[str, ConnectorResponse, Exception]


class ScriptedConnector(Connector):
    """
    Deterministic connector driven by a script of responses.

    Features:
    - Queued responses (plain text, full responses or exceptions to raise)
    - Optional handler callable for responses computed from the request
    - Configurable latency simulation
    - Thread-safe request history
    """

    def __init__(
        self,
        responses: Optional[List[ScriptItem]] = None,
        handler: Optional[Callable[[ConnectorRequest], ScriptItem]] = None,
        simulate_latency_ms: int = 0,
    ):
        """
        Initialize the scripted connector.

        Args:
            responses: Items returned in order, one per request
            handler: Fallback used when the queue is empty
            simulate_latency_ms: Simulated latency in milliseconds (default: 0)
        """
        self._queue: Deque[ScriptItem] = deque(responses or [])
        self.handler = handler
        self.simulate_latency_ms = simulate_latency_ms
        self.request_history: List[ConnectorRequest] = []
        self.cookies_cleared = 0
        self._lock = threading.Lock()

        logger.debug(f"ScriptedConnector initialized with {len(self._queue)} responses")

    def enqueue(self, *items: ScriptItem) -> None:
        """Append responses to the script."""
        with self._lock:
            self._queue.extend(items)

    def fetch(self, request: ConnectorRequest) -> ConnectorResponse:
        """
        Return the next scripted response.

        Args:
            request: The connector request

        Returns:
            ConnectorResponse from the script

        Raises:
            Any exception placed in the script
        """
        with self._lock:
            self.request_history.append(request)
            item = self._queue.popleft() if self._queue else None

        if self.simulate_latency_ms > 0:
            time.sleep(self.simulate_latency_ms / 1000.0)

        if item is None:
            if self.handler is None:
                raise AssertionError(
                    f"ScriptedConnector has no response for request #{len(self.request_history)}"
                )
            item = self.handler(request)

        if isinstance(item, Exception):
            raise item
        if isinstance(item, ConnectorResponse):
            return item
        return ConnectorResponse(status_code=200, text=item, headers={}, duration_ms=0)

    @property
    def remaining(self) -> int:
        """Number of scripted responses not yet consumed."""
        with self._lock:
            return len(self._queue)

    def get_name(self) -> str:
        """Return the connector name."""
        return "scripted"

    def clear_cookies(self) -> None:
        self.cookies_cleared += 1

    def reset(self) -> None:
        """Clear request history and any remaining script."""
        with self._lock:
            self.request_history.clear()
            self._queue.clear()
