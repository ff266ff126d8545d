"""
Session state: connection identity plus mutable request configuration.

Identity (scheme, host, script path) is fixed at construction. Everything
else may be changed between or during operations from any thread; the
default request parameters are replaced wholesale under a lock so that
readers always see a complete, consistent set.
"""

import logging
import sys
import threading
from typing import Any, Dict, Iterable, Optional

from .models import AssertionMode


logger = logging.getLogger(__name__)


DEFAULT_SLOWMAX = 50
DEFAULT_MAX_PAGE_SIZE = 500
HIGH_SLOWMAX = 500
HIGH_MAX_PAGE_SIZE = 5000


class Session:
    """
    Per-wiki session state shared by every request.

    Attributes are exposed as properties; setters that affect the wire
    (maxlag, assertion mode, redirect resolution) rewrite the default
    parameter map.
    """

    def __init__(
        self,
        host: str,
        script_path: str = "/w",
        scheme: str = "https://",
        max_retries: int = 2,
        read_timeout: float = 180.0,
        maxlag: int = 5,
        throttle_interval: float = 10.0,
        user_agent: Optional[str] = None,
        compress: bool = True,
        upload_chunk_exponent: int = 22,
    ):
        """
        Initialize the session.

        Args:
            host: Wiki host name (e.g., 'en.wikipedia.org')
            script_path: Path to api.php/index.php (e.g., '/w')
            scheme: URL scheme including separator ('https://')
            max_retries: Extra attempts after a transport failure
            read_timeout: Read timeout in seconds
            maxlag: Replication lag threshold in seconds, negative disables
            throttle_interval: Minimum seconds between write operations
            user_agent: User-Agent header (important for MediaWiki etiquette)
            compress: Whether to request gzip-compressed responses
            upload_chunk_exponent: Upload chunk size as a power of two
        """
        self._scheme = scheme
        self._host = host
        self._script_path = script_path.rstrip("/")

        self._lock = threading.RLock()
        self._default_params: Dict[str, str] = {"format": "xml"}
        self._max_retries = 0
        self._read_timeout = 0.0
        self._throttle_interval = 0.0
        self._query_limit = sys.maxsize
        self._maxlag = -1
        self._assertion_mode = AssertionMode.NONE
        self._resolve_redirects = False
        self._slowmax = DEFAULT_SLOWMAX
        self._max_page_size = DEFAULT_MAX_PAGE_SIZE
        self._username: Optional[str] = None
        self._user_agent = ""
        self._compress = True

        self.max_retries = max_retries
        self.read_timeout = read_timeout
        self.throttle_interval = throttle_interval
        self.maxlag = maxlag
        self.user_agent = user_agent or f"wikiclient/0.1 ({host})"
        self.compress = compress
        self.upload_chunk_exponent = upload_chunk_exponent

    @classmethod
    def from_config(cls, config) -> "Session":
        """Build a session from a WikiConfig."""
        wiki = config.get_wiki_config()
        client = config.get_client_config()
        session = cls(
            host=wiki["host"],
            script_path=wiki.get("script_path", "/w"),
            scheme=wiki.get("scheme", "https://"),
            max_retries=client.get("max_retries", 2),
            read_timeout=client.get("read_timeout", 180.0),
            maxlag=client.get("maxlag", 5),
            throttle_interval=client.get("throttle_seconds", 10.0),
            user_agent=client.get("user_agent"),
            compress=client.get("compress", True),
            upload_chunk_exponent=config.get("upload.chunk_size_exponent", 22),
        )
        session.resolve_redirects = bool(client.get("resolve_redirects", False))
        assertion = client.get("assert")
        if assertion == "bot":
            session.assertion_mode = AssertionMode.BOT
        elif assertion == "user":
            session.assertion_mode = AssertionMode.USER
        return session

    # identity

    @property
    def scheme(self) -> str:
        return self._scheme

    @property
    def host(self) -> str:
        return self._host

    @property
    def script_path(self) -> str:
        return self._script_path

    @property
    def api_url(self) -> str:
        return f"{self._scheme}{self._host}{self._script_path}/api.php"

    @property
    def index_url(self) -> str:
        return f"{self._scheme}{self._host}{self._script_path}/index.php"

    # default parameters

    def default_params(self) -> Dict[str, str]:
        """Return a snapshot of the default request parameters."""
        with self._lock:
            return dict(self._default_params)

    def _update_default(self, key: str, value: Optional[str]) -> None:
        # copy-on-write: readers holding an older snapshot are unaffected
        with self._lock:
            params = dict(self._default_params)
            if value is None:
                params.pop(key, None)
            else:
                params[key] = value
            self._default_params = params

    @property
    def maxlag(self) -> int:
        with self._lock:
            return self._maxlag

    @maxlag.setter
    def maxlag(self, seconds: int) -> None:
        with self._lock:
            self._maxlag = seconds
            self._update_default("maxlag", str(seconds) if seconds >= 0 else None)

    @property
    def assertion_mode(self) -> AssertionMode:
        with self._lock:
            return self._assertion_mode

    @assertion_mode.setter
    def assertion_mode(self, mode: AssertionMode) -> None:
        with self._lock:
            self._assertion_mode = mode
            if mode & AssertionMode.BOT:
                value = "bot"
            elif mode & AssertionMode.USER:
                value = "user"
            else:
                value = None
            self._update_default("assert", value)

    @property
    def resolve_redirects(self) -> bool:
        with self._lock:
            return self._resolve_redirects

    @resolve_redirects.setter
    def resolve_redirects(self, enabled: bool) -> None:
        with self._lock:
            self._resolve_redirects = enabled
            self._update_default("redirects", "1" if enabled else None)

    # plain configuration

    @property
    def max_retries(self) -> int:
        with self._lock:
            return self._max_retries

    @max_retries.setter
    def max_retries(self, retries: int) -> None:
        if retries < 0:
            raise ValueError("max_retries cannot be negative")
        with self._lock:
            self._max_retries = retries

    @property
    def read_timeout(self) -> float:
        with self._lock:
            return self._read_timeout

    @read_timeout.setter
    def read_timeout(self, seconds: float) -> None:
        with self._lock:
            self._read_timeout = seconds

    @property
    def user_agent(self) -> str:
        with self._lock:
            return self._user_agent

    @user_agent.setter
    def user_agent(self, value: str) -> None:
        with self._lock:
            self._user_agent = value

    @property
    def compress(self) -> bool:
        with self._lock:
            return self._compress

    @compress.setter
    def compress(self, enabled: bool) -> None:
        with self._lock:
            self._compress = bool(enabled)

    def request_headers(self) -> Dict[str, str]:
        """HTTP headers for the next request, taken from the current settings."""
        with self._lock:
            return {
                "User-Agent": self._user_agent,
                "Accept-Encoding": "gzip" if self._compress else "identity",
            }

    @property
    def throttle_interval(self) -> float:
        with self._lock:
            return self._throttle_interval

    @throttle_interval.setter
    def throttle_interval(self, seconds: float) -> None:
        with self._lock:
            self._throttle_interval = seconds

    @property
    def query_limit(self) -> int:
        with self._lock:
            return self._query_limit

    @query_limit.setter
    def query_limit(self, limit: int) -> None:
        if limit < 0:
            raise ValueError("Negative query limits don't make sense")
        with self._lock:
            self._query_limit = limit

    @property
    def slowmax(self) -> int:
        """Maximum titles or IDs per request."""
        with self._lock:
            return self._slowmax

    @property
    def max_page_size(self) -> int:
        """Maximum records the server returns per list query page."""
        with self._lock:
            return self._max_page_size

    @property
    def username(self) -> Optional[str]:
        with self._lock:
            return self._username

    @property
    def logged_in(self) -> bool:
        return self.username is not None

    # credentials

    def set_user(self, username: str, rights: Iterable[str] = ()) -> None:
        """Record a successful login and derive query limits from user rights."""
        with self._lock:
            self._username = username
            self.apply_user_rights(rights)

    def apply_user_rights(self, rights: Iterable[str]) -> None:
        """Raise the batch and page limits for accounts with ``apihighlimits``."""
        with self._lock:
            if "apihighlimits" in set(rights):
                self._slowmax = HIGH_SLOWMAX
                self._max_page_size = HIGH_MAX_PAGE_SIZE
            else:
                self._slowmax = DEFAULT_SLOWMAX
                self._max_page_size = DEFAULT_MAX_PAGE_SIZE

    def reset_credentials(self) -> None:
        """Clear login state and derived limits."""
        with self._lock:
            self._username = None
            self._slowmax = DEFAULT_SLOWMAX
            self._max_page_size = DEFAULT_MAX_PAGE_SIZE
        logger.debug(f"Credentials cleared for {self._host}")

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, Session):
            return NotImplemented
        return (self._scheme, self._host, self._script_path) == (
            other._scheme, other._host, other._script_path
        )

    def __hash__(self) -> int:
        return hash((self._scheme, self._host, self._script_path))

    def __repr__(self) -> str:
        return f"Session({self.api_url!r}, user={self.username!r})"
