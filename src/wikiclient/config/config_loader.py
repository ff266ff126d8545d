"""
Configuration loader for the wiki client.
"""

import copy
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from ..core.exceptions import WikiConfigError


logger = logging.getLogger(__name__)


DEFAULT_CONFIG: Dict[str, Any] = {
    "wiki": {
        "host": "en.wikipedia.org",
        "script_path": "/w",
        "scheme": "https://",
    },
    "client": {
        "max_retries": 2,
        "read_timeout": 180.0,
        "maxlag": 5,
        "throttle_seconds": 10.0,
        "compress": True,
        "resolve_redirects": False,
        "assert": None,
        "user_agent": "wikiclient/0.1 (MediaWiki API client)",
    },
    "upload": {
        "chunk_size_exponent": 22,
    },
}

# env var -> (dotted key, type)
ENV_OVERRIDES = {
    "WIKICLIENT_HOST": ("wiki.host", str),
    "WIKICLIENT_SCRIPT_PATH": ("wiki.script_path", str),
    "WIKICLIENT_SCHEME": ("wiki.scheme", str),
    "WIKICLIENT_MAX_RETRIES": ("client.max_retries", int),
    "WIKICLIENT_READ_TIMEOUT": ("client.read_timeout", float),
    "WIKICLIENT_MAXLAG": ("client.maxlag", int),
    "WIKICLIENT_THROTTLE_SECONDS": ("client.throttle_seconds", float),
    "WIKICLIENT_USER_AGENT": ("client.user_agent", str),
    "WIKICLIENT_UPLOAD_CHUNK_EXPONENT": ("upload.chunk_size_exponent", int),
}


class WikiConfig:
    """
    Configuration for the wiki client.

    Loads a YAML configuration file (or the built-in defaults) and applies
    environment variable overrides on top.
    """

    def __init__(self, config_path: Optional[Path] = None):
        """
        Initialize configuration.

        Args:
            config_path: Path to YAML config file (optional)
        """
        self.config_path = Path(config_path) if config_path else None
        self.config = self._default_config()
        if self.config_path:
            _deep_merge(self.config, self._load_config())
        self._apply_env_overrides()

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from YAML file."""
        if not self.config_path.exists():
            raise FileNotFoundError(f"Config file not found: {self.config_path}")

        logger.info(f"Loading config from: {self.config_path}")

        with open(self.config_path, "r", encoding="utf-8") as f:
            try:
                config = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise WikiConfigError(f"Invalid YAML in {self.config_path}: {e}") from e

        if config is not None and not isinstance(config, dict):
            raise WikiConfigError(f"Config root must be a mapping: {self.config_path}")
        return config or {}

    def _default_config(self) -> Dict[str, Any]:
        """Return default configuration."""
        return copy.deepcopy(DEFAULT_CONFIG)

    def _apply_env_overrides(self) -> None:
        """Apply environment variable overrides to loaded config."""
        for env_name, (key, cast) in ENV_OVERRIDES.items():
            raw = os.environ.get(env_name)
            if raw is None or raw == "":
                continue
            try:
                value = cast(raw)
            except ValueError as e:
                raise WikiConfigError(f"Invalid value for {env_name}: {raw!r}") from e
            self.set(key, value)
            logger.debug(f"Applied env override {env_name} -> {key}")

    def get_wiki_config(self) -> Dict[str, Any]:
        """Get wiki identity configuration."""
        return self.config.get("wiki", {})

    def get_client_config(self) -> Dict[str, Any]:
        """Get request/backoff configuration."""
        return self.config.get("client", {})

    def get_upload_config(self) -> Dict[str, Any]:
        """Get upload configuration."""
        return self.config.get("upload", {})

    def get(self, key: str, default: Any = None) -> Any:
        """Get a configuration value by dotted key."""
        keys = key.split(".")
        value = self.config

        for k in keys:
            if isinstance(value, dict):
                value = value.get(k)
            else:
                return default

        return value if value is not None else default

    def set(self, key: str, value: Any) -> None:
        """Set a configuration value by dotted key."""
        keys = key.split(".")
        target = self.config
        for k in keys[:-1]:
            target = target.setdefault(k, {})
        target[keys[-1]] = value


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> None:
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
