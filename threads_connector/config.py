"""Configuration loader for threads-connector.

Loads an optional YAML config file with environment variable overrides.
Environment variables use the same names as the container deployment
(THREADS_USER_ID, THREADS_ACCESS_TOKEN, API_KEY, PORT, ...).
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from threads_connector.threads import DEFAULT_BASE_URL


class ConfigError(ValueError):
    """Raised when required settings are missing or malformed."""


@dataclass
class ConnectorConfig:
    """Settings for the Threads client, the sequencer and the HTTP service."""
    threads_user_id: str = ""
    threads_access_token: str = ""
    threads_base_url: str = DEFAULT_BASE_URL
    api_key: str = ""
    host: str = "0.0.0.0"
    port: int = 8080
    char_limit: int = 500
    poll_interval: float = 2.0
    ready_timeout: float = 30.0
    publish_delay: float = 1.0
    url_reply_delay: float = 5.0
    request_timeout: float = 60.0
    dry_run: bool = False
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        for name in ("char_limit", "poll_interval", "ready_timeout", "request_timeout"):
            if getattr(self, name) <= 0:
                raise ConfigError(f"{name} must be positive, got {getattr(self, name)}")
        for name in ("publish_delay", "url_reply_delay"):
            if getattr(self, name) < 0:
                raise ConfigError(f"{name} must not be negative, got {getattr(self, name)}")

    def missing_required(self) -> list[str]:
        missing = []
        if not self.threads_user_id:
            missing.append("THREADS_USER_ID")
        if not self.threads_access_token:
            missing.append("THREADS_ACCESS_TOKEN")
        if not self.api_key:
            missing.append("API_KEY")
        return missing


def load_config(path: Path | None = None) -> ConnectorConfig:
    """Load config from YAML file with env var overrides.

    Env vars override YAML values. Mapping:
      THREADS_USER_ID      → threads.user_id
      THREADS_ACCESS_TOKEN → threads.access_token
      THREADS_BASE_URL     → threads.base_url
      API_KEY              → server.api_key
      HOST                 → server.host
      PORT                 → server.port
      THREADS_DRY_RUN      → dry_run
      LOG_LEVEL            → log_level
    """
    raw: dict[str, Any] = {}
    if path and path.exists():
        raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    if not isinstance(raw, dict):
        raise ConfigError(f"{path}: top level must be a mapping")

    threads = _section(raw, "threads")
    server = _section(raw, "server")
    publishing = _section(raw, "publishing")

    return ConnectorConfig(
        threads_user_id=_env_or("THREADS_USER_ID", _str(threads.get("user_id"))),
        threads_access_token=_env_or(
            "THREADS_ACCESS_TOKEN",
            _str(threads.get("access_token")),
        ),
        threads_base_url=_env_or(
            "THREADS_BASE_URL",
            _str(threads.get("base_url"), DEFAULT_BASE_URL),
        ).rstrip("/"),
        api_key=_env_or("API_KEY", _str(server.get("api_key"))),
        host=_env_or("HOST", _str(server.get("host"), "0.0.0.0")),
        port=_to_number(int, "PORT", _env_or("PORT", server.get("port")), 8080),
        char_limit=_to_number(int, "char_limit", publishing.get("char_limit"), 500),
        poll_interval=_to_number(float, "poll_interval", publishing.get("poll_interval"), 2.0),
        ready_timeout=_to_number(float, "ready_timeout", publishing.get("ready_timeout"), 30.0),
        publish_delay=_to_number(float, "publish_delay", publishing.get("publish_delay"), 1.0),
        url_reply_delay=_to_number(
            float, "url_reply_delay", publishing.get("url_reply_delay"), 5.0,
        ),
        request_timeout=_to_number(
            float, "request_timeout", publishing.get("request_timeout"), 60.0,
        ),
        dry_run=_env_bool("THREADS_DRY_RUN", bool(raw.get("dry_run", False))),
        log_level=_env_or("LOG_LEVEL", _str(raw.get("log_level"), "INFO")).upper(),
    )


def _section(raw: dict[str, Any], name: str) -> dict[str, Any]:
    value = raw.get(name) or {}
    if not isinstance(value, dict):
        raise ConfigError(f"'{name}' section must be a mapping")
    return value


def _env_or(name: str, default: Any) -> Any:
    return os.environ.get(name, default)


def _env_bool(name: str, default: bool) -> bool:
    val = os.environ.get(name)
    if val is None:
        return default
    return val.lower() in ("true", "1", "yes")


def _str(value: Any, default: str = "") -> str:
    # blank YAML keys load as None
    return default if value is None else str(value)


def _to_number(kind: type, name: str, value: Any, default: Any) -> Any:
    if value is None or value == "":
        return default
    try:
        return kind(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{name} must be a number, got {value!r}") from exc
