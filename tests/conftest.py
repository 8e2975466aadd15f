"""Shared fakes for the connector tests: HTTP session, clock and env isolation."""

from __future__ import annotations

import json
from typing import Any

import pytest

CONFIG_ENV_VARS = (
    "THREADS_USER_ID",
    "THREADS_ACCESS_TOKEN",
    "THREADS_BASE_URL",
    "API_KEY",
    "HOST",
    "PORT",
    "THREADS_DRY_RUN",
    "LOG_LEVEL",
)


class FakeResponse:
    def __init__(self, status_code: int = 200, body: Any = None, reason: str = "") -> None:
        self.status_code = status_code
        self.reason = reason or ("OK" if status_code == 200 else "Bad Request")
        if isinstance(body, (dict, list)):
            self.text = json.dumps(body)
        else:
            self.text = body or ""


class FakeSession:
    """Stands in for requests.Session; replays queued responses in order."""

    def __init__(self, responses: list[Any] | None = None) -> None:
        self._responses = list(responses or [])
        self.calls: list[dict[str, Any]] = []
        self.closed = False

    def queue(self, *responses: Any) -> None:
        self._responses.extend(responses)

    def request(self, method, url, params=None, data=None, timeout=None):
        self.calls.append({
            "method": method, "url": url, "params": params,
            "data": data, "timeout": timeout,
        })
        if not self._responses:
            raise AssertionError(f"unexpected request: {method} {url}")
        nxt = self._responses.pop(0)
        if isinstance(nxt, Exception):
            raise nxt
        return nxt

    def close(self) -> None:
        self.closed = True


class FakeClock:
    """Monotonic clock that only moves when sleep() is called."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in CONFIG_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
