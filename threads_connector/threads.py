"""Threads Graph API client.

Wraps the container-based publishing flow: create a media container,
poll it until the platform has finished processing it, then publish.
Follows the live/dry-run pattern used across the connector: in dry-run
mode, requests are recorded locally without any API calls.
"""

from __future__ import annotations

import itertools
import json
import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable

import requests

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://graph.threads.net/v1.0"


class ContainerStatus(Enum):
    IN_PROGRESS = "IN_PROGRESS"
    FINISHED = "FINISHED"
    PUBLISHED = "PUBLISHED"
    ERROR = "ERROR"
    EXPIRED = "EXPIRED"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def parse(cls, value: str | None) -> ContainerStatus:
        try:
            return cls(value or "")
        except ValueError:
            return cls.UNKNOWN


READY_STATUSES = (ContainerStatus.FINISHED, ContainerStatus.PUBLISHED)
FAILED_STATUSES = (ContainerStatus.ERROR, ContainerStatus.EXPIRED)


class ThreadsError(RuntimeError):
    """Base class for failures talking to the Threads API."""


class TransportError(ThreadsError):
    """The API could not be reached."""

    def __init__(self, operation: str, cause: Exception) -> None:
        self.operation = operation
        self.cause = cause
        super().__init__(f"{operation} failed: {cause}")


class RemoteAPIError(ThreadsError):
    """The API answered with a non-success HTTP status."""

    def __init__(
        self,
        status: str,
        message: str,
        user_title: str | None = None,
        user_message: str | None = None,
    ) -> None:
        self.status = status
        self.message = message
        self.user_title = user_title
        self.user_message = user_message
        text = f"API error: {status} - {message}"
        if user_title:
            text += f" ({user_title}: {user_message or ''})"
        super().__init__(text)


class ContainerFailedError(ThreadsError):
    """The container reported ERROR or EXPIRED."""

    def __init__(self, creation_id: str, status: ContainerStatus, message: str = "") -> None:
        self.creation_id = creation_id
        self.status = status
        self.message = message
        if status == ContainerStatus.EXPIRED:
            text = f"container {creation_id} expired before publishing"
        else:
            text = f"container {creation_id} processing failed: {message or 'unknown error'}"
        super().__init__(text)


class ReadinessTimeoutError(ThreadsError):
    """The container did not become ready before the deadline."""

    def __init__(self, creation_id: str, timeout: float) -> None:
        self.creation_id = creation_id
        self.timeout = timeout
        super().__init__(
            f"timeout waiting for container {creation_id} to be ready after {timeout:.0f}s"
        )


class DecodeError(ThreadsError):
    """A success response carried a body that could not be decoded."""


@dataclass
class ThreadsConfig:
    user_id: str
    access_token: str
    base_url: str = DEFAULT_BASE_URL
    request_timeout: float = 60.0
    poll_interval: float = 2.0
    ready_timeout: float = 30.0


@dataclass
class APIErrorDetail:
    message: str = ""
    type: str = ""
    code: int = 0
    error_subcode: int = 0
    error_user_title: str = ""
    error_user_msg: str = ""
    fbtrace_id: str = ""

    @classmethod
    def from_envelope(cls, data: Any) -> APIErrorDetail | None:
        if not isinstance(data, dict) or not isinstance(data.get("error"), dict):
            return None
        err = data["error"]
        return cls(
            message=str(err.get("message") or ""),
            type=str(err.get("type") or ""),
            code=_as_int(err.get("code")),
            error_subcode=_as_int(err.get("error_subcode")),
            error_user_title=str(err.get("error_user_title") or ""),
            error_user_msg=str(err.get("error_user_msg") or ""),
            fbtrace_id=str(err.get("fbtrace_id") or ""),
        )


@dataclass
class ContainerCreated:
    id: str

    @classmethod
    def from_json(cls, data: Any) -> ContainerCreated:
        return cls(id=_require_id(data, "create container"))


@dataclass
class ContainerStatusResponse:
    id: str
    status: ContainerStatus
    error_message: str = ""

    @classmethod
    def from_json(cls, data: Any) -> ContainerStatusResponse:
        if not isinstance(data, dict):
            raise DecodeError("container status: expected a JSON object")
        return cls(
            id=str(data.get("id") or ""),
            status=ContainerStatus.parse(data.get("status")),
            error_message=str(data.get("error_message") or ""),
        )


@dataclass
class PublishResult:
    id: str

    @classmethod
    def from_json(cls, data: Any) -> PublishResult:
        return cls(id=_require_id(data, "publish"))


@dataclass
class TokenInfo:
    is_valid: bool = False
    expires_at: int = 0
    data_access_expires_at: int = 0
    scopes: list[str] = field(default_factory=list)
    user_id: str = ""
    application: str = ""

    @classmethod
    def from_json(cls, data: Any) -> TokenInfo:
        if not isinstance(data, dict) or not isinstance(data.get("data"), dict):
            raise DecodeError("debug_token: missing 'data' object")
        info = data["data"]
        return cls(
            is_valid=bool(info.get("is_valid", False)),
            expires_at=_as_int(info.get("expires_at")),
            data_access_expires_at=_as_int(info.get("data_access_expires_at")),
            scopes=[str(s) for s in info.get("scopes") or []],
            user_id=str(info.get("user_id") or ""),
            application=str(info.get("application") or ""),
        )

    @property
    def expires(self) -> datetime | None:
        # expires_at == 0 means a non-expiring token
        if not self.expires_at:
            return None
        return datetime.fromtimestamp(self.expires_at, tz=timezone.utc)

    def days_remaining(self, now: datetime | None = None) -> int | None:
        expires = self.expires
        if expires is None:
            return None
        current = now or datetime.now(timezone.utc)
        return int((expires - current).total_seconds() // 86400)


def _as_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def _require_id(data: Any, operation: str) -> str:
    if not isinstance(data, dict) or not data.get("id"):
        raise DecodeError(f"{operation}: response has no 'id'")
    return str(data["id"])


def parse_error(status: str, body: str) -> RemoteAPIError:
    """Build a RemoteAPIError from a Graph API error envelope.

    Falls back to the raw body text when the envelope cannot be parsed.
    """
    try:
        detail = APIErrorDetail.from_envelope(json.loads(body))
    except ValueError:
        detail = None
    if detail is None or not detail.message:
        return RemoteAPIError(status, body)
    return RemoteAPIError(
        status,
        detail.message,
        user_title=detail.error_user_title or None,
        user_message=detail.error_user_msg or None,
    )


class ThreadsClient:
    """Client for publishing to Threads through the Graph API."""

    def __init__(
        self,
        config: ThreadsConfig,
        live: bool = True,
        session: requests.Session | None = None,
        clock: Callable[[], float] | None = None,
        sleep_func: Callable[[float], None] | None = None,
    ) -> None:
        self.config = config
        self._live = live
        self._session = session or requests.Session()
        self._clock = clock or time.monotonic
        self._sleep = sleep_func or time.sleep
        self._dry_requests: list[dict[str, Any]] = []
        self._dry_lock = threading.Lock()
        self._container_ids = itertools.count(1)
        self._post_ids = itertools.count(1)

    def __enter__(self) -> ThreadsClient:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def close(self) -> None:
        self._session.close()

    def _request(
        self,
        method: str,
        url: str,
        operation: str,
        params: dict[str, str] | None = None,
        data: dict[str, str] | None = None,
    ) -> Any:
        """Perform one API call and return the decoded JSON body."""
        try:
            resp = self._session.request(
                method, url, params=params, data=data,
                timeout=self.config.request_timeout,
            )
        except requests.RequestException as exc:
            logger.error("[Threads API] %s request failed: %s", operation, exc)
            raise TransportError(operation, exc) from exc

        status = f"{resp.status_code} {resp.reason or ''}".strip()
        body = resp.text
        _log_response(operation, status, body)

        if not 200 <= resp.status_code < 300:
            raise parse_error(status, body)

        try:
            return json.loads(body)
        except ValueError as exc:
            raise DecodeError(f"{operation}: invalid JSON response: {body[:200]}") from exc

    def create_container(
        self,
        text: str = "",
        image_url: str | None = None,
        reply_to_id: str | None = None,
        link_attachment: str | None = None,
    ) -> str:
        """Create a media container and return its creation id."""
        media_type = "IMAGE" if image_url else "TEXT"
        form: dict[str, str] = {
            "access_token": self.config.access_token,
            "media_type": media_type,
        }
        if image_url:
            form["image_url"] = image_url
        if text:
            form["text"] = text
        if reply_to_id:
            form["reply_to_id"] = reply_to_id
        # Link preview cards are only accepted on text posts
        if link_attachment and media_type == "TEXT":
            form["link_attachment"] = link_attachment

        logger.info(
            "Creating media container. Type: %s, HasText: %s, HasImage: %s, "
            "ReplyTo: %s, HasLinkAttachment: %s",
            media_type, bool(text), bool(image_url), reply_to_id or "-",
            "link_attachment" in form,
        )

        if not self._live:
            with self._dry_lock:
                self._dry_requests.append({"endpoint": "threads", **_redact(form)})
                return f"dry-container-{next(self._container_ids)}"

        url = f"{self.config.base_url}/{self.config.user_id}/threads"
        data = self._request("POST", url, "create container", data=form)
        return ContainerCreated.from_json(data).id

    def get_container_status(self, creation_id: str) -> ContainerStatusResponse:
        if not self._live:
            return ContainerStatusResponse(id=creation_id, status=ContainerStatus.FINISHED)

        url = f"{self.config.base_url}/{creation_id}"
        data = self._request(
            "GET", url, "container status",
            params={
                "fields": "status,error_message",
                "access_token": self.config.access_token,
            },
        )
        return ContainerStatusResponse.from_json(data)

    def wait_until_ready(self, creation_id: str) -> ContainerStatusResponse:
        """Poll a container until it is ready to publish.

        Returns on FINISHED or PUBLISHED, raises ContainerFailedError on
        ERROR or EXPIRED, and ReadinessTimeoutError once ``ready_timeout``
        has elapsed. Any other status keeps polling every ``poll_interval``.
        """
        start = self._clock()
        while self._clock() - start < self.config.ready_timeout:
            status = self.get_container_status(creation_id)
            logger.info("[Threads API] Container %s status: %s", creation_id, status.status.value)

            if status.status in READY_STATUSES:
                return status
            if status.status in FAILED_STATUSES:
                raise ContainerFailedError(creation_id, status.status, status.error_message)

            self._sleep(self.config.poll_interval)

        raise ReadinessTimeoutError(creation_id, self.config.ready_timeout)

    def publish(self, creation_id: str) -> str:
        """Publish a ready container and return the published post id."""
        logger.info("Publishing media container: %s", creation_id)

        if not self._live:
            with self._dry_lock:
                self._dry_requests.append({"endpoint": "threads_publish", "creation_id": creation_id})
                return f"dry-post-{next(self._post_ids)}"

        url = f"{self.config.base_url}/{self.config.user_id}/threads_publish"
        data = self._request(
            "POST", url, "publish",
            data={
                "creation_id": creation_id,
                "access_token": self.config.access_token,
            },
        )
        return PublishResult.from_json(data).id

    def publish_unit(
        self,
        text: str = "",
        image_url: str | None = None,
        reply_to_id: str | None = None,
    ) -> str:
        """Run create, wait and publish for a single post."""
        creation_id = self.create_container(text, image_url, reply_to_id)
        self.wait_until_ready(creation_id)
        return self.publish(creation_id)

    def validate_token(self) -> TokenInfo:
        """Inspect the access token through the debug_token endpoint."""
        if not self._live:
            return TokenInfo(is_valid=True, user_id=self.config.user_id)

        data = self._request(
            "GET", f"{self.config.base_url}/debug_token", "debug token",
            params={
                "access_token": self.config.access_token,
                "input_token": self.config.access_token,
            },
        )
        return TokenInfo.from_json(data)

    @property
    def dry_requests(self) -> list[dict[str, Any]]:
        return list(self._dry_requests)

    @property
    def containers_created(self) -> int:
        return sum(1 for r in self._dry_requests if r["endpoint"] == "threads")

    @property
    def posts_published(self) -> int:
        return sum(1 for r in self._dry_requests if r["endpoint"] == "threads_publish")


def _redact(form: dict[str, str]) -> dict[str, str]:
    return {k: v for k, v in form.items() if k != "access_token"}


def _log_response(operation: str, status: str, body: str) -> None:
    if not logger.isEnabledFor(logging.DEBUG):
        return
    try:
        rendered = json.dumps(json.loads(body), ensure_ascii=False, indent=2)
    except ValueError:
        rendered = body
    logger.debug("[Threads API] %s response: Status=%s Body=%s", operation, status, rendered)
