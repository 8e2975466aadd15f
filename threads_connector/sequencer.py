"""Publishing sequencer for threaded Threads posts.

Turns one content request into an ordered reply chain: text is split
under the character limit, the image rides on the first post only, and
an external link is appended as a trailing reply. Each post is driven
through create -> wait until ready -> publish before the next starts,
because every reply needs the id of the post it answers.

A failure aborts the remaining posts. Posts already published stay live;
nothing is rolled back.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable

from threads_connector.chunker import split_text
from threads_connector.threads import ThreadsError

if TYPE_CHECKING:
    from threads_connector.threads import ThreadsClient

logger = logging.getLogger(__name__)

CHAR_LIMIT = 500
PUBLISH_DELAY = 1.0
URL_REPLY_DELAY = 5.0


class EmptyContentError(ValueError):
    """Raised when a request has no text, image or link to publish."""

    def __init__(self) -> None:
        super().__init__("no content to post")


class PublishError(RuntimeError):
    """Raised when one step of the sequence fails.

    ``published_ids`` lists the posts that were already live when the
    failure happened; they are not removed.
    """

    def __init__(
        self,
        step: str,
        label: str,
        index: int,
        published_ids: list[str],
        cause: Exception,
    ) -> None:
        self.step = step
        self.label = label
        self.index = index
        self.published_ids = list(published_ids)
        self.cause = cause
        super().__init__(f"{step} failed for {label}: {cause}")


@dataclass
class ContentRequest:
    text: str = ""
    image_url: str | None = None
    url: str | None = None

    def is_empty(self) -> bool:
        return not ((self.text or "").strip() or self.image_url or self.url)


@dataclass
class PostUnit:
    text: str = ""
    image_url: str | None = None
    reply_to_id: str | None = None
    label: str = ""

    @property
    def media_type(self) -> str:
        return "IMAGE" if self.image_url else "TEXT"


@dataclass
class ThreadResult:
    root_id: str
    post_ids: list[str] = field(default_factory=list)
    units: list[PostUnit] = field(default_factory=list)


@dataclass
class SequencerConfig:
    char_limit: int = CHAR_LIMIT
    publish_delay: float = PUBLISH_DELAY
    url_reply_delay: float = URL_REPLY_DELAY


class PublishSequencer:
    """Publishes a content request as a linear reply chain."""

    def __init__(
        self,
        client: ThreadsClient,
        config: SequencerConfig | None = None,
        sleep_func: Callable[[float], None] | None = None,
    ) -> None:
        self._client = client
        self.config = config or SequencerConfig()
        self._sleep = sleep_func or time.sleep

    def plan(self, text: str, image_url: str | None = None) -> list[PostUnit]:
        """Lay out the text/image posts; reply ids are filled in while publishing."""
        chunks = split_text(text, self.config.char_limit)
        if not chunks:
            if image_url:
                return [PostUnit(image_url=image_url, label="image")]
            return []
        return [
            PostUnit(
                text=chunk,
                image_url=image_url if i == 0 else None,
                label=f"chunk {i}",
            )
            for i, chunk in enumerate(chunks)
        ]

    def create_post(
        self,
        text: str = "",
        image_url: str | None = None,
        url: str | None = None,
    ) -> str:
        """Publish the content and return the root post id."""
        return self.publish_thread(ContentRequest(text, image_url, url)).root_id

    def publish_thread(self, request: ContentRequest) -> ThreadResult:
        if request.is_empty():
            raise EmptyContentError()

        units = self.plan(request.text, request.image_url)
        published: list[str] = []

        for index, unit in enumerate(units):
            if published:
                unit.reply_to_id = published[-1]
            published.append(self._publish(unit, index, published))
            self._sleep(self.config.publish_delay)

        if request.url:
            url_unit = PostUnit(text=request.url, label="url")
            if published:
                # Give the parent post time to propagate before replying to it
                logger.info(
                    "Waiting %.0f seconds before creating URL reply...",
                    self.config.url_reply_delay,
                )
                self._sleep(self.config.url_reply_delay)
                url_unit.reply_to_id = published[-1]
                url_unit.label = "url reply"
            post_id = self._publish(url_unit, len(units), published)
            logger.info("URL post published: %s", post_id)
            published.append(post_id)
            units.append(url_unit)

        return ThreadResult(root_id=published[0], post_ids=published, units=units)

    def _publish(self, unit: PostUnit, index: int, published: list[str]) -> str:
        step = "create"
        try:
            creation_id = self._client.create_container(
                unit.text, unit.image_url, unit.reply_to_id,
            )
            step = "wait"
            self._client.wait_until_ready(creation_id)
            step = "publish"
            post_id = self._client.publish(creation_id)
        except ThreadsError as exc:
            logger.error("Failed at %s step for %s: %s", step, unit.label, exc)
            raise PublishError(step, unit.label, index, published, exc) from exc
        logger.info("Published %s as %s", unit.label, post_id)
        return post_id
