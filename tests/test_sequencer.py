"""Tests for the publish sequencer."""

import pytest

from threads_connector.sequencer import (
    ContentRequest,
    EmptyContentError,
    PublishError,
    PublishSequencer,
    SequencerConfig,
)
from threads_connector.threads import (
    ContainerFailedError,
    ContainerStatus,
    ReadinessTimeoutError,
    RemoteAPIError,
    ThreadsClient,
    ThreadsConfig,
)


class _RecordingClient:
    """Minimal stand-in for ThreadsClient that records every step.

    ``fail`` maps (step, unit index) to the exception raised there.
    """

    def __init__(self, fail=None):
        self.created = []
        self.waited = []
        self.published = []
        self._fail = fail or {}

    def _maybe_fail(self, step, index):
        exc = self._fail.get((step, index))
        if exc is not None:
            raise exc

    def create_container(self, text="", image_url=None, reply_to_id=None, link_attachment=None):
        index = len(self.created)
        self.created.append({"text": text, "image_url": image_url, "reply_to_id": reply_to_id})
        self._maybe_fail("create", index)
        return f"container-{index}"

    def wait_until_ready(self, creation_id):
        index = int(creation_id.split("-")[1])
        self.waited.append(creation_id)
        self._maybe_fail("wait", index)

    def publish(self, creation_id):
        index = int(creation_id.split("-")[1])
        self._maybe_fail("publish", index)
        self.published.append(creation_id)
        return f"post-{index}"

    @property
    def total_calls(self):
        return len(self.created) + len(self.waited) + len(self.published)


def _sequencer(client, char_limit=10, sleeps=None):
    return PublishSequencer(
        client,
        SequencerConfig(char_limit=char_limit),
        sleep_func=(sleeps.append if sleeps is not None else lambda _: None),
    )


THREE_CHUNKS = "aaaa bbbb cccc dddd eeee"
FOUR_CHUNKS = "aaaa bbbb cccc dddd eeee ffff gggg hhhh"


class TestEmptyContent:
    def test_all_empty_rejected_without_calls(self):
        client = _RecordingClient()
        with pytest.raises(EmptyContentError):
            _sequencer(client).create_post("", "", "")
        assert client.total_calls == 0

    def test_whitespace_text_is_empty(self):
        client = _RecordingClient()
        with pytest.raises(EmptyContentError):
            _sequencer(client).create_post("   ", None, None)
        assert client.total_calls == 0

    def test_content_request_is_empty(self):
        assert ContentRequest().is_empty() is True
        assert ContentRequest(url="https://example.com").is_empty() is False


class TestPlan:
    def test_single_chunk(self):
        units = _sequencer(_RecordingClient(), char_limit=500).plan("Hello")
        assert len(units) == 1
        assert units[0].text == "Hello"
        assert units[0].media_type == "TEXT"

    def test_image_only(self):
        units = _sequencer(_RecordingClient()).plan("", "https://img.example.com/a.png")
        assert len(units) == 1
        assert units[0].text == ""
        assert units[0].media_type == "IMAGE"

    def test_image_on_first_chunk_only(self):
        units = _sequencer(_RecordingClient()).plan(THREE_CHUNKS, "https://img.example.com/a.png")
        assert [u.image_url for u in units] == ["https://img.example.com/a.png", None, None]
        assert [u.label for u in units] == ["chunk 0", "chunk 1", "chunk 2"]


class TestCreatePost:
    def test_image_only_single_unit(self):
        client = _RecordingClient()
        root = _sequencer(client).create_post("", "https://img.example.com/a.png", "")
        assert root == "post-0"
        assert client.created == [
            {"text": "", "image_url": "https://img.example.com/a.png", "reply_to_id": None},
        ]

    def test_three_chunks_with_image(self):
        client = _RecordingClient()
        root = _sequencer(client).create_post(THREE_CHUNKS, "https://img.example.com/a.png")
        assert root == "post-0"
        assert client.created == [
            {"text": "aaaa bbbb", "image_url": "https://img.example.com/a.png", "reply_to_id": None},
            {"text": "cccc dddd", "image_url": None, "reply_to_id": "post-0"},
            {"text": "eeee", "image_url": None, "reply_to_id": "post-1"},
        ]

    def test_each_unit_waits_before_publish(self):
        client = _RecordingClient()
        _sequencer(client).create_post(THREE_CHUNKS)
        assert client.waited == ["container-0", "container-1", "container-2"]
        assert client.published == ["container-0", "container-1", "container-2"]

    def test_url_appended_as_trailing_reply(self):
        client = _RecordingClient()
        sleeps = []
        root = _sequencer(client, sleeps=sleeps).create_post(
            THREE_CHUNKS, None, "https://example.com/article",
        )
        assert root == "post-0"
        assert len(client.created) == 4
        assert client.created[-1] == {
            "text": "https://example.com/article", "image_url": None, "reply_to_id": "post-2",
        }
        assert sleeps == [1.0, 1.0, 1.0, 5.0]

    def test_url_only_becomes_root(self):
        client = _RecordingClient()
        sleeps = []
        root = _sequencer(client, sleeps=sleeps).create_post("", None, "https://example.com")
        assert root == "post-0"
        assert client.created == [
            {"text": "https://example.com", "image_url": None, "reply_to_id": None},
        ]
        assert sleeps == []

    def test_image_and_url(self):
        client = _RecordingClient()
        root = _sequencer(client).create_post("", "https://img.example.com/a.png", "https://example.com")
        assert root == "post-0"
        assert client.created[1]["reply_to_id"] == "post-0"
        assert client.created[1]["image_url"] is None

    def test_publish_thread_result(self):
        client = _RecordingClient()
        result = _sequencer(client).publish_thread(
            ContentRequest(THREE_CHUNKS, None, "https://example.com"),
        )
        assert result.root_id == "post-0"
        assert result.post_ids == ["post-0", "post-1", "post-2", "post-3"]
        assert [u.label for u in result.units] == ["chunk 0", "chunk 1", "chunk 2", "url reply"]
        assert result.units[3].reply_to_id == "post-2"


class TestFailures:
    def test_remote_error_mid_thread_aborts_rest(self):
        client = _RecordingClient(fail={
            ("publish", 2): RemoteAPIError("400 Bad Request", "Invalid parameter"),
        })
        with pytest.raises(PublishError) as exc_info:
            _sequencer(client).create_post(FOUR_CHUNKS)

        err = exc_info.value
        assert err.step == "publish"
        assert err.label == "chunk 2"
        assert err.index == 2
        assert err.published_ids == ["post-0", "post-1"]
        assert isinstance(err.__cause__, RemoteAPIError)
        # chunks 0 and 1 stay published, chunk 3 is never attempted
        assert len(client.created) == 3
        assert client.published == ["container-0", "container-1"]

    def test_container_failure_reports_wait_step(self):
        client = _RecordingClient(fail={
            ("wait", 0): ContainerFailedError("container-0", ContainerStatus.ERROR, "bad image"),
        })
        with pytest.raises(PublishError) as exc_info:
            _sequencer(client).create_post("Hi", "https://img.example.com/a.png")
        assert exc_info.value.step == "wait"
        assert exc_info.value.published_ids == []
        assert "bad image" in str(exc_info.value)
        assert client.published == []

    def test_url_reply_failure_after_thread(self):
        client = _RecordingClient(fail={
            ("wait", 1): ReadinessTimeoutError("container-1", 30.0),
        })
        with pytest.raises(PublishError) as exc_info:
            _sequencer(client, char_limit=500).create_post("Hello", None, "https://example.com")
        assert exc_info.value.label == "url reply"
        assert exc_info.value.published_ids == ["post-0"]

    def test_create_failure(self):
        client = _RecordingClient(fail={
            ("create", 0): RemoteAPIError("401 Unauthorized", "Invalid OAuth access token"),
        })
        with pytest.raises(PublishError, match="create failed for chunk 0"):
            _sequencer(client).create_post("Hello")
        assert client.waited == []


class TestWithDryRunClient:
    def test_thread_through_real_client(self):
        client = ThreadsClient(ThreadsConfig(user_id="1", access_token="t"), live=False)
        seq = PublishSequencer(client, SequencerConfig(char_limit=10), sleep_func=lambda _: None)
        root = seq.create_post(THREE_CHUNKS, None, "https://example.com")

        assert root == "dry-post-1"
        creates = [r for r in client.dry_requests if r["endpoint"] == "threads"]
        assert [r.get("reply_to_id") for r in creates] == [
            None, "dry-post-1", "dry-post-2", "dry-post-3",
        ]
        assert creates[-1]["text"] == "https://example.com"
        assert "link_attachment" not in creates[-1]
