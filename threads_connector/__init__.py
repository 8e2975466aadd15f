"""threads-connector: republish content to Threads as reply-linked posts.

Accepts text, an optional image URL and an optional link, and drives the
Threads Graph API container flow (create, wait until ready, publish) to
post them as a thread.
"""

__version__ = "0.1.0"

from threads_connector.chunker import split_text
from threads_connector.config import load_config, ConnectorConfig
from threads_connector.factory import build_client, build_sequencer
from threads_connector.sequencer import (
    ContentRequest,
    EmptyContentError,
    PostUnit,
    PublishError,
    PublishSequencer,
)
from threads_connector.threads import ThreadsClient, ThreadsConfig, ThreadsError

__all__ = [
    "split_text",
    "load_config",
    "ConnectorConfig",
    "build_client",
    "build_sequencer",
    "ContentRequest",
    "EmptyContentError",
    "PostUnit",
    "PublishError",
    "PublishSequencer",
    "ThreadsClient",
    "ThreadsConfig",
    "ThreadsError",
]
