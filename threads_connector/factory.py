"""Factory for building the Threads client and sequencer from ConnectorConfig.

Shared by the CLI and the HTTP service so both wire the same settings.
"""

from __future__ import annotations

from threads_connector.config import ConnectorConfig
from threads_connector.sequencer import PublishSequencer, SequencerConfig
from threads_connector.threads import ThreadsClient, ThreadsConfig


def build_client(cfg: ConnectorConfig) -> ThreadsClient:
    return ThreadsClient(
        ThreadsConfig(
            user_id=cfg.threads_user_id,
            access_token=cfg.threads_access_token,
            base_url=cfg.threads_base_url,
            request_timeout=cfg.request_timeout,
            poll_interval=cfg.poll_interval,
            ready_timeout=cfg.ready_timeout,
        ),
        live=not cfg.dry_run,
    )


def build_sequencer(
    cfg: ConnectorConfig,
    client: ThreadsClient | None = None,
) -> PublishSequencer:
    """Build a PublishSequencer from a ConnectorConfig.

    Args:
        cfg: Connector configuration with credentials and timing settings.
        client: Optional pre-built client. If None, one is constructed
            from cfg.

    Returns:
        A fully wired PublishSequencer.
    """
    return PublishSequencer(
        client or build_client(cfg),
        SequencerConfig(
            char_limit=cfg.char_limit,
            publish_delay=cfg.publish_delay,
            url_reply_delay=cfg.url_reply_delay,
        ),
    )
