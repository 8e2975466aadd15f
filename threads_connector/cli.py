"""CLI entry point for threads-connector.

Usage:
    threads-connector serve [--host HOST] [--port PORT]
    threads-connector post [--text TEXT] [--image-url URL] [--url URL] [--dry-run]
    threads-connector check-token
    threads-connector status
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from threads_connector.config import ConfigError, ConnectorConfig, load_config
from threads_connector.factory import build_client, build_sequencer
from threads_connector.sequencer import EmptyContentError, PublishError
from threads_connector.threads import ThreadsClient, ThreadsError

logger = logging.getLogger("threads_connector")


def _require(cfg: ConnectorConfig, names: list[str] | None = None) -> None:
    missing = [m for m in cfg.missing_required() if names is None or m in names]
    if missing:
        print(f"Missing required settings: {', '.join(missing)}", file=sys.stderr)
        sys.exit(1)


def log_token_status(client: ThreadsClient) -> None:
    """Log access token validity; never prevents startup."""
    try:
        info = client.validate_token()
    except ThreadsError as exc:
        logger.warning("Failed to validate Threads access token: %s", exc)
        return

    if not info.is_valid:
        logger.warning("Threads access token is invalid!")
    elif info.expires is None:
        logger.info("Threads access token is valid (no expiry)")
    else:
        logger.info(
            "Threads access token is valid (expires: %s, %d days remaining)",
            info.expires.strftime("%Y-%m-%d"), info.days_remaining(),
        )


def cmd_serve(cfg: ConnectorConfig, host: str | None, port: int | None) -> None:
    from threads_connector.server import create_app

    _require(cfg)
    client = build_client(cfg)
    log_token_status(client)

    app = create_app(cfg, build_sequencer(cfg, client))
    bind_host = host or cfg.host
    bind_port = port or cfg.port
    logger.info("Starting server on %s:%d", bind_host, bind_port)
    app.run(host=bind_host, port=bind_port, threaded=True)


def cmd_post(cfg: ConnectorConfig, text: str, image_url: str, url: str) -> None:
    if not cfg.dry_run:
        _require(cfg, ["THREADS_USER_ID", "THREADS_ACCESS_TOKEN"])

    with build_client(cfg) as client:
        seq = build_sequencer(cfg, client)
        try:
            post_id = seq.create_post(text, image_url or None, url or None)
        except EmptyContentError as exc:
            print(f"Error: {exc}", file=sys.stderr)
            sys.exit(2)
        except PublishError as exc:
            print(f"Failed to create post: {exc}", file=sys.stderr)
            if exc.published_ids:
                print(f"  Already published: {', '.join(exc.published_ids)}", file=sys.stderr)
            sys.exit(1)

    prefix = "[DRY RUN] " if cfg.dry_run else ""
    print(f"{prefix}Posted: {post_id}")


def cmd_check_token(cfg: ConnectorConfig) -> None:
    _require(cfg, ["THREADS_USER_ID", "THREADS_ACCESS_TOKEN"])

    with build_client(cfg) as client:
        try:
            info = client.validate_token()
        except ThreadsError as exc:
            print(f"Token check failed: {exc}", file=sys.stderr)
            sys.exit(1)

    print(f"Valid:   {info.is_valid}")
    print(f"User ID: {info.user_id or 'unknown'}")
    if info.expires is None:
        print("Expires: never")
    else:
        print(f"Expires: {info.expires:%Y-%m-%d} ({info.days_remaining()} days remaining)")
    print(f"Scopes:  {', '.join(info.scopes) or 'none'}")
    if not info.is_valid:
        sys.exit(1)


def cmd_status(cfg: ConnectorConfig) -> None:
    print(f"Dry run:      {cfg.dry_run}")
    print(f"User ID:      {cfg.threads_user_id or 'not configured'}")
    print(f"Access token: {'configured' if cfg.threads_access_token else 'not configured'}")
    print(f"API key:      {'configured' if cfg.api_key else 'not configured'}")
    print(f"Listen:       {cfg.host}:{cfg.port}")
    print(f"API base:     {cfg.threads_base_url}")


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(prog="threads-connector", description="Threads publishing connector")
    parser.add_argument("--config", type=Path, default=None, help="Config YAML file")
    sub = parser.add_subparsers(dest="command")

    serve_p = sub.add_parser("serve", help="Run the HTTP connector")
    serve_p.add_argument("--host", default=None)
    serve_p.add_argument("--port", type=int, default=None)

    post_p = sub.add_parser("post", help="Publish content once from the command line")
    post_p.add_argument("--text", default="")
    post_p.add_argument("--image-url", default="")
    post_p.add_argument("--url", default="")
    post_p.add_argument("--dry-run", action="store_true",
                        help="Record requests instead of calling the API")

    sub.add_parser("check-token", help="Inspect the access token")
    sub.add_parser("status", help="Show configuration status")

    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return

    load_dotenv()
    try:
        cfg = load_config(args.config)
    except ConfigError as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        sys.exit(1)

    logging.basicConfig(
        level=getattr(logging, cfg.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    if args.command == "serve":
        cmd_serve(cfg, args.host, args.port)
    elif args.command == "post":
        if args.dry_run:
            cfg.dry_run = True
        cmd_post(cfg, args.text, args.image_url, args.url)
    elif args.command == "check-token":
        cmd_check_token(cfg)
    elif args.command == "status":
        cmd_status(cfg)


if __name__ == "__main__":
    main()
