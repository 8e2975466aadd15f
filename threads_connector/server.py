"""
Connector HTTP Service
======================

Flask application exposing the publishing sequencer.

Endpoints:
- GET  /health        - Liveness check, no auth
- POST /threads/post  - Publish text/image/url as a thread (requires X-API-Key)
"""

from __future__ import annotations

import hmac
import logging
from functools import wraps
from typing import Any, Callable

from flask import Flask, current_app, jsonify, request

from threads_connector.config import ConnectorConfig
from threads_connector.sequencer import EmptyContentError, PublishError, PublishSequencer
from threads_connector.threads import ThreadsError

logger = logging.getLogger(__name__)

POST_FIELDS = ("text", "image_url", "url")


def require_api_key(f: Callable[..., Any]) -> Callable[..., Any]:
    """Decorator to require the configured X-API-Key header."""
    @wraps(f)
    def decorated_function(*args: Any, **kwargs: Any) -> Any:
        expected = current_app.config["API_KEY"]
        api_key = request.headers.get("X-API-Key", "")
        if not api_key or not expected or not hmac.compare_digest(api_key, expected):
            logger.info("Rejected %s %s: invalid API key", request.method, request.path)
            return jsonify({"error": "Unauthorized"}), 401
        return f(*args, **kwargs)

    return decorated_function


def create_app(cfg: ConnectorConfig, sequencer: PublishSequencer) -> Flask:
    app = Flask(__name__)
    app.config["API_KEY"] = cfg.api_key
    app.extensions["threads_sequencer"] = sequencer

    @app.route("/health", methods=["GET"])
    def health():
        return "OK", 200

    @app.route("/threads/post", methods=["POST"])
    @require_api_key
    def create_post():
        logger.info("Received %s request for %s", request.method, request.path)

        payload = request.get_json(silent=True)
        if not isinstance(payload, dict):
            return jsonify({"error": "Invalid request body"}), 400

        fields: dict[str, str] = {}
        for name in POST_FIELDS:
            value = payload.get(name)
            if value is None:
                value = ""
            if not isinstance(value, str):
                return jsonify({"error": f"'{name}' must be a string"}), 400
            fields[name] = value

        if not fields["text"].strip() and not fields["image_url"]:
            return jsonify({"error": "Content (text or image_url) is required"}), 400

        text = fields["text"]
        snippet = text if len(text) <= 50 else text[:50] + "..."
        logger.info(
            "Processing post request. Text: %r (len=%d), Image: %s, URL: %s",
            snippet, len(text), bool(fields["image_url"]), fields["url"] or "-",
        )

        seq: PublishSequencer = current_app.extensions["threads_sequencer"]
        try:
            post_id = seq.create_post(
                text, fields["image_url"] or None, fields["url"] or None,
            )
        except EmptyContentError as exc:
            return jsonify({"error": str(exc)}), 400
        except (PublishError, ThreadsError, ValueError) as exc:
            logger.error("Error creating post: %s", exc)
            return jsonify({"error": f"Failed to create post: {exc}"}), 500

        logger.info("Successfully created post: %s", post_id)
        return jsonify({"post_id": post_id}), 200

    return app
