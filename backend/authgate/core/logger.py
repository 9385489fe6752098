"""Structured JSON logging with request correlation ids.

Every record leaving the root handler is one JSON object on stdout. Inside a
request it carries the request id that is also echoed in the ``X-Request-ID``
response header and in problem responses.
"""

from __future__ import annotations

import json
import logging
import re
import sys
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from flask import Flask, g, has_request_context, request

REQUEST_ID_HEADER = "X-Request-ID"
CORRELATION_HEADERS = ("X-Request-ID", "X-Correlation-ID")

# Client-supplied ids are copied into logs, so only plain tokens are accepted.
_INCOMING_ID = re.compile(r"^[A-Za-z0-9._:-]{1,128}$")

# Structured context copied from ``extra=`` into the JSON payload. Token values
# are never passed as extras; only row and user ids.
EXTRA_KEYS = (
    "event",
    "user_id",
    "token_id",
    "new_token_id",
    "count",
    "superseded",
    "endpoint",
    "elapsed_ms",
)


class JSONFormatter(logging.Formatter):
    """Render a record as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "time": datetime.fromtimestamp(record.created, UTC).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", None),
        }
        payload.update(
            (key, getattr(record, key)) for key in EXTRA_KEYS if hasattr(record, key)
        )
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class RequestIdFilter(logging.Filter):
    """Stamp ``request_id`` on each record (``None`` outside a request)."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = ensure_request_id() if has_request_context() else None
        return True


def _incoming_request_id() -> str | None:
    for header in CORRELATION_HEADERS:
        value = request.headers.get(header, "").strip()
        if _INCOMING_ID.match(value):
            return value
    return None


def ensure_request_id() -> str:
    """
    Return the id of the current request, assigning one on first use.

    A well-formed ``X-Request-ID`` or ``X-Correlation-ID`` header is reused;
    otherwise a UUID4 is generated. Outside a request a fresh UUID4 is returned.
    """
    if not has_request_context():
        return str(uuid4())
    if "request_id" not in g:
        g.request_id = _incoming_request_id() or str(uuid4())
    return g.request_id


def configure_logging(level: str | int = "INFO") -> None:
    """Route the root logger to stdout through :class:`JSONFormatter`."""
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter())
    handler.addFilter(RequestIdFilter())
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level.upper() if isinstance(level, str) else level)


def init_app(app: Flask) -> None:
    """Assign request ids before each request and echo them on responses."""
    app.logger.addFilter(RequestIdFilter())

    @app.before_request
    def _assign_request_id() -> None:
        # ``g`` outlives the request when an app context was already pushed.
        g.pop("request_id", None)
        ensure_request_id()

    @app.after_request
    def _echo_request_id(response):
        response.headers.setdefault(REQUEST_ID_HEADER, ensure_request_id())
        return response


__all__ = ["configure_logging", "ensure_request_id", "init_app"]
