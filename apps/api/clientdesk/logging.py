from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any

from clientdesk.context import current_scope


# Only these ``extra`` keys reach the output; anything else (passwords, payloads) is dropped.
LOGGED_FIELDS = frozenset(
    {
        "method",
        "path",
        "status_code",
        "duration_ms",
        "client_ip",
        "user_id",
        "actor_id",
        "action",
        "entity_id",
        "file_path",
        "error",
    }
)
MAX_ERROR_LENGTH = 500


class RequestScopeFilter(logging.Filter):
    """Stamps the current correlation id and user onto records that lack them."""

    def filter(self, record: logging.LogRecord) -> bool:
        scope = current_scope()
        if not getattr(record, "correlation_id", None):
            record.correlation_id = scope.correlation_id if scope is not None else None
        if scope is not None and scope.user_id and not getattr(record, "user_id", None):
            record.user_id = scope.user_id
        return True


class JsonLogFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        fields: dict[str, Any] = {key: getattr(record, key) for key in LOGGED_FIELDS if hasattr(record, key)}
        if isinstance(fields.get("error"), str):
            fields["error"] = fields["error"][:MAX_ERROR_LENGTH]
        if record.exc_info:
            fields["exception"] = self.formatException(record.exc_info)

        payload = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "correlation_id": getattr(record, "correlation_id", None),
            "fields": fields,
        }
        return json.dumps(payload, default=str)


def configure_logging(level: str | None = None) -> None:
    root_logger = logging.getLogger()
    if getattr(root_logger, "_clientdesk_configured", False):
        return

    level_name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    resolved = getattr(logging, level_name, logging.INFO)

    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setLevel(resolved)
    handler.setFormatter(JsonLogFormatter())
    handler.addFilter(RequestScopeFilter())

    root_logger.handlers.clear()
    root_logger.setLevel(resolved)
    root_logger.addHandler(handler)
    # uvicorn installs its own access log; ours comes from RequestLoggingMiddleware.
    logging.getLogger("uvicorn.access").propagate = False
    root_logger._clientdesk_configured = True  # type: ignore[attr-defined]
