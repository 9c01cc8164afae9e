"""JSON log lines tagged with the request that produced them.

``RequestContextFilter`` copies the request id and the caller's principal
from the middleware context variables onto each record; ``JsonLogFormatter``
turns the record, plus any ``extra_data`` mapping, into one JSON object.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Mapping

from ..middlewares import principal_ctx_var, request_id_ctx_var

# Chatty third-party loggers that only matter when something is wrong.
QUIET_LOGGERS = ("httpx", "httpcore", "python_multipart", "multipart")


class RequestContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_ctx_var.get()
        record.principal = principal_ctx_var.get()
        return True


class JsonLogFormatter(logging.Formatter):
    """One JSON object per record; empty context fields are left out."""

    def format(self, record: logging.LogRecord) -> str:
        stamp = datetime.fromtimestamp(record.created, tz=timezone.utc)
        payload: dict[str, Any] = {
            "timestamp": stamp.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        context = {
            "request_id": getattr(record, "request_id", None) or request_id_ctx_var.get(),
            "principal": getattr(record, "principal", None) or principal_ctx_var.get(),
        }
        payload.update({key: value for key, value in context.items() if value})
        extra = getattr(record, "extra_data", None)
        if isinstance(extra, Mapping):
            payload.update({k: v for k, v in extra.items() if k not in payload})
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def configure_logging(level: str = "INFO") -> None:
    """Route the root logger through a single JSON handler on stderr."""

    handler = logging.StreamHandler()
    handler.addFilter(RequestContextFilter())
    handler.setFormatter(JsonLogFormatter())
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level.upper())
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(logging.WARNING, root.level))
