"""
Unsent Pro API — Structured logging

Every line is a single JSON object so log aggregation can index it:

    {"timestamp": "...Z", "level": "info", "logger": "purchase",
     "message": "...", "context": {...}}

Pass per-call fields with ``logger.info("msg", extra={"context": {...}})``.
"""
import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Any

from config import LOG_LEVEL, LOG_PRETTY


class JsonFormatter(logging.Formatter):
    def __init__(self, pretty: bool = False) -> None:
        super().__init__()
        self.pretty = pretty

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc)
            .isoformat(timespec="milliseconds")
            .replace("+00:00", "Z"),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        context = getattr(record, "context", None)
        if context:
            entry["context"] = context
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str, indent=2 if self.pretty else None)


def configure_logging(level: str = LOG_LEVEL, pretty: bool = LOG_PRETTY) -> None:
    """Install the JSON formatter on the root logger. Safe to call twice."""
    root = logging.getLogger()
    root.setLevel(level)
    for handler in root.handlers:
        if isinstance(handler.formatter, JsonFormatter):
            return
    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter(pretty=pretty))
    root.addHandler(handler)


class RequestLogger(logging.LoggerAdapter):
    """Adds ``request_id`` to the context of every line it emits."""

    def __init__(self, logger: logging.Logger, request_id: str | None = None) -> None:
        super().__init__(logger, {"request_id": request_id or str(uuid.uuid4())})

    @property
    def request_id(self) -> str:
        return self.extra["request_id"]

    def process(self, msg, kwargs):
        extra = kwargs.setdefault("extra", {})
        extra["context"] = {"request_id": self.request_id, **extra.get("context", {})}
        return msg, kwargs
