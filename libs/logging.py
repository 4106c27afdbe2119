from __future__ import annotations

"""Application-wide logging configuration.

Every record becomes one JSON line: timestamp (UTC ISO8601), level,
logger, service, environment, message, then the note context of the
record (``note_id``, ``user_id``, ``stage``) in that order, then any
other ``extra=`` fields. Upstream error strings are clipped so a verbose
model failure cannot flood the log.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict

from libs.core.settings import get_settings

CONTEXT_KEYS = ("note_id", "user_id", "stage")
MAX_FIELD_CHARS = 500

# HTTP and SQL chatter from the model SDK and the database driver
_NOISY_LOGGERS = ("httpx", "httpcore", "replicate", "sqlalchemy.engine")

_RESERVED_ATTRS = frozenset(
    {
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "taskName",
    }
)


def _clip(value: Any) -> Any:
    if isinstance(value, str) and len(value) > MAX_FIELD_CHARS:
        return value[:MAX_FIELD_CHARS] + "..."
    return value


class _JsonFormatter(logging.Formatter):
    """One-line JSON log formatter with note context first."""

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401
        settings = get_settings()
        dt = datetime.fromtimestamp(record.created, tz=timezone.utc)
        base: Dict[str, Any] = {
            "timestamp": dt.strftime("%Y-%m-%dT%H:%M:%S.%fZ"),
            "level": record.levelname,
            "logger": record.name,
            "service": settings.service_name,
            "environment": settings.environment,
            "message": record.getMessage(),
        }
        fields = record.__dict__
        for key in CONTEXT_KEYS:
            if fields.get(key) is not None:
                base[key] = fields[key]
        for k, v in fields.items():
            if k in _RESERVED_ATTRS or k in base:
                continue
            base[k] = _clip(v)
        if record.exc_info:
            etype = getattr(record.exc_info[0], "__name__", str(record.exc_info[0]))
            base["error"] = {
                "class": etype,
                "message": _clip(str(record.exc_info[1])),
            }
        try:
            return json.dumps(base, ensure_ascii=False)
        except (TypeError, ValueError):
            for k, v in list(base.items()):
                try:
                    json.dumps({k: v})
                except (TypeError, ValueError):
                    base[k] = repr(v)
            return json.dumps(base, ensure_ascii=False)


def setup_logging() -> None:
    """Configure root logger to output one-line JSON logs."""

    settings = get_settings()
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    handler = logging.StreamHandler()
    handler.setFormatter(_JsonFormatter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


__all__ = ["setup_logging", "CONTEXT_KEYS"]
