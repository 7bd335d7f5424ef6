"""Structured logging for workflow compilation and execution.

Uses standard library logging with a JSON formatter. The compiler and the engine
never log through module globals; they receive a :class:`FlowLogger` explicitly.
"""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any, Protocol

from task_flow.config import LOG_LEVELS, FlowSettings, normalize_level

# Attributes every LogRecord carries; anything else on a record came in via `extra`.
_RECORD_ATTRS: frozenset[str] = frozenset(
    logging.LogRecord("", logging.NOTSET, "", 0, "", (), None).__dict__
) | {"message", "asctime"}

_STDLIB_LEVELS: dict[str, int] = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}


def _record_extra(record: logging.LogRecord) -> dict[str, Any]:
    return {
        key: value
        for key, value in vars(record).items()
        if key not in _RECORD_ATTRS and not key.startswith("_")
    }


class JsonFormatter(logging.Formatter):
    """Render a record as one JSON object per line.

    Workflow ``data`` (contexts, task outputs, failures) holds arbitrary caller
    objects; values JSON cannot encode are written as their ``repr``.
    """

    def format(self, record: logging.LogRecord) -> str:  # noqa: A003 (record)
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if extra := _record_extra(record):
            payload["extra"] = extra
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=repr)


def configure_logging(level: str) -> None:
    """Send root logging to stdout as JSON at a task-flow level name."""

    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setFormatter(JsonFormatter())
    logging.basicConfig(
        level=_STDLIB_LEVELS[normalize_level(level)], handlers=[handler], force=True
    )


class FlowLogger(Protocol):
    """Leveled logger consumed by the compiler and the execution engine."""

    def debug(self, message: str, data: Mapping[str, object] | None = None) -> None: ...

    def info(self, message: str, data: Mapping[str, object] | None = None) -> None: ...

    def warn(self, message: str, data: Mapping[str, object] | None = None) -> None: ...

    def error(self, message: str, data: Mapping[str, object] | None = None) -> None: ...


class StructuredLogger:
    """:class:`FlowLogger` backed by a standard library logger.

    Messages below ``level`` are dropped before they reach ``logging``; structured
    data travels as the record's ``data`` extra.
    """

    def __init__(self, level: str = "debug", *, name: str = "task_flow") -> None:
        self.level = normalize_level(level)
        self._threshold = LOG_LEVELS.index(self.level)
        self._logger = logging.getLogger(name)

    def enabled_for(self, level: str) -> bool:
        return LOG_LEVELS.index(level) >= self._threshold

    def _emit(self, level: str, message: str, data: Mapping[str, object] | None) -> None:
        if not self.enabled_for(level):
            return
        extra = {"data": dict(data)} if data else None
        self._logger.log(_STDLIB_LEVELS[level], message, extra=extra)

    def debug(self, message: str, data: Mapping[str, object] | None = None) -> None:
        self._emit("debug", message, data)

    def info(self, message: str, data: Mapping[str, object] | None = None) -> None:
        self._emit("info", message, data)

    def warn(self, message: str, data: Mapping[str, object] | None = None) -> None:
        self._emit("warn", message, data)

    def error(self, message: str, data: Mapping[str, object] | None = None) -> None:
        self._emit("error", message, data)


def build_logger(level: str) -> StructuredLogger:
    """Build the default workflow logger for a minimum level."""

    return StructuredLogger(level)


def default_logger(settings: FlowSettings | None = None) -> StructuredLogger:
    """Build the default workflow logger from settings (environment / `.env`)."""

    settings = settings or FlowSettings()
    return build_logger(settings.log_level)
