"""Logging setup; records carry the turn, conversation and dialog of the running turn."""

from __future__ import annotations

import contextvars
import json
import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, fields, replace
from datetime import UTC, datetime


@dataclass(frozen=True, slots=True)
class CorrelationContext:
    turn_id: str | None = None
    conversation_id: str | None = None
    dialog_id: str | None = None


CORRELATION_FIELDS = tuple(field.name for field in fields(CorrelationContext))

_current: contextvars.ContextVar[CorrelationContext] = contextvars.ContextVar(
    "colloquy_correlation", default=CorrelationContext()
)

_TEXT_FORMAT = (
    "%(asctime)s %(levelname)s %(name)s "
    "turn=%(turn_id)s conversation=%(conversation_id)s dialog=%(dialog_id)s %(message)s"
)


def get_correlation_context() -> CorrelationContext:
    return _current.get()


class CorrelationFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        context = _current.get()
        for name in CORRELATION_FIELDS:
            setattr(record, name, getattr(context, name))
        return True


class _JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, object | None] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update({name: getattr(record, name, None) for name in CORRELATION_FIELDS})
        if record.exc_info is not None:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=True)


def setup_logging(level: int | str = logging.INFO, json_output: bool = False) -> None:
    """Replace the root handlers with one stderr handler, as text or JSON lines."""
    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    root.filters.clear()

    handler = logging.StreamHandler(stream=sys.stderr)
    handler.setFormatter(_JsonFormatter() if json_output else logging.Formatter(_TEXT_FORMAT))
    correlation_filter = CorrelationFilter()
    handler.addFilter(correlation_filter)
    root.addFilter(correlation_filter)
    root.addHandler(handler)


@contextmanager
def correlation_scope(
    *,
    turn_id: str | None = None,
    conversation_id: str | None = None,
    dialog_id: str | None = None,
) -> Iterator[None]:
    """Set correlation IDs for the enclosed block; ``None`` keeps the outer value."""
    overrides = {
        "turn_id": turn_id,
        "conversation_id": conversation_id,
        "dialog_id": dialog_id,
    }
    updated = replace(_current.get(), **{k: v for k, v in overrides.items() if v is not None})
    token = _current.set(updated)
    try:
        yield
    finally:
        _current.reset(token)


__all__ = [
    "CorrelationContext",
    "CorrelationFilter",
    "correlation_scope",
    "get_correlation_context",
    "setup_logging",
]
