from __future__ import annotations

import json
import logging
import re
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, datetime
from numbers import Number
from typing import Any

from shared.logging.fields import CONSUMER_GROUP, EVENT_ID, PARTITION_KEY, TOPIC, TRACE_ID

_correlation_ctx: ContextVar[dict[str, str] | None] = ContextVar("correlation_ctx", default=None)
_CARD_LIKE_PATTERN = re.compile(r"\b\d{12,19}\b")
_EMAIL_PATTERN = re.compile(r"\b[\w.+-]+@[\w-]+\.[\w.-]+\b")
_REDACTED_FIELDS = {
    "email",
    "recipient",
    "webhook_secret",
    "signature",
    "provider_signature",
    "card_number",
    "pan",
}
_MAX_SANITIZE_DEPTH = 6
_NOISY_LOGGERS = ("aiokafka", "httpx")


def _redact_string(value: str) -> str:
    value = _CARD_LIKE_PATTERN.sub("[REDACTED]", value)
    return _EMAIL_PATTERN.sub("[REDACTED_EMAIL]", value)


def _sanitize_mapping(values: dict[str, Any], depth: int) -> dict[str, Any]:
    sanitized: dict[str, Any] = {}
    for key, value in values.items():
        key_text = str(key)
        key_lower = key_text.lower()
        if key_lower in _REDACTED_FIELDS:
            sanitized[key_text] = "[REDACTED]"
            continue
        sanitized[key_text] = _sanitize_value(value, depth + 1)
    return sanitized


def _sanitize_sequence(values: list[Any], depth: int) -> list[Any]:
    return [_sanitize_value(item, depth + 1) for item in values]


def _sanitize_value(value: Any, depth: int = 0) -> Any:
    if depth >= _MAX_SANITIZE_DEPTH:
        return "[TRUNCATED]"
    if isinstance(value, dict):
        return _sanitize_mapping(value, depth)
    if isinstance(value, list):
        return _sanitize_sequence(value, depth)
    if isinstance(value, tuple):
        return tuple(_sanitize_sequence(list(value), depth))
    if isinstance(value, str):
        return _redact_string(value)
    if isinstance(value, Number | bool) or value is None:
        return value
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


class JsonFormatter(logging.Formatter):
    def __init__(self, service_name: str | None = None) -> None:
        super().__init__()
        self._service_name = service_name

    def format(self, record: logging.LogRecord) -> str:
        base: dict[str, Any] = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": _redact_string(record.getMessage()),
        }
        if self._service_name:
            base["service"] = self._service_name
        if record.exc_info:
            base["exception"] = self.formatException(record.exc_info)
        base.update(_current_correlation_context())
        if hasattr(record, "extra_fields"):
            base.update(record.extra_fields)
        return json.dumps(_sanitize_value(base), default=str)


def _current_correlation_context() -> dict[str, str]:
    return _correlation_ctx.get() or {}


def configure_logging(level: str = "INFO", *, service_name: str | None = None) -> None:
    root = logging.getLogger()
    if root.handlers:
        return
    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter(service_name))
    root.addHandler(handler)
    root.setLevel(level)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def set_correlation_context(values: dict[str, str]) -> None:
    _correlation_ctx.set(dict(values))


def update_correlation_context(values: dict[str, str]) -> None:
    merged = dict(_current_correlation_context())
    merged.update(values)
    _correlation_ctx.set(merged)


def get_correlation_context() -> dict[str, str]:
    return dict(_current_correlation_context())


def clear_correlation_context() -> None:
    _correlation_ctx.set({})


@contextmanager
def bind_envelope_context(
    *, event_id: str, topic: str, partition_key: str, consumer_group: str, trace_id: str
) -> Iterator[None]:
    """Scopes log correlation to one envelope delivery; the previous context is restored."""
    token = _correlation_ctx.set(
        {
            **_current_correlation_context(),
            EVENT_ID: event_id,
            TOPIC: topic,
            PARTITION_KEY: partition_key,
            CONSUMER_GROUP: consumer_group,
            TRACE_ID: trace_id,
        }
    )
    try:
        yield
    finally:
        _correlation_ctx.reset(token)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
