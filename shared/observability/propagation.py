from __future__ import annotations

from collections.abc import Mapping, Sequence

from opentelemetry import trace
from opentelemetry.context import Context
from opentelemetry.propagate import extract, inject


def inject_headers(headers: dict[str, str] | None = None) -> dict[str, str]:
    carrier: dict[str, str] = headers or {}
    inject(carrier)
    return carrier


def extract_context_from_headers(headers: Mapping[str, str]) -> Context:
    return extract(dict(headers))


def message_headers() -> list[tuple[str, bytes]]:
    return [(key, value.encode("utf-8")) for key, value in inject_headers({}).items()]


def context_from_message_headers(headers: Sequence[tuple[str, bytes]] | None) -> Context | None:
    if not headers:
        return None
    carrier = {
        key: value.decode("utf-8") if isinstance(value, bytes) else str(value)
        for key, value in headers
    }
    if "traceparent" not in carrier:
        return None
    return extract_context_from_headers(carrier)


def current_trace_id() -> str:
    span = trace.get_current_span()
    span_context = span.get_span_context()
    if not span_context.is_valid:
        return ""
    return format(span_context.trace_id, "032x")
