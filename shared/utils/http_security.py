from __future__ import annotations

from fastapi import Response

TRACE_ID_HEADER = "X-Trace-Id"

# JSON-only APIs: nothing is framed, cached or rendered by a browser.
SECURITY_HEADERS: dict[str, str] = {
    "Cache-Control": "no-store",
    "Content-Security-Policy": "default-src 'none'; frame-ancestors 'none'",
    "Referrer-Policy": "no-referrer",
    "Strict-Transport-Security": "max-age=63072000; includeSubDomains",
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
}


def apply_security_headers(response: Response, *, trace_id: str | None = None) -> None:
    for header_name, header_value in SECURITY_HEADERS.items():
        response.headers.setdefault(header_name, header_value)
    if trace_id:
        response.headers[TRACE_ID_HEADER] = trace_id
