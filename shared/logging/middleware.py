from __future__ import annotations

from collections.abc import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from shared.logging.fields import DELIVERY_ID, IDEMPOTENCY_KEY, TRACE_ID
from shared.logging.logger import clear_correlation_context, set_correlation_context
from shared.observability.propagation import current_trace_id
from shared.utils.http_security import TRACE_ID_HEADER


class CorrelationMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        trace_id = current_trace_id() or request.headers.get(TRACE_ID_HEADER, "")
        set_correlation_context(
            {
                TRACE_ID: trace_id,
                IDEMPOTENCY_KEY: request.headers.get("Idempotency-Key", ""),
                DELIVERY_ID: request.headers.get("Provider-Delivery-Id", ""),
            }
        )
        try:
            response = await call_next(request)
            return response
        finally:
            clear_correlation_context()
