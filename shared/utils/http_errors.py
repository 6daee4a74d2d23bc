from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from shared.contracts.errors import ChoreographyError
from shared.logging import get_logger

logger = get_logger(__name__)
_GENERIC_INTERNAL_ERROR_MESSAGE = "Internal server error"


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ChoreographyError)
    async def handle_choreography_error(_: Request, exc: ChoreographyError) -> JSONResponse:
        logger.warning(
            "application_error",
            extra={
                "extra_fields": {
                    "error_category": exc.category.value,
                    "retryable": exc.retryable,
                }
            },
        )
        headers = {"Retry-After": "1"} if exc.retryable else None
        return JSONResponse(
            status_code=exc.http_status,
            content={
                "error": {
                    "category": exc.category.value,
                    "message": exc.message,
                    "retryable": exc.retryable,
                }
            },
            headers=headers,
        )

    @app.exception_handler(Exception)
    async def handle_unexpected(_: Request, exc: Exception) -> JSONResponse:
        logger.exception(
            "unexpected_error", extra={"extra_fields": {"error_category": "unexpected"}}
        )
        return JSONResponse(
            status_code=500,
            content={
                "error": {
                    "category": "unexpected",
                    "message": _GENERIC_INTERNAL_ERROR_MESSAGE,
                    "retryable": True,
                }
            },
        )
