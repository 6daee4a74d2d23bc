from __future__ import annotations

import asyncio

from payment_service.use_cases.expire_sessions import ExpireSessionsUseCase
from shared.logging import get_logger

logger = get_logger(__name__)


class SessionExpiryWorker:
    def __init__(self, use_case: ExpireSessionsUseCase, interval_seconds: float = 30.0) -> None:
        self._use_case = use_case
        self._interval_seconds = interval_seconds

    async def run_forever(self) -> None:
        while True:
            try:
                await self.run_once()
            except Exception as exc:  # noqa: BLE001
                logger.exception(
                    "session_expiry_iteration_failed",
                    extra={"extra_fields": {"error_type": type(exc).__name__}},
                )
            await asyncio.sleep(self._interval_seconds)

    async def run_once(self) -> int:
        return await self._use_case.execute()
