from __future__ import annotations

import asyncio

from shared.idempotency.contracts import IdempotencyLedger
from shared.logging import get_logger

logger = get_logger(__name__)


class LedgerJanitor:
    def __init__(self, ledger: IdempotencyLedger, interval_seconds: float = 3600.0) -> None:
        self._ledger = ledger
        self._interval_seconds = interval_seconds

    async def run_forever(self) -> None:
        while True:
            try:
                await self.run_once()
            except Exception as exc:  # noqa: BLE001
                logger.exception(
                    "ledger_purge_failed",
                    extra={"extra_fields": {"error_type": type(exc).__name__}},
                )
            await asyncio.sleep(self._interval_seconds)

    async def run_once(self) -> int:
        purged = await self._ledger.purge_expired()
        if purged:
            logger.info("ledger_records_purged", extra={"extra_fields": {"purged": purged}})
        return purged
