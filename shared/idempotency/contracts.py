from __future__ import annotations

import hashlib
import json
from collections.abc import Awaitable, Callable
from typing import Any, Protocol
from uuid import UUID

from shared.contracts.enums import IdempotencyOutcome
from shared.idempotency.metrics import duplicates_dropped
from shared.logging import get_logger

logger = get_logger(__name__)


class IdempotencyLedger(Protocol):
    async def check_and_reserve(
        self, consumer_group: str, event_id: UUID
    ) -> IdempotencyOutcome: ...

    async def commit(
        self, consumer_group: str, event_id: UUID, result_hash: str | None = None
    ) -> None: ...

    async def release(self, consumer_group: str, event_id: UUID) -> None: ...

    async def purge_expired(self) -> int: ...


def hash_result(value: Any) -> str | None:
    if value is None:
        return None
    encoded = json.dumps(value, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(encoded.encode("utf-8")).hexdigest()


async def process_once(
    ledger: IdempotencyLedger,
    consumer_group: str,
    event_id: UUID,
    effect: Callable[[], Awaitable[Any]],
) -> bool:
    outcome = await ledger.check_and_reserve(consumer_group, event_id)
    if outcome is IdempotencyOutcome.ALREADY_PROCESSED:
        duplicates_dropped.add(1, {"consumer_group": consumer_group})
        logger.info(
            "duplicate_event_dropped",
            extra={"extra_fields": {"consumer_group": consumer_group, "event_id": str(event_id)}},
        )
        return False

    try:
        result = await effect()
    except BaseException:
        await _release_quietly(ledger, consumer_group, event_id)
        raise

    await ledger.commit(consumer_group, event_id, hash_result(result))
    return True


async def _release_quietly(ledger: IdempotencyLedger, consumer_group: str, event_id: UUID) -> None:
    try:
        await ledger.release(consumer_group, event_id)
    except Exception as exc:  # noqa: BLE001
        # An unreleased reservation is reclaimable once its lease expires.
        logger.warning(
            "ledger_release_failed",
            extra={
                "extra_fields": {
                    "consumer_group": consumer_group,
                    "event_id": str(event_id),
                    "error_type": type(exc).__name__,
                }
            },
        )
