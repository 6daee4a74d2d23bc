from __future__ import annotations

from uuid import UUID

from redis.asyncio import Redis
from redis.exceptions import RedisError

from shared.constants.redis_keys import (
    COMMITTED_PREFIX,
    RESERVED_MARKER,
    committed_value,
    ledger_key,
)
from shared.contracts.enums import IdempotencyOutcome
from shared.contracts.errors import LedgerUnavailableError, ReservationInFlightError
from shared.logging import get_logger

logger = get_logger(__name__)


class RedisIdempotencyLedger:
    """Ledger backed by Redis keys.

    A reservation is a ``SET NX`` with the lease as its TTL, so a crashed worker's
    reservation frees itself. Committed records carry the retention window as TTL,
    which makes ``purge_expired`` a no-op. The ledger fails closed: an unreachable
    Redis is a retryable handler failure.
    """

    def __init__(
        self,
        redis_client: Redis,
        *,
        retention_seconds: int = 30 * 24 * 3600,
        lease_seconds: int = 60,
    ) -> None:
        self._redis = redis_client
        self._retention_seconds = retention_seconds
        self._lease_seconds = lease_seconds

    async def check_and_reserve(self, consumer_group: str, event_id: UUID) -> IdempotencyOutcome:
        key = ledger_key(consumer_group, event_id)
        try:
            if await self._try_reserve(key):
                return IdempotencyOutcome.FRESH
            current = _as_text(await self._redis.get(key))
            if current is None and await self._try_reserve(key):
                return IdempotencyOutcome.FRESH
        except RedisError as exc:
            self._log_unavailable("check_and_reserve", consumer_group, event_id, exc)
            raise LedgerUnavailableError() from exc

        if current is not None and current.startswith(COMMITTED_PREFIX):
            return IdempotencyOutcome.ALREADY_PROCESSED
        raise ReservationInFlightError(consumer_group, event_id)

    async def commit(
        self, consumer_group: str, event_id: UUID, result_hash: str | None = None
    ) -> None:
        key = ledger_key(consumer_group, event_id)
        try:
            await self._redis.set(key, committed_value(result_hash), ex=self._retention_seconds)
        except RedisError as exc:
            self._log_unavailable("commit", consumer_group, event_id, exc)
            raise LedgerUnavailableError() from exc

    async def release(self, consumer_group: str, event_id: UUID) -> None:
        key = ledger_key(consumer_group, event_id)
        try:
            current = _as_text(await self._redis.get(key))
            if current == RESERVED_MARKER:
                await self._redis.delete(key)
        except RedisError as exc:
            self._log_unavailable("release", consumer_group, event_id, exc)
            raise LedgerUnavailableError() from exc

    async def purge_expired(self) -> int:
        return 0

    async def _try_reserve(self, key: str) -> bool:
        acquired = await self._redis.set(key, RESERVED_MARKER, ex=self._lease_seconds, nx=True)
        return bool(acquired)

    def _log_unavailable(
        self, operation: str, consumer_group: str, event_id: UUID, exc: RedisError
    ) -> None:
        logger.warning(
            "ledger_redis_unavailable",
            extra={
                "extra_fields": {
                    "operation": operation,
                    "consumer_group": consumer_group,
                    "event_id": str(event_id),
                    "error_type": type(exc).__name__,
                }
            },
        )


def _as_text(value: str | bytes | None) -> str | None:
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return value
