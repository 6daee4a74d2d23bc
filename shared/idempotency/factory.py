from __future__ import annotations

from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shared.idempotency.contracts import IdempotencyLedger
from shared.idempotency.memory import MemoryIdempotencyLedger
from shared.messaging.settings import MessagingSettings


def build_idempotency_ledger(
    settings: MessagingSettings,
    *,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    redis_client: Any | None = None,
) -> IdempotencyLedger:
    backend = settings.ledger_backend.strip().lower()
    if backend == "memory":
        return MemoryIdempotencyLedger(
            retention_seconds=settings.ledger_retention_seconds,
            lease_seconds=settings.ledger_lease_seconds,
        )
    if backend == "sql":
        if session_factory is None:
            raise ValueError("A session factory is required when LEDGER_BACKEND=sql")
        from shared.idempotency.sql import SqlIdempotencyLedger

        return SqlIdempotencyLedger(
            session_factory,
            retention_seconds=settings.ledger_retention_seconds,
            lease_seconds=settings.ledger_lease_seconds,
        )
    if backend == "redis":
        if redis_client is None:
            raise ValueError("A redis client is required when LEDGER_BACKEND=redis")
        from shared.idempotency.redis_ledger import RedisIdempotencyLedger

        return RedisIdempotencyLedger(
            redis_client,
            retention_seconds=settings.ledger_retention_seconds,
            lease_seconds=settings.ledger_lease_seconds,
        )
    raise ValueError(f"Unsupported ledger backend: {settings.ledger_backend}")
