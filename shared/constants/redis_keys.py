from __future__ import annotations

from uuid import UUID

LEDGER_KEY_PREFIX = "ledger"
RESERVED_MARKER = "reserved"
COMMITTED_PREFIX = "committed"


def ledger_key(consumer_group: str, event_id: UUID | str) -> str:
    return f"{LEDGER_KEY_PREFIX}:{consumer_group}:{event_id}"


def committed_value(result_hash: str | None) -> str:
    return f"{COMMITTED_PREFIX}:{result_hash or ''}"
