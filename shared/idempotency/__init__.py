from shared.idempotency.contracts import IdempotencyLedger, hash_result, process_once
from shared.idempotency.factory import build_idempotency_ledger
from shared.idempotency.janitor import LedgerJanitor
from shared.idempotency.memory import MemoryIdempotencyLedger

__all__ = [
    "IdempotencyLedger",
    "LedgerJanitor",
    "MemoryIdempotencyLedger",
    "build_idempotency_ledger",
    "hash_result",
    "process_once",
]
