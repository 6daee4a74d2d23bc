from __future__ import annotations

from opentelemetry import metrics

meter = metrics.get_meter("idempotency-ledger")
duplicates_dropped = meter.create_counter(
    "ledger_duplicates_dropped_total", description="Redelivered events skipped by the ledger"
)
reservations_taken_over = meter.create_counter(
    "ledger_reservations_taken_over_total", description="Expired reservations reclaimed"
)
records_purged = meter.create_counter(
    "ledger_records_purged_total", description="Committed records dropped after retention"
)
