from __future__ import annotations

from opentelemetry import metrics

meter = metrics.get_meter("outbox-relay")
outbox_backlog = meter.create_histogram(
    "outbox_backlog", description="Pending outbox events per relay iteration"
)
outbox_lag_seconds = meter.create_histogram(
    "outbox_lag_seconds", description="Age of the oldest pending outbox event"
)
outbox_relayed = meter.create_counter(
    "outbox_relayed_total", description="Outbox events handed to the broker"
)
outbox_failed = meter.create_counter(
    "outbox_failed_total", description="Outbox events given up after max attempts"
)
