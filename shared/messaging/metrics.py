from __future__ import annotations

from opentelemetry import metrics

meter = metrics.get_meter("event-bus")
events_published = meter.create_counter(
    "event_bus_published_total", description="Envelopes accepted by the broker"
)
publish_failures = meter.create_counter(
    "event_bus_publish_failures_total", description="Publishes that exhausted retries"
)
handler_failures = meter.create_counter(
    "event_bus_handler_failures_total", description="Failed handler invocations"
)
dead_lettered = meter.create_counter(
    "event_bus_dead_lettered_total", description="Envelopes routed to the dead-letter store"
)
delivery_latency = meter.create_histogram(
    "event_bus_delivery_latency_ms", description="Handler latency including retries"
)
