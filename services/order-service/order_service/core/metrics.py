from __future__ import annotations

from opentelemetry import metrics

meter = metrics.get_meter("order-service")
request_counter = meter.create_counter("order_service_request_total", description="Total requests")
error_counter = meter.create_counter(
    "order_service_error_total", description="Total error responses"
)
latency_histogram = meter.create_histogram(
    "order_service_request_latency_ms", description="Request latency in ms"
)

orders_created = meter.create_counter("orders_created_total", description="Orders created")
order_create_replays = meter.create_counter(
    "order_create_replay_total", description="Create commands answered with an existing order"
)
order_transitions = meter.create_counter(
    "order_transitions_total", description="Applied order state transitions"
)
stale_payment_events = meter.create_counter(
    "order_stale_payment_events_total",
    description="Payment events dropped because their precondition no longer holds",
)
