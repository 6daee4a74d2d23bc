from __future__ import annotations

from opentelemetry import metrics

meter = metrics.get_meter("payment-service")
request_counter = meter.create_counter(
    "payment_service_request_total", description="Total requests"
)
error_counter = meter.create_counter(
    "payment_service_error_total", description="Total error responses"
)
latency_histogram = meter.create_histogram(
    "payment_service_request_latency_ms", description="Request latency in ms"
)

sessions_created = meter.create_counter(
    "checkout_sessions_created_total", description="Checkout sessions opened"
)
sessions_rejected = meter.create_counter(
    "checkout_sessions_rejected_total", description="Checkout session requests refused"
)
sessions_expired = meter.create_counter(
    "checkout_sessions_expired_total", description="Pending sessions moved to Expired"
)
provider_latency = meter.create_histogram(
    "provider_latency_ms", description="Payment provider call latency in ms"
)
provider_errors = meter.create_counter(
    "provider_errors_total", description="Payment provider call failures"
)
webhooks_received = meter.create_counter(
    "provider_webhooks_total", description="Verified provider webhooks by outcome"
)
webhook_rejections = meter.create_counter(
    "provider_webhook_rejections_total", description="Webhooks refused before processing"
)
