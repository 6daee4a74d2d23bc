from __future__ import annotations

from opentelemetry import metrics

meter = metrics.get_meter("notification-service")
emails_sent = meter.create_counter("emails_sent_total", description="Emails handed to transport")
email_failures = meter.create_counter(
    "email_failures_total", description="Mail transport failures"
)
mail_latency = meter.create_histogram(
    "mail_transport_latency_ms", description="Mail transport latency in ms"
)
recipient_lookups = meter.create_counter(
    "recipient_lookups_total", description="Recipient resolutions by source"
)
projection_updates = meter.create_counter(
    "notification_projection_updates_total", description="Projection writes by topic"
)
stale_projection_updates = meter.create_counter(
    "notification_projection_stale_total",
    description="order.updated events ignored because the view is newer",
)
