from __future__ import annotations

ORDER_SERVICE_GROUP = "order-service"
PAYMENT_WEBHOOK_GROUP = "payment-webhooks"
EMAIL_GROUP = "email"
NOTIFICATION_PROJECTION_GROUP = "notification-projections"
OUTBOX_RELAY_GROUP = "outbox-relay"
