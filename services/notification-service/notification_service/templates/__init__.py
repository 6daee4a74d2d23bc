"""Template registry, keyed by the topic that triggers each email."""

from __future__ import annotations

from notification_service.templates.rendering import EmailTemplate, get_environment
from shared.contracts import Topic

WELCOME = EmailTemplate("welcome")
ORDER_CONFIRMATION = EmailTemplate("order_confirmation")
PAYMENT_RECEIPT = EmailTemplate("payment_receipt")

TEMPLATE_REGISTRY: dict[Topic, EmailTemplate] = {
    Topic.USER_CREATED: WELCOME,
    Topic.ORDER_CREATED: ORDER_CONFIRMATION,
    Topic.PAYMENT_SUCCESSFUL: PAYMENT_RECEIPT,
}

EMAIL_TOPICS: tuple[Topic, ...] = tuple(TEMPLATE_REGISTRY)


def get_template(topic: Topic) -> EmailTemplate:
    template = TEMPLATE_REGISTRY.get(topic)
    if template is None:
        raise ValueError(f"No template registered for topic: {topic.value}")
    return template


__all__ = [
    "EMAIL_TOPICS",
    "ORDER_CONFIRMATION",
    "PAYMENT_RECEIPT",
    "TEMPLATE_REGISTRY",
    "WELCOME",
    "EmailTemplate",
    "get_environment",
    "get_template",
]
