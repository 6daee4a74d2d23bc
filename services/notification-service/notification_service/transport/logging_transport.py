from __future__ import annotations

from notification_service.transport.contracts import MailMessage
from shared.logging import get_logger

logger = get_logger(__name__)


class LoggingMailTransport:
    """Local transport that logs each message and keeps it for inspection."""

    def __init__(self) -> None:
        self.sent: list[MailMessage] = []
        self._by_key: dict[str, str] = {}

    async def send(self, message: MailMessage) -> str:
        existing = self._by_key.get(message.idempotency_key)
        if existing is not None:
            return existing
        message_id = f"log-{len(self.sent) + 1}"
        self._by_key[message.idempotency_key] = message_id
        self.sent.append(message)
        logger.info(
            "email_logged",
            extra={
                "extra_fields": {
                    "message_id": message_id,
                    "email": message.to,
                    "subject": message.subject,
                    "idempotency_key": message.idempotency_key,
                }
            },
        )
        return message_id

    async def close(self) -> None:
        return None
