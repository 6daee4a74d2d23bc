from __future__ import annotations

import httpx

from notification_service.core.config import Settings
from notification_service.transport.contracts import MailTransport
from notification_service.transport.http import HttpMailTransport
from notification_service.transport.logging_transport import LoggingMailTransport
from shared.resilience import Bulkhead, CircuitBreaker, CircuitBreakerConfig


class MailTransportFactory:
    def __init__(self, settings: Settings) -> None:
        self._settings = settings

    def create(self) -> MailTransport:
        backend = self._settings.mail_backend.strip().lower()
        if backend == "logging":
            return LoggingMailTransport()
        if backend == "http":
            headers: dict[str, str] = {}
            if self._settings.mail_api_key:
                headers["Authorization"] = f"Bearer {self._settings.mail_api_key}"
            client = httpx.AsyncClient(
                base_url=self._settings.mail_api_base_url,
                timeout=self._settings.mail_timeout_seconds,
                headers=headers,
            )
            return HttpMailTransport(
                client,
                CircuitBreaker(
                    "mail-provider",
                    CircuitBreakerConfig(
                        failure_threshold=self._settings.mail_breaker_failure_threshold,
                        recovery_timeout_seconds=self._settings.mail_breaker_recovery_seconds,
                    ),
                ),
                Bulkhead(
                    limit_per_key=self._settings.mail_bulkhead_limit,
                    acquire_timeout_seconds=self._settings.mail_bulkhead_acquire_timeout_seconds,
                ),
                sender=self._settings.mail_sender,
            )
        raise ValueError(f"Unsupported mail backend: {self._settings.mail_backend}")
