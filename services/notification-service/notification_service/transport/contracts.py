from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True)
class MailMessage:
    to: str
    subject: str
    body: str
    idempotency_key: str


class MailTransport(Protocol):
    async def send(self, message: MailMessage) -> str: ...

    async def close(self) -> None: ...
