from __future__ import annotations

import httpx
from pydantic import ValidationError

from notification_service.core.errors import RecipientUnavailableError
from shared.contracts import UserContact
from shared.observability import inject_headers


class UserDirectoryClient:
    """Read-only lookup against the user directory query API."""

    def __init__(self, http_client: httpx.AsyncClient) -> None:
        self._http_client = http_client

    async def get_contact(self, user_id: str) -> UserContact | None:
        try:
            response = await self._http_client.get(
                f"/users/{user_id}", headers=inject_headers({"Accept": "application/json"})
            )
        except httpx.TimeoutException as exc:
            raise RecipientUnavailableError("User directory timed out") from exc
        except httpx.TransportError as exc:
            raise RecipientUnavailableError(f"User directory unreachable: {exc}") from exc

        if response.status_code == 404:
            return None
        if response.status_code >= 400:
            raise RecipientUnavailableError(f"User directory returned {response.status_code}")
        try:
            return UserContact.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise RecipientUnavailableError("User directory returned an unreadable user") from exc

    async def close(self) -> None:
        await self._http_client.aclose()


def build_user_directory(
    base_url: str | None, timeout_seconds: float
) -> UserDirectoryClient | None:
    if not base_url:
        return None
    return UserDirectoryClient(httpx.AsyncClient(base_url=base_url, timeout=timeout_seconds))
