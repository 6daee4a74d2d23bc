from __future__ import annotations

from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from notification_service.core.errors import RecipientUnavailableError
from notification_service.core.metrics import recipient_lookups
from notification_service.directory.user_directory import UserDirectoryClient
from notification_service.repositories.projection_repository import ProjectionRepository
from shared.contracts import UserContact


class RecipientResolver:
    """Finds the email address for a user or an order.

    Local projections are read first; the user directory is the fallback for
    users created before this service was subscribed.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        directory: UserDirectoryClient | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._directory = directory

    async def for_user(self, user_id: str) -> UserContact:
        async with self._session_factory() as session:
            repository = self._build_repository(session)
            contact = await repository.get_contact(user_id)
            if contact is not None:
                recipient_lookups.add(1, {"source": "projection"})
                return UserContact(
                    user_id=contact.user_id,
                    email=contact.email,
                    display_name=contact.display_name,
                )

            if self._directory is not None:
                found = await self._directory.get_contact(user_id)
                if found is not None:
                    recipient_lookups.add(1, {"source": "directory"})
                    await repository.upsert_contact(found)
                    await session.commit()
                    return found

        recipient_lookups.add(1, {"source": "missing"})
        raise RecipientUnavailableError(f"No contact known for user {user_id}")

    async def for_order(self, order_id: UUID) -> UserContact:
        async with self._session_factory() as session:
            view = await self._build_repository(session).get_order_view(order_id)
        if view is None:
            recipient_lookups.add(1, {"source": "order_not_projected"})
            raise RecipientUnavailableError(f"Order {order_id} is not projected yet")
        return await self.for_user(view.user_id)

    def _build_repository(self, session: AsyncSession) -> ProjectionRepository:
        return ProjectionRepository(session)
