from __future__ import annotations

from datetime import datetime
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel

from shared.contracts import DeadLetterStatus
from shared.messaging.base import EventBusBase
from shared.messaging.dead_letter import DeadLetter, DeadLetterHandler

router = APIRouter(prefix="/dead-letters", tags=["dead-letters"])


class DeadLetterView(BaseModel):
    id: UUID
    event_id: UUID | None
    topic: str
    consumer_group: str
    partition_key: str | None
    error_type: str
    error_message: str
    attempts: int
    status: DeadLetterStatus
    created_at: datetime


class ReplayResponse(BaseModel):
    dead_letter_id: UUID
    event_id: UUID


def get_dead_letter_handler(request: Request) -> DeadLetterHandler:
    return request.app.state.dead_letters


def get_event_bus(request: Request) -> EventBusBase:
    return request.app.state.event_bus


@router.get("")
async def list_dead_letters(
    handler: Annotated[DeadLetterHandler, Depends(get_dead_letter_handler)],
    limit: Annotated[int, Query(ge=1, le=500)] = 100,
) -> list[DeadLetterView]:
    return [_to_view(item) for item in await handler.pending(limit)]


@router.post("/{dead_letter_id}/replay")
async def replay_dead_letter(
    dead_letter_id: UUID,
    handler: Annotated[DeadLetterHandler, Depends(get_dead_letter_handler)],
    bus: Annotated[EventBusBase, Depends(get_event_bus)],
) -> ReplayResponse:
    event_id = await handler.replay(dead_letter_id, bus)
    return ReplayResponse(dead_letter_id=dead_letter_id, event_id=event_id)


def _to_view(item: DeadLetter) -> DeadLetterView:
    return DeadLetterView(
        id=item.id,
        event_id=item.event_id,
        topic=item.topic,
        consumer_group=item.consumer_group,
        partition_key=item.partition_key,
        error_type=item.error_type,
        error_message=item.error_message,
        attempts=item.attempts,
        status=item.status,
        created_at=item.created_at,
    )
