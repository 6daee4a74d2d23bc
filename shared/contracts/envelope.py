from __future__ import annotations

import json
from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, SerializeAsAny, ValidationError
from pydantic.alias_generators import to_camel

from shared.contracts.enums import Topic
from shared.contracts.errors import PayloadValidationError
from shared.contracts.events import EventPayload, payload_model_for, schema_version_of, topic_of
from shared.utils.ids import new_uuid
from shared.utils.time import utc_now


class _EnvelopeHeader(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    event_id: UUID
    topic: Topic
    partition_key: str = Field(min_length=1, max_length=256)
    schema_version: int = Field(ge=1)
    produced_at: datetime
    trace_id: str = ""
    payload: dict[str, Any]


class EventEnvelope(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True, extra="forbid"
    )

    event_id: UUID
    topic: Topic
    partition_key: str = Field(min_length=1, max_length=256)
    schema_version: int = Field(ge=1)
    produced_at: datetime
    trace_id: str = ""
    payload: SerializeAsAny[EventPayload]

    @classmethod
    def build(
        cls,
        payload: EventPayload,
        partition_key: str,
        *,
        event_id: UUID | None = None,
        trace_id: str = "",
        produced_at: datetime | None = None,
    ) -> EventEnvelope:
        return cls(
            event_id=event_id or new_uuid(),
            topic=topic_of(payload),
            partition_key=partition_key,
            schema_version=schema_version_of(payload),
            produced_at=produced_at or utc_now(),
            trace_id=trace_id,
            payload=payload,
        )

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


def encode_envelope(envelope: EventEnvelope) -> bytes:
    return envelope.model_dump_json(by_alias=True).encode("utf-8")


def decode_envelope(raw: bytes | str | dict[str, Any]) -> EventEnvelope:
    document = _load_document(raw)
    try:
        header = _EnvelopeHeader.model_validate(document)
    except ValidationError as exc:
        raise PayloadValidationError(f"Malformed envelope: {_summarize(exc)}") from exc

    payload_model = payload_model_for(header.topic, header.schema_version)
    try:
        payload = payload_model.model_validate(header.payload)
    except ValidationError as exc:
        raise PayloadValidationError(
            f"Malformed {header.topic.value} payload: {_summarize(exc)}"
        ) from exc

    return EventEnvelope(
        event_id=header.event_id,
        topic=header.topic,
        partition_key=header.partition_key,
        schema_version=header.schema_version,
        produced_at=header.produced_at,
        trace_id=header.trace_id,
        payload=payload,
    )


def _load_document(raw: bytes | str | dict[str, Any]) -> dict[str, Any]:
    if isinstance(raw, dict):
        return raw
    try:
        document = json.loads(raw)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise PayloadValidationError("Envelope is not valid JSON") from exc
    if not isinstance(document, dict):
        raise PayloadValidationError("Envelope must be a JSON object")
    return document


def _summarize(exc: ValidationError) -> str:
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()))
    return f"{location}: {first.get('msg', 'invalid')}"
