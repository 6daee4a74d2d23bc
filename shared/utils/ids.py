from __future__ import annotations

from uuid import NAMESPACE_URL, UUID, uuid4, uuid5

_EVENT_NAMESPACE = uuid5(NAMESPACE_URL, "urn:choreography:events")
_ORDER_NAMESPACE = uuid5(NAMESPACE_URL, "urn:choreography:orders")


def new_uuid() -> UUID:
    return uuid4()


def deterministic_event_id(*parts: object) -> UUID:
    return uuid5(_EVENT_NAMESPACE, ":".join(str(part) for part in parts))


def deterministic_order_id(user_id: str, dedup_token: str) -> UUID:
    return uuid5(_ORDER_NAMESPACE, f"{user_id}:{dedup_token}")
