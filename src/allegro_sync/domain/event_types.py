"""Event streams and the internal event-type taxonomy."""

from __future__ import annotations

import hashlib
import json
from enum import Enum
from typing import Any

SYNTHETIC_ID_PREFIX = "synth-"


class EventStream(str, Enum):
    """Independently polled marketplace event streams.

    The value doubles as the ``SyncEvent.source`` of events ingested from the
    stream, which is what keeps the two cursors apart.
    """

    OFFERS = "allegro.offers"
    ORDERS = "allegro.orders"

    @property
    def source(self) -> str:
        return self.value


class InternalEventType(str, Enum):
    OFFER_CREATED = "offer.created"
    OFFER_UPDATED = "offer.updated"
    OFFER_ENDED = "offer.ended"
    INVENTORY_UPDATED = "inventory.updated"
    ORDER_CREATED = "order.created"
    ORDER_UPDATED = "order.updated"


ALLEGRO_EVENT_TYPES: dict[str, InternalEventType] = {
    "OFFER_CREATED": InternalEventType.OFFER_CREATED,
    "OFFER_UPDATED": InternalEventType.OFFER_UPDATED,
    "OFFER_ACTIVATED": InternalEventType.OFFER_UPDATED,
    "OFFER_CHANGED": InternalEventType.OFFER_UPDATED,
    "OFFER_PRICE_CHANGED": InternalEventType.OFFER_UPDATED,
    "OFFER_ENDED": InternalEventType.OFFER_ENDED,
    "OFFER_ARCHIVED": InternalEventType.OFFER_ENDED,
    "OFFER_STOCK_CHANGED": InternalEventType.INVENTORY_UPDATED,
    "ORDER_CREATED": InternalEventType.ORDER_CREATED,
    "BOUGHT": InternalEventType.ORDER_CREATED,
    "ORDER_UPDATED": InternalEventType.ORDER_UPDATED,
    "ORDER_PAID": InternalEventType.ORDER_UPDATED,
    "ORDER_SENT": InternalEventType.ORDER_UPDATED,
    "ORDER_CANCELLED": InternalEventType.ORDER_UPDATED,
    "FILLED_IN": InternalEventType.ORDER_UPDATED,
    "READY_FOR_PROCESSING": InternalEventType.ORDER_UPDATED,
    "BUYER_CANCELLED": InternalEventType.ORDER_UPDATED,
    "AUTO_CANCELLED": InternalEventType.ORDER_UPDATED,
    "FULFILLMENT_STATUS_CHANGED": InternalEventType.ORDER_UPDATED,
}

_INTERNAL_VALUES = {t.value for t in InternalEventType}


def map_allegro_event_type(raw_type: str | None) -> str:
    """Translate Allegro's vocabulary into the internal taxonomy.

    Unmapped types are normalised (``SOME_THING`` -> ``some.thing``) and later
    dropped by the dispatcher as unknown.
    """
    if not raw_type:
        return "unknown"
    if raw_type in _INTERNAL_VALUES:
        return raw_type
    mapped = ALLEGRO_EVENT_TYPES.get(raw_type.upper())
    if mapped is not None:
        return mapped.value
    return raw_type.lower().replace("_", ".")


def _entity_id(event: dict[str, Any]) -> str:
    for key in ("offer", "order"):
        entity = event.get(key)
        if isinstance(entity, dict) and entity.get("id") is not None:
            return str(entity["id"])
    for key in ("orderId", "checkoutFormId", "offerId"):
        if event.get(key) is not None:
            return str(event[key])
    return ""


def synthesize_event_id(event: dict[str, Any], *, default_type: str = "unknown") -> str:
    """Deterministic id for events that arrive without a native one.

    Derived from type, entity id, occurrence time and the canonical payload, so
    the same event re-polled later maps to the same id and is deduplicated.
    """
    event_type = str(event.get("type") or event.get("eventType") or default_type)
    occurred_at = str(event.get("occurredAt") or event.get("occurred_at") or "")
    canonical = json.dumps(event, sort_keys=True, separators=(",", ":"), default=str)
    digest = hashlib.sha256(
        "|".join((event_type, _entity_id(event), occurred_at, canonical)).encode()
    ).hexdigest()
    return f"{SYNTHETIC_ID_PREFIX}{digest[:32]}"


def native_event_id(event: dict[str, Any]) -> str | None:
    """The marketplace-assigned id, when the event carries one."""
    value = event.get("id") or event.get("eventId")
    return str(value) if value is not None else None
