"""Domain layer: mirrored entities, event taxonomy and run summaries."""

from __future__ import annotations

from .event_types import (
    ALLEGRO_EVENT_TYPES,
    EventStream,
    InternalEventType,
    map_allegro_event_type,
    native_event_id,
    synthesize_event_id,
)
from .models import (
    Offer,
    Order,
    OrderLineItem,
    Producer,
    Product,
    SyncedEntity,
    SyncEvent,
    SyncSource,
    SyncStatus,
)
from .results import (
    BidirectionalResult,
    EventFilter,
    EventPage,
    PollResult,
    ProducerSyncSummary,
    SyncErrorKind,
    SyncRecordError,
    SyncRunResult,
)

__all__ = [
    "ALLEGRO_EVENT_TYPES",
    "BidirectionalResult",
    "EventFilter",
    "EventPage",
    "EventStream",
    "InternalEventType",
    "Offer",
    "Order",
    "OrderLineItem",
    "PollResult",
    "Producer",
    "ProducerSyncSummary",
    "Product",
    "SyncEvent",
    "SyncErrorKind",
    "SyncRecordError",
    "SyncRunResult",
    "SyncSource",
    "SyncStatus",
    "SyncedEntity",
    "map_allegro_event_type",
    "native_event_id",
    "synthesize_event_id",
]
