"""Event ingestion: cursors, dispatch and the polling service."""

from __future__ import annotations

from .cursor import CursorStore
from .dispatcher import EVENT_TYPE_ALIASES, EventDispatcher
from .ingestion import EventIngestionService, NormalisedEvent, normalise_event

__all__ = [
    "EVENT_TYPE_ALIASES",
    "CursorStore",
    "EventDispatcher",
    "EventIngestionService",
    "NormalisedEvent",
    "normalise_event",
]
