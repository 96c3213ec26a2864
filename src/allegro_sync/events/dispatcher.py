"""EventDispatcher — routes internal event types to entity handlers."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from ..domain.event_types import InternalEventType
from ..primitives.exceptions import UnknownEventTypeError

if TYPE_CHECKING:
    from ..handlers.base import EntityHandler

logger = logging.getLogger("allegro_sync.events")

# Alternative spellings seen in older payloads.
EVENT_TYPE_ALIASES: dict[str, str] = {
    "offer.inventory.updated": InternalEventType.INVENTORY_UPDATED.value,
}


class EventDispatcher:
    """One handler per internal event type."""

    def __init__(self, handlers: list[EntityHandler] | None = None) -> None:
        self._handlers: dict[str, EntityHandler] = {}
        for handler in handlers or []:
            self.register(handler)

    def register(self, handler: EntityHandler, *event_types: str) -> None:
        """Register *handler* for *event_types* (default: its own ``event_types``)."""
        for event_type in event_types or handler.event_types:
            if event_type in self._handlers:
                logger.warning(
                    "Replacing handler for %s: %s -> %s",
                    event_type,
                    type(self._handlers[event_type]).__name__,
                    type(handler).__name__,
                )
            self._handlers[event_type] = handler

    def handles(self, event_type: str) -> bool:
        return EVENT_TYPE_ALIASES.get(event_type, event_type) in self._handlers

    @property
    def registered_types(self) -> list[str]:
        return sorted(self._handlers)

    async def dispatch(self, event_type: str, payload: dict[str, Any]) -> None:
        """Run the handler for *event_type*.

        Raises:
            UnknownEventTypeError: If no handler is registered for the type.
        """
        handler = self._handlers.get(EVENT_TYPE_ALIASES.get(event_type, event_type))
        if handler is None:
            raise UnknownEventTypeError(event_type)
        logger.debug("Dispatching %s to %s", event_type, type(handler).__name__)
        await handler.handle(payload)
