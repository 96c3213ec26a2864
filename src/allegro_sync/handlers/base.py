"""Base class for entity handlers."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, ClassVar

if TYPE_CHECKING:
    from ..concurrency import EntityLocks
    from ..notifications import SyncNotifier
    from ..ports.repositories import SyncStore

logger = logging.getLogger("allegro_sync.handlers")


class EntityHandler(ABC):
    """
    Applies one event payload to the local entity graph.

    Handlers serialize their read-modify-write through :class:`EntityLocks`
    and must be safe to re-apply to the same payload.
    """

    event_types: ClassVar[tuple[str, ...]] = ()

    def __init__(
        self,
        store: SyncStore,
        locks: EntityLocks,
        notifier: SyncNotifier | None = None,
    ) -> None:
        self.store = store
        self.locks = locks
        self.notifier = notifier

    @abstractmethod
    async def handle(self, payload: dict[str, Any]) -> None:
        """Apply *payload*; raising marks the event as failed."""

    @staticmethod
    def _entity(payload: dict[str, Any], key: str) -> dict[str, Any] | None:
        entity = payload.get(key)
        if not isinstance(entity, dict) or entity.get("id") is None:
            logger.debug("Payload has no %s entity; nothing to apply", key)
            return None
        return entity
