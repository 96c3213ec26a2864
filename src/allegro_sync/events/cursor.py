"""Resume cursors derived from persisted events."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..domain.event_types import EventStream
    from ..ports.repositories import ISyncEventRepository


class CursorStore:
    """
    Per-stream resume position.

    There is no separately stored offset: the cursor is the id of the
    processed event with the highest ingestion sequence for the stream's
    source, so it is recovered from persisted state after a restart and never
    moves backwards when an older event is retried later.
    """

    def __init__(self, events: ISyncEventRepository) -> None:
        self._events = events

    async def get(self, stream: EventStream) -> str | None:
        return await self._events.last_processed_event_id(stream.source)
