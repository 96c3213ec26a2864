"""EventIngestionService — cursor-based polling, deduplication and dispatch."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import TYPE_CHECKING, Any

from ..correlation import correlation_scope
from ..domain.event_types import (
    SYNTHETIC_ID_PREFIX,
    EventStream,
    InternalEventType,
    map_allegro_event_type,
    native_event_id,
    synthesize_event_id,
)
from ..domain.models import SyncEvent
from ..domain.results import EventFilter, EventPage, PollResult
from ..primitives.exceptions import (
    DuplicateEventError,
    EventAlreadyProcessedError,
    EventNotFoundError,
    HandlerFailureError,
    UnknownEventTypeError,
)
from ..utils import dig, utcnow
from .cursor import CursorStore

if TYPE_CHECKING:
    from ..ports.marketplace import IMarketplaceClient, MarketplaceEventPage
    from ..ports.repositories import SyncStore
    from ..resilience.retry import RetryExecutor
    from .dispatcher import EventDispatcher

logger = logging.getLogger("allegro_sync.events")


class _Outcome(str, Enum):
    PROCESSED = "processed"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class NormalisedEvent:
    event_id: str
    event_type: str
    payload: dict[str, Any]


def normalise_event(stream: EventStream, raw: dict[str, Any]) -> NormalisedEvent:
    """Stable id, internal type and handler-ready payload for a raw event.

    Order-stream entries arrive either as events (``{"id", "type", "order"}``)
    or as bare order objects; both are presented to handlers as
    ``{"order": {...}}``. A bare order's ``id`` is the order id, not an event
    id, so its event id is always synthesized from content.
    """
    if stream is EventStream.ORDERS:
        if isinstance(raw.get("order"), dict):
            order = dict(raw["order"])
            order.setdefault("id", dig(order, "checkoutForm", "id"))
            payload = {**raw, "order": order}
            raw_type = raw.get("type") or raw.get("eventType")
            event_id = native_event_id(raw) or synthesize_event_id(
                payload, default_type=InternalEventType.ORDER_UPDATED.value
            )
        else:
            payload = {"order": dict(raw)}
            raw_type = None
            event_id = synthesize_event_id(
                payload, default_type=InternalEventType.ORDER_UPDATED.value
            )
        event_type = (
            map_allegro_event_type(raw_type)
            if raw_type
            else InternalEventType.ORDER_UPDATED.value
        )
        return NormalisedEvent(event_id, event_type, payload)

    payload = dict(raw)
    event_id = native_event_id(raw) or synthesize_event_id(raw)
    event_type = map_allegro_event_type(raw.get("type") or raw.get("eventType"))
    return NormalisedEvent(event_id, event_type, payload)


class EventIngestionService:
    """
    Polls both marketplace streams and applies each new event exactly once.

    Lifecycle per event:
    1. Compute a stable event id (native or synthesized).
    2. Persist a ``SyncEvent(processed=False)``; an id that already exists is
       skipped, which is what makes re-polls idempotent.
    3. Dispatch to the entity handler.
    4. Mark processed, or record the error and bump ``retry_count``.

    Failed events are never retried automatically; use :meth:`retry_event`.
    """

    def __init__(
        self,
        store: SyncStore,
        marketplace: IMarketplaceClient,
        dispatcher: EventDispatcher,
        *,
        retry: RetryExecutor | None = None,
        page_size: int = 100,
        retention: timedelta = timedelta(days=30),
        streams: tuple[EventStream, ...] = (EventStream.OFFERS, EventStream.ORDERS),
    ) -> None:
        self.store = store
        self.marketplace = marketplace
        self.dispatcher = dispatcher
        self.cursors = CursorStore(store.events)
        self._retry = retry
        self.page_size = page_size
        self.retention = retention
        self.streams = streams

    # ── Polling ───────────────────────────────────────────────────────

    async def poll_events(self) -> PollResult:
        """One poll cycle over every stream; streams run concurrently."""
        with correlation_scope() as correlation_id:
            logger.info("Polling Allegro events (correlation_id=%s)", correlation_id)
            outcomes = await asyncio.gather(
                *(self._poll_stream(stream) for stream in self.streams)
            )
            result = PollResult(
                processed_count=sum(o.count(_Outcome.PROCESSED) for o in outcomes),
                failed_count=sum(o.count(_Outcome.FAILED) for o in outcomes),
                skipped_count=sum(o.count(_Outcome.SKIPPED) for o in outcomes),
            )
            logger.info(
                "Event polling completed: processed=%d failed=%d skipped=%d",
                result.processed_count,
                result.failed_count,
                result.skipped_count,
            )
            return result

    async def _poll_stream(self, stream: EventStream) -> list[_Outcome]:
        try:
            cursor = await self.cursors.get(stream)
            page = await self._fetch(stream, cursor)
        except Exception as exc:  # noqa: BLE001
            logger.error("Failed to poll %s events: %s", stream.value, exc)
            return []

        logger.info(
            "Fetched %d %s event(s) after %s",
            len(page.events),
            stream.value,
            cursor,
        )
        # Page order is preserved within a stream.
        return [await self._ingest(stream, raw) for raw in page.events]

    async def _fetch(
        self, stream: EventStream, cursor: str | None
    ) -> MarketplaceEventPage:
        # A synthesized id means nothing to the remote side; replay instead.
        from_event_id = (
            cursor if cursor and not cursor.startswith(SYNTHETIC_ID_PREFIX) else None
        )
        if self._retry is None:
            return await self.marketplace.fetch_events(
                stream, from_event_id=from_event_id, limit=self.page_size
            )
        return await self._retry.execute(
            self.marketplace.fetch_events,
            stream,
            from_event_id=from_event_id,
            limit=self.page_size,
            operation=f"fetch_events[{stream.value}]",
        )

    async def _ingest(self, stream: EventStream, raw: dict[str, Any]) -> _Outcome:
        normalised = normalise_event(stream, raw)
        try:
            event = await self.store.events.add(
                SyncEvent(
                    event_id=normalised.event_id,
                    event_type=normalised.event_type,
                    source=stream.source,
                    payload=normalised.payload,
                )
            )
        except DuplicateEventError:
            logger.debug("Event %s already ingested; skipping", normalised.event_id)
            return _Outcome.SKIPPED

        try:
            await self._apply(event)
        except HandlerFailureError:
            return _Outcome.FAILED
        return _Outcome.PROCESSED

    async def _apply(self, event: SyncEvent) -> None:
        """Dispatch a stored event and persist the outcome.

        Raises:
            HandlerFailureError: If the handler raised.
        """
        try:
            await self.dispatcher.dispatch(event.event_type, event.payload)
        except UnknownEventTypeError:
            # Dropped, but marked processed so the cursor can move past it.
            logger.warning(
                "Unknown event type %s (event %s); dropping",
                event.event_type,
                event.event_id,
            )
        except Exception as exc:  # noqa: BLE001
            event.processing_error = str(exc) or type(exc).__name__
            event.retry_count += 1
            await self.store.events.save(event)
            logger.error(
                "Handler failed for event %s (%s): %s",
                event.event_id,
                event.event_type,
                event.processing_error,
            )
            raise HandlerFailureError(
                event.event_id, event.event_type, event.processing_error
            ) from exc

        event.processed = True
        event.processed_at = utcnow()
        event.processing_error = None
        await self.store.events.save(event)

    # ── Single-event operations ──────────────────────────────────────

    async def retry_event(self, event_id: str) -> SyncEvent:
        """Re-dispatch one failed event.

        Raises:
            EventNotFoundError: If the event is unknown.
            EventAlreadyProcessedError: If the event was already processed.
            HandlerFailureError: If the handler fails again.
        """
        event = await self.store.events.get(event_id)
        if event is None:
            raise EventNotFoundError(event_id)
        if event.processed:
            raise EventAlreadyProcessedError(event_id)

        with correlation_scope():
            logger.info(
                "Retrying event %s (%s), previous attempts: %d",
                event_id,
                event.event_type,
                event.retry_count,
            )
            await self._apply(event)
        return event

    async def get_event(self, event_id: str) -> SyncEvent:
        event = await self.store.events.get(event_id)
        if event is None:
            raise EventNotFoundError(event_id)
        return event

    async def list_events(self, event_filter: EventFilter | None = None) -> EventPage:
        """Paged event listing, newest first."""
        event_filter = event_filter or EventFilter()
        items, total = await self.store.events.search(event_filter)
        return EventPage(
            items=items,
            page=event_filter.page,
            limit=event_filter.limit,
            total=total,
        )

    async def purge_processed_events(self, older_than: timedelta | None = None) -> int:
        """Retention sweep: delete processed events older than the cutoff."""
        cutoff = utcnow() - (older_than if older_than is not None else self.retention)
        deleted = await self.store.events.purge_processed(cutoff)
        logger.info("Purged %d processed event(s) created before %s", deleted, cutoff)
        return deleted
