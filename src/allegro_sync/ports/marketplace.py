"""Marketplace client port: the slice of the Allegro API the engine consumes."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from ..domain.event_types import EventStream
    from .credentials import AccountCredential


@dataclass(frozen=True)
class MarketplaceEventPage:
    """One page of raw events returned by an event stream."""

    events: list[dict[str, Any]] = field(default_factory=list)
    last_event_id: str | None = None


@runtime_checkable
class IMarketplaceClient(Protocol):
    """
    Async marketplace client.

    Every method raises ``RemoteUnreachableError`` for transport failures,
    timeouts, throttling and 5xx answers, ``RemoteNotFoundError`` for 404 and
    ``RemoteRejectedError`` for any other 4xx answer.
    """

    async def fetch_events(
        self,
        stream: EventStream,
        *,
        from_event_id: str | None = None,
        limit: int = 100,
    ) -> MarketplaceEventPage:
        """Fetch up to *limit* events that follow *from_event_id* on *stream*."""
        ...

    async def get_offer(self, offer_id: str) -> dict[str, Any]: ...

    async def create_offer(self, payload: dict[str, Any]) -> dict[str, Any]:
        """Create an offer; the answer carries the new offer ``id``."""
        ...

    async def update_offer(
        self, offer_id: str, payload: dict[str, Any]
    ) -> dict[str, Any]: ...

    async def get_order(self, order_id: str) -> dict[str, Any]: ...

    async def get_responsible_producer(
        self, credential: AccountCredential, producer_id: str
    ) -> dict[str, Any]: ...

    async def list_responsible_producers(
        self, credential: AccountCredential
    ) -> list[dict[str, Any]]: ...
