"""Persistent store ports for events, mirrored entities and producers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Mapping
    from datetime import datetime

    from ..domain.models import Offer, Order, Producer, Product, SyncEvent
    from ..domain.results import EventFilter


@runtime_checkable
class ISyncEventRepository(Protocol):
    """Store for ingested events. ``event_id`` is unique."""

    async def add(self, event: SyncEvent) -> SyncEvent:
        """Insert a new event and return it with ``sequence`` assigned.

        Raises:
            DuplicateEventError: If an event with the same id already exists.
        """
        ...

    async def get(self, event_id: str) -> SyncEvent | None: ...

    async def save(self, event: SyncEvent) -> None:
        """Persist processing state (processed flag, error, retry count)."""
        ...

    async def last_processed_event_id(self, source: str) -> str | None:
        """Id of the processed event with the highest sequence for *source*."""
        ...

    async def search(
        self, event_filter: EventFilter
    ) -> tuple[list[SyncEvent], int]:
        """Return one page (newest first) and the total number of matches."""
        ...

    async def purge_processed(self, before: datetime) -> int:
        """Delete processed events created before *before*; returns the count."""
        ...


@runtime_checkable
class IProductRepository(Protocol):
    async def get(self, product_id: str) -> Product | None: ...

    async def save(self, product: Product) -> None: ...

    async def list_pending_push(self, since: datetime, limit: int) -> list[Product]:
        """Active products changed at or after *since* and not synced since.

        Oldest change first.
        """
        ...


@runtime_checkable
class IOfferRepository(Protocol):
    async def get(self, offer_id: str) -> Offer | None: ...

    async def get_by_allegro_id(self, allegro_offer_id: str) -> Offer | None: ...

    async def get_by_product_id(self, product_id: str) -> Offer | None: ...

    async def save(self, offer: Offer) -> None: ...

    async def list_linked(self, limit: int) -> list[Offer]:
        """Offers that carry a marketplace id, least recently synced first."""
        ...


@runtime_checkable
class IOrderRepository(Protocol):
    async def get_by_allegro_id(self, allegro_order_id: str) -> Order | None: ...

    async def save(self, order: Order) -> None: ...

    async def restore_stock(
        self, allegro_order_id: str, quantities: Mapping[str, int]
    ) -> list[str] | None:
        """Give cancelled quantities back to offer and linked product stock.

        *quantities* maps Allegro offer ids to units. The ledger row for the
        order and every increment are written together or not at all.

        Returns the offer ids whose stock was restored (unknown offers are
        left out), or None when the order was already restored.
        """
        ...


@runtime_checkable
class IProducerRepository(Protocol):
    async def get_by_remote_id(
        self, account_id: str, remote_id: str
    ) -> Producer | None: ...

    async def upsert(self, producer: Producer) -> Producer:
        """Insert or update by ``(account_id, remote_id)``.

        Returns the stored row; its ``id`` is stable across repeated and
        concurrent upserts of the same key.
        """
        ...

    async def list_for_account(self, account_id: str) -> list[Producer]: ...


@dataclass(frozen=True)
class SyncStore:
    """The repositories of one persistent store, shared by all components."""

    events: ISyncEventRepository
    products: IProductRepository
    offers: IOfferRepository
    orders: IOrderRepository
    producers: IProducerRepository
