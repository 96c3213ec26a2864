"""Dict-backed repositories for single-process use and tests.

Rows are stored as deep copies so callers never share mutable state with the
store, which mirrors what a database round-trip gives you.
"""

from __future__ import annotations

import itertools
from typing import TYPE_CHECKING

from ...domain.models import SyncStatus
from ...ports.repositories import (
    IOfferRepository,
    IOrderRepository,
    IProducerRepository,
    IProductRepository,
    ISyncEventRepository,
    SyncStore,
)
from ...primitives.exceptions import DuplicateEventError
from ...utils import ensure_aware

if TYPE_CHECKING:
    from collections.abc import Mapping
    from datetime import datetime

    from ...domain.models import Offer, Order, Producer, Product, SyncEvent
    from ...domain.results import EventFilter


def _synced_since_change(product: Product) -> bool:
    return (
        product.sync_status is SyncStatus.SYNCED
        and product.last_synced_at is not None
        and ensure_aware(product.last_synced_at) >= ensure_aware(product.updated_at)
    )


class InMemorySyncEventRepository(ISyncEventRepository):
    def __init__(self) -> None:
        self._events: dict[str, SyncEvent] = {}
        self._sequence = itertools.count(1)

    async def add(self, event: SyncEvent) -> SyncEvent:
        if event.event_id in self._events:
            raise DuplicateEventError(event.event_id)
        stored = event.model_copy(deep=True, update={"sequence": next(self._sequence)})
        self._events[event.event_id] = stored
        return stored.model_copy(deep=True)

    async def get(self, event_id: str) -> SyncEvent | None:
        event = self._events.get(event_id)
        return event.model_copy(deep=True) if event else None

    async def save(self, event: SyncEvent) -> None:
        existing = self._events.get(event.event_id)
        sequence = existing.sequence if existing else next(self._sequence)
        self._events[event.event_id] = event.model_copy(
            deep=True, update={"sequence": sequence}
        )

    async def last_processed_event_id(self, source: str) -> str | None:
        candidates = [
            e for e in self._events.values() if e.source == source and e.processed
        ]
        if not candidates:
            return None
        return max(candidates, key=lambda e: e.sequence or 0).event_id

    async def search(
        self, event_filter: EventFilter
    ) -> tuple[list[SyncEvent], int]:
        matches = [
            e
            for e in self._events.values()
            if (event_filter.event_type is None or e.event_type == event_filter.event_type)
            and (event_filter.source is None or e.source == event_filter.source)
            and (event_filter.processed is None or e.processed == event_filter.processed)
        ]
        matches.sort(key=lambda e: e.sequence or 0, reverse=True)
        page = matches[event_filter.offset : event_filter.offset + event_filter.limit]
        return [e.model_copy(deep=True) for e in page], len(matches)

    async def purge_processed(self, before: datetime) -> int:
        doomed = [
            event_id
            for event_id, e in self._events.items()
            if e.processed and ensure_aware(e.created_at) < ensure_aware(before)
        ]
        for event_id in doomed:
            del self._events[event_id]
        return len(doomed)


class InMemoryProductRepository(IProductRepository):
    def __init__(self) -> None:
        self._products: dict[str, Product] = {}

    async def get(self, product_id: str) -> Product | None:
        product = self._products.get(product_id)
        return product.model_copy(deep=True) if product else None

    async def save(self, product: Product) -> None:
        self._products[product.id] = product.model_copy(deep=True)

    async def list_pending_push(self, since: datetime, limit: int) -> list[Product]:
        matches = [
            p
            for p in self._products.values()
            if p.active
            and ensure_aware(p.updated_at) >= ensure_aware(since)
            and not _synced_since_change(p)
        ]
        matches.sort(key=lambda p: p.updated_at)
        return [p.model_copy(deep=True) for p in matches[:limit]]

    def stored(self, product_id: str | None) -> Product | None:
        """The stored row itself, not a copy; for writes within this store."""
        return self._products.get(product_id) if product_id else None


class InMemoryOfferRepository(IOfferRepository):
    def __init__(self) -> None:
        self._offers: dict[str, Offer] = {}

    async def get(self, offer_id: str) -> Offer | None:
        offer = self._offers.get(offer_id)
        return offer.model_copy(deep=True) if offer else None

    async def get_by_allegro_id(self, allegro_offer_id: str) -> Offer | None:
        offer = self.stored_by_allegro_id(allegro_offer_id)
        return offer.model_copy(deep=True) if offer else None

    async def get_by_product_id(self, product_id: str) -> Offer | None:
        for offer in self._offers.values():
            if offer.product_id == product_id:
                return offer.model_copy(deep=True)
        return None

    async def save(self, offer: Offer) -> None:
        self._offers[offer.id] = offer.model_copy(deep=True)

    async def list_linked(self, limit: int) -> list[Offer]:
        linked = [o for o in self._offers.values() if o.is_linked]
        linked.sort(
            key=lambda o: (o.last_synced_at is not None, o.last_synced_at or o.created_at)
        )
        return [o.model_copy(deep=True) for o in linked[:limit]]

    def stored_by_allegro_id(self, allegro_offer_id: str) -> Offer | None:
        """The stored row itself, not a copy; for writes within this store."""
        for offer in self._offers.values():
            if offer.allegro_offer_id == allegro_offer_id:
                return offer
        return None


class InMemoryOrderRepository(IOrderRepository):
    """Orders plus the stock restoration ledger.

    Restoration writes through to the offer and product repositories of the
    same store without awaiting in between, so it is applied as one step.
    """

    def __init__(
        self,
        offers: InMemoryOfferRepository | None = None,
        products: InMemoryProductRepository | None = None,
    ) -> None:
        self._orders: dict[str, Order] = {}
        self._restored: set[str] = set()
        self._offers = offers if offers is not None else InMemoryOfferRepository()
        self._products = (
            products if products is not None else InMemoryProductRepository()
        )

    async def get_by_allegro_id(self, allegro_order_id: str) -> Order | None:
        order = self._orders.get(allegro_order_id)
        return order.model_copy(deep=True) if order else None

    async def save(self, order: Order) -> None:
        self._orders[order.allegro_order_id] = order.model_copy(deep=True)

    async def restore_stock(
        self, allegro_order_id: str, quantities: Mapping[str, int]
    ) -> list[str] | None:
        if allegro_order_id in self._restored:
            return None
        restored: list[str] = []
        for offer_id, quantity in quantities.items():
            offer = self._offers.stored_by_allegro_id(offer_id)
            if offer is None:
                continue
            offer.stock_quantity += quantity
            product = self._products.stored(offer.product_id)
            if product is not None:
                product.stock_quantity += quantity
            restored.append(offer_id)
        self._restored.add(allegro_order_id)
        return restored


class InMemoryProducerRepository(IProducerRepository):
    def __init__(self) -> None:
        self._producers: dict[tuple[str, str], Producer] = {}

    async def get_by_remote_id(
        self, account_id: str, remote_id: str
    ) -> Producer | None:
        producer = self._producers.get((account_id, remote_id))
        return producer.model_copy(deep=True) if producer else None

    async def upsert(self, producer: Producer) -> Producer:
        key = (producer.account_id, producer.remote_id)
        existing = self._producers.get(key)
        if existing is not None:
            stored = producer.model_copy(
                deep=True, update={"id": existing.id, "created_at": existing.created_at}
            )
        else:
            stored = producer.model_copy(deep=True)
        self._producers[key] = stored
        return stored.model_copy(deep=True)

    async def list_for_account(self, account_id: str) -> list[Producer]:
        return [
            p.model_copy(deep=True)
            for (acc, _), p in self._producers.items()
            if acc == account_id
        ]


def create_memory_store() -> SyncStore:
    """A fresh, empty in-memory :class:`SyncStore`."""
    products = InMemoryProductRepository()
    offers = InMemoryOfferRepository()
    return SyncStore(
        events=InMemorySyncEventRepository(),
        products=products,
        offers=offers,
        orders=InMemoryOrderRepository(offers, products),
        producers=InMemoryProducerRepository(),
    )
