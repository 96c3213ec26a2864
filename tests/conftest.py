"""Shared fixtures: an in-memory engine wired the way production wires it."""

from __future__ import annotations

from decimal import Decimal
from typing import Any

import pytest

from allegro_sync.adapters.memory import (
    FakeMarketplaceClient,
    InMemoryLockStrategy,
    InMemorySender,
    StaticCredentialProvider,
    create_memory_store,
)
from allegro_sync.concurrency import EntityLocks
from allegro_sync.dependencies import ProducerSyncService
from allegro_sync.domain import Offer, Product
from allegro_sync.events import EventDispatcher, EventIngestionService
from allegro_sync.handlers import (
    InventoryUpdatedHandler,
    OfferEndedHandler,
    OfferUpdatedHandler,
    OrderCreatedHandler,
    OrderUpdatedHandler,
)
from allegro_sync.notifications import SyncNotifier
from allegro_sync.ports import AccountCredential, SyncStore
from allegro_sync.resilience import RetryExecutor, RetryPolicy

ADMIN_EMAIL = "ops@example.com"
ACCOUNT_ID = "acc-1"


async def _no_sleep(_delay: float) -> None:
    return None


@pytest.fixture
def store() -> SyncStore:
    return create_memory_store()


@pytest.fixture
def lock_strategy() -> InMemoryLockStrategy:
    return InMemoryLockStrategy()


@pytest.fixture
def locks(lock_strategy: InMemoryLockStrategy) -> EntityLocks:
    return EntityLocks(lock_strategy, timeout=2.0, ttl=30.0)


@pytest.fixture
def marketplace() -> FakeMarketplaceClient:
    return FakeMarketplaceClient()


@pytest.fixture
def sender() -> InMemorySender:
    return InMemorySender()


@pytest.fixture
def notifier(sender: InMemorySender) -> SyncNotifier:
    return SyncNotifier(
        sender,
        admin_email=ADMIN_EMAIL,
        notify_stock_low=True,
        notify_order_updated=True,
        notify_order_created=True,
        notify_sync_errors=True,
    )


@pytest.fixture
def retry() -> RetryExecutor:
    return RetryExecutor(RetryPolicy(max_attempts=3, base_delay=0.0), sleep=_no_sleep)


@pytest.fixture
def credentials() -> StaticCredentialProvider:
    return StaticCredentialProvider(
        {ACCOUNT_ID: AccountCredential(ACCOUNT_ID, "token-1", user_id="user-1")}
    )


@pytest.fixture
def dispatcher(
    store: SyncStore,
    locks: EntityLocks,
    notifier: SyncNotifier,
    marketplace: FakeMarketplaceClient,
    retry: RetryExecutor,
) -> EventDispatcher:
    return EventDispatcher(
        [
            OfferUpdatedHandler(store, locks, notifier),
            OfferEndedHandler(store, locks, notifier),
            InventoryUpdatedHandler(store, locks, notifier),
            OrderCreatedHandler(
                store, locks, notifier, marketplace=marketplace, retry=retry
            ),
            OrderUpdatedHandler(store, locks, notifier),
        ]
    )


@pytest.fixture
def ingestion(
    store: SyncStore,
    marketplace: FakeMarketplaceClient,
    dispatcher: EventDispatcher,
    retry: RetryExecutor,
) -> EventIngestionService:
    return EventIngestionService(store, marketplace, dispatcher, retry=retry)


@pytest.fixture
def producers(
    store: SyncStore,
    marketplace: FakeMarketplaceClient,
    credentials: StaticCredentialProvider,
) -> ProducerSyncService:
    return ProducerSyncService(store.producers, marketplace, credentials)


async def seed_linked_offer(
    store: SyncStore,
    allegro_id: str = "O1",
    *,
    stock: int = 5,
    price: str = "10.00",
    minimum_stock: int | None = None,
    **product_fields: Any,
) -> tuple[Offer, Product]:
    """A product and the offer linked to it, both in sync."""
    product = Product(
        code=f"SKU-{allegro_id}",
        name=f"Product {allegro_id}",
        selling_price=Decimal(price),
        stock_quantity=stock,
        minimum_stock=minimum_stock,
        **product_fields,
    )
    offer = Offer(
        allegro_offer_id=allegro_id,
        product_id=product.id,
        title=product.name,
        price=Decimal(price),
        stock_quantity=stock,
        status="ACTIVE",
    )
    await store.products.save(product)
    await store.offers.save(offer)
    return offer, product
