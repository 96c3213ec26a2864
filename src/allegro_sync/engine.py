"""Composition helpers: build a ready-to-run engine from :class:`SyncSettings`."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import TYPE_CHECKING

from sqlalchemy.ext.asyncio import create_async_engine

from .adapters.http import AllegroHttpClient, HttpNotificationSender
from .adapters.memory import InMemoryLockStrategy
from .adapters.sqlalchemy import (
    create_schema,
    create_session_factory,
    create_sqlalchemy_store,
)
from .concurrency import EntityLocks
from .config import get_settings
from .dependencies import ProducerSyncService
from .events import EventDispatcher, EventIngestionService
from .handlers import (
    InventoryUpdatedHandler,
    OfferEndedHandler,
    OfferUpdatedHandler,
    OrderCreatedHandler,
    OrderUpdatedHandler,
)
from .notifications import SyncNotifier
from .resilience import RetryExecutor, RetryPolicy
from .sync import AllegroToDbStrategy, BidirectionalStrategy, DbToAllegroStrategy

if TYPE_CHECKING:
    from types import TracebackType

    from sqlalchemy.ext.asyncio import AsyncEngine

    from .config import SyncSettings
    from .ports import (
        ICredentialProvider,
        ILockStrategy,
        IMarketplaceClient,
        INotificationSender,
        SyncStore,
    )

logger = logging.getLogger("allegro_sync.engine")


@dataclass
class SyncEngine:
    """
    Every entry point of one wired engine, sharing store and locks.

    HTTP clients built by :func:`build_engine` belong to the engine and are
    closed by :meth:`aclose`; injected adapters are left to their owner::

        async with build_engine(settings, store=store, credentials=creds) as engine:
            await engine.ingestion.poll_events()
    """

    store: SyncStore
    lock_strategy: ILockStrategy
    notifier: SyncNotifier
    ingestion: EventIngestionService
    producers: ProducerSyncService
    allegro_to_db: AllegroToDbStrategy
    db_to_allegro: DbToAllegroStrategy
    bidirectional: BidirectionalStrategy
    owned_clients: list[AllegroHttpClient | HttpNotificationSender] = field(
        default_factory=list, repr=False
    )

    async def aclose(self) -> None:
        while self.owned_clients:
            await self.owned_clients.pop().aclose()

    async def __aenter__(self) -> SyncEngine:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.aclose()


def build_retry_executor(settings: SyncSettings) -> RetryExecutor:
    return RetryExecutor(
        RetryPolicy(
            max_attempts=settings.retry_max_attempts,
            base_delay=settings.retry_base_delay,
            max_delay=settings.retry_max_delay,
            jitter=settings.retry_jitter,
        )
    )


def build_engine(
    settings: SyncSettings | None = None,
    *,
    store: SyncStore,
    credentials: ICredentialProvider,
    marketplace: IMarketplaceClient | None = None,
    sender: INotificationSender | None = None,
    lock_strategy: ILockStrategy | None = None,
) -> SyncEngine:
    """
    Wire handlers, ingestion, producers and strategies over one store.

    Without an injected *marketplace* an :class:`AllegroHttpClient` is built
    for ``settings.allegro_account_id``. Without an injected *sender* an
    :class:`HttpNotificationSender` is built when a notification service URL
    is configured; otherwise notifications are disabled.
    """
    settings = settings or get_settings()
    owned_clients: list[AllegroHttpClient | HttpNotificationSender] = []
    retry = build_retry_executor(settings)
    lock_strategy = lock_strategy or InMemoryLockStrategy()
    locks = EntityLocks(
        lock_strategy,
        timeout=settings.entity_lock_timeout,
        ttl=settings.entity_lock_ttl,
    )

    if marketplace is None:
        if not settings.allegro_account_id:
            raise ValueError(
                "allegro_account_id must be set when no marketplace client is given"
            )
        marketplace = AllegroHttpClient(
            settings.allegro_api_url,
            credentials,
            settings.allegro_account_id,
            timeout=settings.http_timeout,
        )
        owned_clients.append(marketplace)
    if sender is None and settings.notification_service_url:
        sender = HttpNotificationSender(
            settings.notification_service_url,
            retry=retry,
            timeout=settings.http_timeout,
        )
        owned_clients.append(sender)

    notifier = SyncNotifier(
        sender,
        admin_email=settings.notification_email_to,
        notify_stock_low=settings.notify_stock_low,
        notify_order_updated=settings.notify_order_updated,
        notify_order_created=settings.notify_order_created,
        notify_sync_errors=settings.notify_sync_errors,
        default_currency=settings.default_currency,
    )

    dispatcher = EventDispatcher(
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
    ingestion = EventIngestionService(
        store,
        marketplace,
        dispatcher,
        retry=retry,
        page_size=settings.event_page_size,
        retention=timedelta(days=settings.event_retention_days),
    )
    producers = ProducerSyncService(
        store.producers, marketplace, credentials, retry=retry
    )

    allegro_to_db = AllegroToDbStrategy(
        store,
        lock_strategy,
        locks,
        marketplace,
        conflict_strategy=settings.conflict_strategy,
        retry=retry,
        notifier=notifier,
        batch_size=settings.sync_batch_size,
        lease_ttl=settings.run_lease_ttl,
    )
    db_to_allegro = DbToAllegroStrategy(
        store,
        lock_strategy,
        locks,
        marketplace,
        producers,
        window=timedelta(hours=settings.sync_window_hours),
        currency=settings.default_currency,
        retry=retry,
        notifier=notifier,
        batch_size=settings.sync_batch_size,
        lease_ttl=settings.run_lease_ttl,
    )
    field_level_pull = AllegroToDbStrategy(
        store,
        lock_strategy,
        locks,
        marketplace,
        field_level=True,
        retry=retry,
        notifier=notifier,
        batch_size=settings.sync_batch_size,
        lease_ttl=settings.run_lease_ttl,
    )
    bidirectional = BidirectionalStrategy(
        field_level_pull,
        db_to_allegro,
        lock_strategy,
        lease_ttl=settings.run_lease_ttl,
    )

    logger.info(
        "Sync engine built (conflict strategy %s, batch size %d)",
        settings.conflict_strategy.value,
        settings.sync_batch_size,
    )
    return SyncEngine(
        store=store,
        lock_strategy=lock_strategy,
        notifier=notifier,
        ingestion=ingestion,
        producers=producers,
        allegro_to_db=allegro_to_db,
        db_to_allegro=db_to_allegro,
        bidirectional=bidirectional,
        owned_clients=owned_clients,
    )


async def open_sqlalchemy_store(
    database_url: str | None = None, *, echo: bool = False
) -> tuple[AsyncEngine, SyncStore]:
    """Create the async engine and any missing tables; return engine and store.

    The caller owns the returned engine and disposes of it.
    """
    engine = create_async_engine(database_url or get_settings().database_url, echo=echo)
    await create_schema(engine)
    return engine, create_sqlalchemy_store(create_session_factory(engine))
