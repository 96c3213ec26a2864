"""DbToAllegroStrategy — pushes locally changed products to Allegro offers."""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import TYPE_CHECKING, Any

from ..domain.models import Offer, Product, SyncSource
from ..primitives.exceptions import AccountMismatchError
from ..primitives.locking import ResourceIdentifier
from ..utils import utcnow
from .base import SyncStrategy

if TYPE_CHECKING:
    from ..concurrency import EntityLocks, RunLease
    from ..dependencies.producers import ProducerSyncService
    from ..domain.results import SyncRunResult
    from ..notifications import SyncNotifier
    from ..ports.locking import ILockStrategy
    from ..ports.marketplace import IMarketplaceClient
    from ..ports.repositories import SyncStore
    from ..resilience.retry import RetryExecutor

logger = logging.getLogger("allegro_sync.sync")


def build_offer_payload(product: Product, currency: str) -> dict[str, Any]:
    """Allegro offer body for a product."""
    payload: dict[str, Any] = {
        "name": product.name,
        "description": product.description,
        "stock": {"available": product.stock_quantity},
        "external": {"id": product.id},
    }
    price = product.effective_price
    if price is not None:
        payload["sellingMode"] = {"price": {"amount": str(price), "currency": currency}}
    if product.producer_remote_id:
        payload["responsibleProducer"] = {"id": product.producer_remote_id}
    return payload


def _offer_resource(offer: Offer | None) -> ResourceIdentifier | None:
    if offer is None:
        return None
    return ResourceIdentifier.offer(offer.allegro_offer_id or offer.id)


class DbToAllegroStrategy(SyncStrategy):
    """
    Push run: update the linked offer of each changed product, or create one.

    Products come from a rolling window (``window``, default 24h) bounded by
    the batch size. A referenced responsible producer is made available
    locally before the product is pushed.
    """

    sync_type = "db_to_allegro"

    def __init__(
        self,
        store: SyncStore,
        lock_strategy: ILockStrategy,
        locks: EntityLocks,
        marketplace: IMarketplaceClient,
        producers: ProducerSyncService,
        *,
        retry: RetryExecutor | None = None,
        notifier: SyncNotifier | None = None,
        batch_size: int = 100,
        lease_ttl: float = 900.0,
        window: timedelta = timedelta(hours=24),
        currency: str = "PLN",
    ) -> None:
        super().__init__(
            store,
            lock_strategy,
            locks,
            retry=retry,
            notifier=notifier,
            batch_size=batch_size,
            lease_ttl=lease_ttl,
        )
        self.marketplace = marketplace
        self.producers = producers
        self.window = window
        self.currency = currency

    async def _run(
        self, lease: RunLease, batch_size: int, deadline: float | None
    ) -> SyncRunResult:
        products = await self.store.products.list_pending_push(
            utcnow() - self.window, batch_size
        )
        logger.info("Found %d product(s) to push", len(products))
        return await self._process_batch(
            lease, products, self._sync_product, lambda p: p.id, deadline
        )

    async def _sync_product(self, product: Product) -> None:
        try:
            await self._push(product)
        except Exception as exc:
            await self._mark_failed(product.id, str(exc))
            raise

    async def _push(self, product: Product) -> None:
        producer_local_id = await self._ensure_producer(product)
        linked = await self.store.offers.get_by_product_id(product.id)

        async with self.locks.hold(
            _offer_resource(linked), ResourceIdentifier.product(product.id)
        ):
            current = await self.store.products.get(product.id) or product
            offer = await self.store.offers.get_by_product_id(product.id)
            payload = build_offer_payload(current, self.currency)

            if offer is not None and offer.is_linked:
                await self._call(
                    self.marketplace.update_offer,
                    offer.allegro_offer_id,
                    payload,
                    operation="update_offer",
                )
                action = "updated"
            else:
                remote = await self._call(
                    self.marketplace.create_offer, payload, operation="create_offer"
                )
                if offer is None:
                    offer = Offer(product_id=current.id, account_id=current.account_id)
                offer.allegro_offer_id = str(remote["id"])
                # the remote offer exists now; link it before anything else can fail
                await self.store.offers.save(offer)
                action = "created"

            offer.title = current.name
            offer.description = current.description
            offer.price = current.effective_price
            offer.currency = self.currency
            offer.stock_quantity = current.stock_quantity
            offer.mark_synced(SyncSource.LOCAL)
            await self.store.offers.save(offer)

            if producer_local_id is not None:
                current.producer_id = producer_local_id
            current.mark_synced(SyncSource.LOCAL)
            await self.store.products.save(current)

        logger.debug("Offer %s %s from product %s", offer.allegro_offer_id, action, product.id)

    async def _ensure_producer(self, product: Product) -> str | None:
        if not product.producer_remote_id:
            return None
        if not product.account_id:
            raise AccountMismatchError(
                None,
                f"product {product.id} references producer "
                f"{product.producer_remote_id} but has no account",
            )
        return await self.producers.ensure_exists(
            product.account_id, product.producer_remote_id
        )

    async def _mark_failed(self, product_id: str, error: str) -> None:
        linked = await self.store.offers.get_by_product_id(product_id)
        async with self.locks.hold(
            _offer_resource(linked), ResourceIdentifier.product(product_id)
        ):
            product = await self.store.products.get(product_id)
            if product is not None:
                product.mark_error(error)
                await self.store.products.save(product)
            offer = await self.store.offers.get_by_product_id(product_id)
            if offer is not None:
                offer.mark_error(error)
                await self.store.offers.save(offer)
