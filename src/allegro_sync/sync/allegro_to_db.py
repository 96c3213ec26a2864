"""AllegroToDbStrategy — pulls remote offer state over linked local offers."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from ..conflict.resolution import ConflictResolver, ConflictStrategy, Resolution
from ..domain.models import Offer, Product, SyncSource
from ..primitives.exceptions import ManualReviewRequiredError
from ..primitives.locking import ResourceIdentifier
from ..utils import dig, ensure_aware, parse_datetime, to_decimal
from .base import SyncStrategy

if TYPE_CHECKING:
    from datetime import datetime

    from ..concurrency import EntityLocks, RunLease
    from ..domain.results import SyncRunResult
    from ..notifications import SyncNotifier
    from ..ports.locking import ILockStrategy
    from ..ports.marketplace import IMarketplaceClient
    from ..ports.repositories import SyncStore
    from ..resilience.retry import RetryExecutor

logger = logging.getLogger("allegro_sync.sync")

MANUAL_REVIEW_MESSAGE = "Conflicting changes require manual review"


def remote_offer_fields(remote: dict[str, Any]) -> dict[str, Any]:
    """The offer fields Allegro is consulted for; absent values are left out."""
    fields: dict[str, Any] = {
        "title": remote.get("name") or remote.get("title"),
        "description": remote.get("description")
        if isinstance(remote.get("description"), str)
        else None,
        "price": to_decimal(dig(remote, "sellingMode", "price", "amount")),
        "stock_quantity": dig(remote, "stock", "available"),
        "status": dig(remote, "publication", "status"),
    }
    if fields["stock_quantity"] is not None:
        fields["stock_quantity"] = int(fields["stock_quantity"])
    return {name: value for name, value in fields.items() if value is not None}


def local_offer_fields(offer: Offer) -> dict[str, Any]:
    return {
        "title": offer.title,
        "description": offer.description,
        "price": offer.price,
        "stock_quantity": offer.stock_quantity,
        "status": offer.status,
    }


class AllegroToDbStrategy(SyncStrategy):
    """
    Pull run over linked offers.

    With ``field_level=False`` the record-level ``conflict_strategy`` decides
    per offer:

    - ``USE_REMOTE`` applies the remote fields (and price/stock to the product).
    - ``USE_DB`` keeps local values and marks offer and product ``PENDING``
      so the next push carries them to Allegro.
    - ``MANUAL_REVIEW`` applies nothing, flags the offer ``ERROR`` and records
      a ``LOCAL_CONFLICT`` for the run.

    With ``field_level=True`` each field follows the static field policy; an
    offer whose local-winning fields differ from Allegro is left ``PENDING``.
    """

    sync_type = "allegro_to_db"

    def __init__(
        self,
        store: SyncStore,
        lock_strategy: ILockStrategy,
        locks: EntityLocks,
        marketplace: IMarketplaceClient,
        *,
        resolver: ConflictResolver | None = None,
        conflict_strategy: ConflictStrategy = ConflictStrategy.TIMESTAMP,
        field_level: bool = False,
        retry: RetryExecutor | None = None,
        notifier: SyncNotifier | None = None,
        batch_size: int = 100,
        lease_ttl: float = 900.0,
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
        self.resolver = resolver or ConflictResolver()
        self.conflict_strategy = conflict_strategy
        self.field_level = field_level

    async def _run(
        self, lease: RunLease, batch_size: int, deadline: float | None
    ) -> SyncRunResult:
        offers = await self.store.offers.list_linked(batch_size)
        logger.info("Found %d linked offer(s) to pull", len(offers))
        return await self._process_batch(
            lease,
            offers,
            self._pull_offer,
            lambda o: o.allegro_offer_id or o.id,
            deadline,
        )

    async def _pull_offer(self, offer: Offer) -> None:
        allegro_id = offer.allegro_offer_id or ""
        remote = await self._call(
            self.marketplace.get_offer, allegro_id, operation="get_offer"
        )
        remote_fields = remote_offer_fields(remote)
        remote_updated_at = parse_datetime(remote.get("updatedAt"))

        async with self.locks.hold(
            ResourceIdentifier.offer(allegro_id),
            ResourceIdentifier.product(offer.product_id) if offer.product_id else None,
        ):
            current = await self.store.offers.get_by_allegro_id(allegro_id) or offer
            product = (
                await self.store.products.get(current.product_id)
                if current.product_id == offer.product_id and current.product_id
                else None
            )
            if self.field_level:
                await self._merge(current, product, remote_fields, remote_updated_at)
            else:
                await self._resolve(current, product, remote_fields, remote_updated_at)

    async def _resolve(
        self,
        offer: Offer,
        product: Product | None,
        remote_fields: dict[str, Any],
        remote_updated_at: datetime | None,
    ) -> None:
        db_updated_at = max(
            ensure_aware(ts)
            for ts in [offer.updated_at] + ([product.updated_at] if product else [])
        )
        resolution = self.resolver.resolve(
            local_offer_fields(offer),
            remote_fields,
            db_updated_at,
            remote_updated_at,
            self.conflict_strategy,
        )

        if resolution is Resolution.USE_REMOTE:
            self._apply(offer, product, remote_fields)
            offer.remote_updated_at = remote_updated_at
            offer.mark_synced(SyncSource.ALLEGRO)
            if product is not None:
                product.mark_synced(SyncSource.ALLEGRO)
        elif resolution is Resolution.USE_DB:
            offer.mark_pending()
            if product is not None:
                product.mark_pending()
        else:
            offer.mark_error(MANUAL_REVIEW_MESSAGE)
            await self.store.offers.save(offer)
            raise ManualReviewRequiredError(offer.allegro_offer_id or offer.id)

        await self.store.offers.save(offer)
        if product is not None:
            await self.store.products.save(product)

    async def _merge(
        self,
        offer: Offer,
        product: Product | None,
        remote_fields: dict[str, Any],
        remote_updated_at: datetime | None,
    ) -> None:
        local_fields = local_offer_fields(offer)
        merged = self.resolver.merge_fields(local_fields, remote_fields)
        remote_won = {
            name: value
            for name, value in merged.items()
            if name in remote_fields and value == remote_fields[name]
        }
        local_kept = [
            name
            for name, value in merged.items()
            if name in remote_fields and value != remote_fields[name]
        ]

        self._apply(offer, product, remote_won)
        offer.remote_updated_at = remote_updated_at
        if local_kept:
            logger.debug(
                "Offer %s keeps local %s; queued for push",
                offer.allegro_offer_id,
                ", ".join(local_kept),
            )
            offer.mark_pending()
            if product is not None:
                product.mark_pending()
        else:
            offer.mark_synced(SyncSource.ALLEGRO)
            if product is not None:
                product.mark_synced(SyncSource.ALLEGRO)

        await self.store.offers.save(offer)
        if product is not None:
            await self.store.products.save(product)

    @staticmethod
    def _apply(offer: Offer, product: Product | None, fields: dict[str, Any]) -> None:
        for name, value in fields.items():
            setattr(offer, name, value)
        if product is None:
            return
        if "price" in fields:
            product.selling_price = fields["price"]
        if "stock_quantity" in fields:
            product.stock_quantity = fields["stock_quantity"]
