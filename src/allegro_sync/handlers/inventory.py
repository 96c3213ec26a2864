"""Inventory handler: absolute stock on the offer and its linked product."""

from __future__ import annotations

import logging
from typing import Any

from ..domain.event_types import InternalEventType
from ..domain.models import SyncSource
from ..primitives.locking import ResourceIdentifier
from ..utils import dig
from .base import EntityHandler

logger = logging.getLogger("allegro_sync.handlers")


class InventoryUpdatedHandler(EntityHandler):
    """
    Sets stock to the absolute value reported by Allegro.

    Setting (not adding) keeps re-application harmless. A low-stock
    notification goes out when the product drops to or below its minimum.
    """

    event_types = (InternalEventType.INVENTORY_UPDATED.value,)

    async def handle(self, payload: dict[str, Any]) -> None:
        data = self._entity(payload, "offer")
        if data is None:
            return
        allegro_id = str(data["id"])
        stock = int(dig(data, "stock", "available", default=0))

        # The product id is only known after reading the offer; both are then
        # locked together so the sorted acquisition order holds.
        known = await self.store.offers.get_by_allegro_id(allegro_id)
        product_id = known.product_id if known else None
        low_stock: tuple[str, int, int] | None = None

        async with self.locks.hold(
            ResourceIdentifier.offer(allegro_id),
            ResourceIdentifier.product(product_id) if product_id else None,
        ):
            offer = await self.store.offers.get_by_allegro_id(allegro_id)
            if offer is None:
                logger.debug("Offer %s is not linked locally; ignoring", allegro_id)
                return
            offer.stock_quantity = stock
            offer.mark_synced(SyncSource.ALLEGRO)
            await self.store.offers.save(offer)

            if offer.product_id and offer.product_id != product_id:
                logger.warning(
                    "Offer %s was relinked while waiting for its lock; "
                    "product stock left for the next event",
                    allegro_id,
                )
            elif offer.product_id:
                product = await self.store.products.get(offer.product_id)
                if product is not None:
                    product.stock_quantity = stock
                    product.mark_synced(SyncSource.ALLEGRO)
                    await self.store.products.save(product)
                    if product.minimum_stock and stock <= product.minimum_stock:
                        low_stock = (
                            product.code or product.id,
                            stock,
                            product.minimum_stock,
                        )

        logger.info("Stock of offer %s set to %d", allegro_id, stock)
        if low_stock is not None and self.notifier is not None:
            await self.notifier.stock_low(*low_stock)
