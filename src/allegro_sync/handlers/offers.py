"""Offer lifecycle handlers: created, updated, ended."""

from __future__ import annotations

import logging
from typing import Any

from ..domain.event_types import InternalEventType
from ..domain.models import SyncSource
from ..primitives.locking import ResourceIdentifier
from ..utils import dig, parse_datetime, to_decimal
from .base import EntityHandler

logger = logging.getLogger("allegro_sync.handlers")


class OfferUpdatedHandler(EntityHandler):
    """Overwrites price, stock, status and title of a locally known offer."""

    event_types = (
        InternalEventType.OFFER_CREATED.value,
        InternalEventType.OFFER_UPDATED.value,
    )

    async def handle(self, payload: dict[str, Any]) -> None:
        data = self._entity(payload, "offer")
        if data is None:
            return
        allegro_id = str(data["id"])

        async with self.locks.hold(ResourceIdentifier.offer(allegro_id)):
            offer = await self.store.offers.get_by_allegro_id(allegro_id)
            if offer is None:
                logger.debug("Offer %s is not linked locally; ignoring", allegro_id)
                return

            price = to_decimal(dig(data, "sellingMode", "price", "amount"))
            offer.price = price if price is not None else offer.price
            offer.currency = dig(
                data, "sellingMode", "price", "currency", default=offer.currency
            )
            offer.stock_quantity = int(dig(data, "stock", "available", default=0))
            offer.status = dig(data, "publication", "status", default="INACTIVE")
            title = data.get("name") or data.get("title")
            if title:
                offer.title = title
            offer.remote_updated_at = parse_datetime(
                data.get("updatedAt") or payload.get("occurredAt")
            )
            offer.mark_synced(SyncSource.ALLEGRO)
            await self.store.offers.save(offer)

        logger.info("Offer %s updated from Allegro", allegro_id)


class OfferEndedHandler(EntityHandler):
    event_types = (InternalEventType.OFFER_ENDED.value,)

    async def handle(self, payload: dict[str, Any]) -> None:
        data = self._entity(payload, "offer")
        if data is None:
            return
        allegro_id = str(data["id"])

        async with self.locks.hold(ResourceIdentifier.offer(allegro_id)):
            offer = await self.store.offers.get_by_allegro_id(allegro_id)
            if offer is None:
                logger.debug("Offer %s is not linked locally; ignoring", allegro_id)
                return
            offer.status = "ENDED"
            offer.mark_synced(SyncSource.ALLEGRO)
            await self.store.offers.save(offer)

        logger.info("Offer %s ended on Allegro", allegro_id)
