"""Order handlers: creation, status changes and stock restoration."""

from __future__ import annotations

import logging
from collections import Counter
from typing import TYPE_CHECKING, Any

from ..domain.event_types import InternalEventType
from ..domain.models import Order, OrderLineItem, SyncSource
from ..primitives.locking import ResourceIdentifier
from ..utils import dig, to_decimal
from .base import EntityHandler

if TYPE_CHECKING:
    from ..concurrency import EntityLocks
    from ..notifications import SyncNotifier
    from ..ports.marketplace import IMarketplaceClient
    from ..ports.repositories import SyncStore
    from ..resilience.retry import RetryExecutor

logger = logging.getLogger("allegro_sync.handlers")

CANCELLED = "CANCELLED"
PAID = "PAID"


def parse_line_items(data: dict[str, Any]) -> list[OrderLineItem] | None:
    """Line items of an order payload; ``None`` when the payload has none."""
    raw_items = data.get("lineItems")
    if not isinstance(raw_items, list):
        return None
    items: list[OrderLineItem] = []
    for raw in raw_items:
        offer_id = dig(raw, "offer", "id") or raw.get("offerId")
        if offer_id is None:
            logger.warning("Skipping line item without offer id: %r", raw)
            continue
        items.append(
            OrderLineItem(
                offer_id=str(offer_id),
                quantity=int(raw.get("quantity") or 1),
                price=to_decimal(dig(raw, "price", "amount")),
            )
        )
    return items


def apply_order_fields(order: Order, data: dict[str, Any]) -> None:
    """Overwrite status, payment and fulfillment from an order payload."""
    if data.get("status"):
        order.status = str(data["status"])
    order.payment_status = dig(data, "payment", "status", default=order.payment_status)
    order.fulfillment_status = dig(
        data, "fulfillment", "status", default=order.fulfillment_status
    )
    order.buyer_email = dig(data, "buyer", "email", default=order.buyer_email)
    total = to_decimal(dig(data, "summary", "totalToPay", "amount"))
    if total is not None:
        order.total_amount = total
        order.currency = dig(data, "summary", "totalToPay", "currency", default=order.currency)
    items = parse_line_items(data)
    if items is not None:
        order.line_items = items
    order.mark_synced(SyncSource.ALLEGRO)


class OrderCreatedHandler(EntityHandler):
    """Upserts the order by its Allegro id; optionally confirms it to the buyer.

    Payloads without line items are completed from the marketplace first.
    """

    event_types = (InternalEventType.ORDER_CREATED.value,)

    def __init__(
        self,
        store: SyncStore,
        locks: EntityLocks,
        notifier: SyncNotifier | None = None,
        *,
        marketplace: IMarketplaceClient | None = None,
        retry: RetryExecutor | None = None,
    ) -> None:
        super().__init__(store, locks, notifier)
        self._marketplace = marketplace
        self._retry = retry

    async def handle(self, payload: dict[str, Any]) -> None:
        data = self._entity(payload, "order")
        if data is None:
            return
        order_id = str(data["id"])
        if "lineItems" not in data and self._marketplace is not None:
            data = {**data, **await self._fetch_order(order_id)}

        async with self.locks.hold(ResourceIdentifier.order(order_id)):
            order = await self.store.orders.get_by_allegro_id(order_id)
            created = order is None
            if order is None:
                order = Order(allegro_order_id=order_id)
            apply_order_fields(order, data)
            await self.store.orders.save(order)

        logger.info("Order %s %s", order_id, "created" if created else "refreshed")
        if created and self.notifier is not None:
            await self.notifier.order_confirmation(
                order.buyer_email, order_id, order.total_amount, order.currency
            )

    async def _fetch_order(self, order_id: str) -> dict[str, Any]:
        if self._marketplace is None:
            return {}
        if self._retry is None:
            return await self._marketplace.get_order(order_id)
        return await self._retry.execute(
            self._marketplace.get_order, order_id, operation="get_order"
        )


class OrderUpdatedHandler(EntityHandler):
    """
    Overwrites order status fields and reacts to cancellation and payment.

    Cancellation adds line-item quantities back to offer and product stock.
    The store writes the order-level restoration ledger row together with
    every increment, so stock comes back once per order however often the
    cancellation is delivered or retried.
    """

    event_types = (InternalEventType.ORDER_UPDATED.value,)

    async def handle(self, payload: dict[str, Any]) -> None:
        data = self._entity(payload, "order")
        if data is None:
            return
        order_id = str(data["id"])

        async with self.locks.hold(ResourceIdentifier.order(order_id)):
            order = await self.store.orders.get_by_allegro_id(order_id)
            if order is None:
                logger.info("Order %s unknown locally; creating it", order_id)
                order = Order(allegro_order_id=order_id)
            apply_order_fields(order, data)
            await self.store.orders.save(order)

            if order.status == CANCELLED:
                await self._restore_stock(order)

        logger.info("Order %s updated (status=%s)", order_id, order.status)
        if order.status == PAID and self.notifier is not None:
            await self.notifier.order_status_update(order_id, order.buyer_email)

    async def _restore_stock(self, order: Order) -> None:
        if not order.line_items:
            logger.warning("Cancelled order %s has no line items", order.allegro_order_id)
            return
        quantities: Counter[str] = Counter()
        for item in order.line_items:
            quantities[item.offer_id] += item.quantity

        resources: list[ResourceIdentifier | None] = []
        for offer_id in quantities:
            known = await self.store.offers.get_by_allegro_id(offer_id)
            resources.append(ResourceIdentifier.offer(offer_id))
            if known is not None and known.product_id:
                resources.append(ResourceIdentifier.product(known.product_id))

        async with self.locks.hold(*resources):
            restored = await self.store.orders.restore_stock(
                order.allegro_order_id, dict(quantities)
            )

        if restored is None:
            logger.info(
                "Stock for order %s already restored; skipping", order.allegro_order_id
            )
            return
        for offer_id, quantity in quantities.items():
            if offer_id in restored:
                logger.info(
                    "Restored %d unit(s) of offer %s for cancelled order %s",
                    quantity,
                    offer_id,
                    order.allegro_order_id,
                )
            else:
                logger.warning(
                    "Order %s references unknown offer %s; nothing to restore",
                    order.allegro_order_id,
                    offer_id,
                )
