"""SyncNotifier — builds engine notifications and hands them to a sender."""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from .ports.notifications import (
    NotificationChannel,
    NotificationRequest,
    NotificationResult,
    NotificationType,
)

if TYPE_CHECKING:
    from .ports.notifications import INotificationSender

logger = logging.getLogger("allegro_sync.notifications")


class SyncNotifier:
    """
    Fire-and-forget notifications raised by handlers and sync runs.

    Each kind of notification is switched on separately. A disabled kind, a
    missing recipient or a missing sender returns ``None`` without sending.
    Delivery failures are logged and reported as a failed
    :class:`NotificationResult`; nothing here ever raises into the caller.
    """

    def __init__(
        self,
        sender: INotificationSender | None,
        *,
        admin_email: str | None = None,
        notify_stock_low: bool = False,
        notify_order_updated: bool = False,
        notify_order_created: bool = False,
        notify_sync_errors: bool = False,
        default_currency: str = "PLN",
    ) -> None:
        self._sender = sender
        self.admin_email = admin_email
        self.notify_stock_low = notify_stock_low
        self.notify_order_updated = notify_order_updated
        self.notify_order_created = notify_order_created
        self.notify_sync_errors = notify_sync_errors
        self.default_currency = default_currency

    async def stock_low(
        self, product_code: str, current_stock: int, threshold: int
    ) -> NotificationResult | None:
        if not self.notify_stock_low:
            return None
        return await self._send(
            NotificationType.STOCK_LOW,
            self.admin_email,
            subject=f"Low Stock Alert - {product_code}",
            message=(
                f"Product {product_code} has low stock: {current_stock} "
                f"(threshold: {threshold})"
            ),
            template_data={
                "productCode": product_code,
                "currentStock": current_stock,
                "threshold": threshold,
            },
        )

    async def order_status_update(
        self, order_id: str, buyer_email: str | None
    ) -> NotificationResult | None:
        if not self.notify_order_updated:
            return None
        return await self._send(
            NotificationType.ORDER_STATUS_UPDATE,
            buyer_email or self.admin_email,
            subject=f"Order {order_id} Status Update",
            message=f"Your order {order_id} has been paid and is being processed.",
            template_data={"orderId": order_id},
        )

    async def order_confirmation(
        self,
        email: str | None,
        order_number: str,
        total: Decimal | None,
        currency: str | None = None,
    ) -> NotificationResult | None:
        if not self.notify_order_created:
            return None
        currency = currency or self.default_currency
        return await self._send(
            NotificationType.ORDER_CONFIRMATION,
            email,
            subject=f"Order Confirmation - {order_number}",
            message=(
                f"Your order {order_number} has been confirmed. "
                f"Total: {total if total is not None else '-'} {currency}"
            ),
            template_data={
                "orderNumber": order_number,
                "total": str(total) if total is not None else None,
                "currency": currency,
            },
        )

    async def sync_error(
        self, sync_type: str, error_message: str
    ) -> NotificationResult | None:
        if not self.notify_sync_errors:
            return None
        return await self._send(
            NotificationType.SYNC_ERROR,
            self.admin_email,
            subject=f"Sync Error - {sync_type}",
            message=f"Sync error occurred: {error_message}",
            template_data={"errorMessage": error_message, "syncType": sync_type},
        )

    async def _send(
        self,
        notification_type: NotificationType,
        recipient: str | None,
        *,
        subject: str,
        message: str,
        template_data: dict[str, Any],
    ) -> NotificationResult | None:
        if self._sender is None:
            return None
        if not recipient:
            logger.warning(
                "Skipping %s notification: no recipient configured",
                notification_type.value,
            )
            return None

        request = NotificationRequest(
            channel=NotificationChannel.EMAIL,
            type=notification_type,
            recipient=recipient,
            subject=subject,
            message=message,
            template_data=template_data,
        )
        try:
            result = await self._sender.send(request)
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "Notification %s to %s raised: %s",
                notification_type.value,
                recipient,
                exc,
            )
            return NotificationResult(success=False, error=str(exc))

        if not result.success:
            logger.warning(
                "Notification %s to %s failed: %s",
                notification_type.value,
                recipient,
                result.error,
            )
        return result
