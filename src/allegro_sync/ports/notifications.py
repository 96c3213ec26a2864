"""Notification sender port and message types."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol, runtime_checkable


class NotificationChannel(str, Enum):
    """Delivery channels understood by the notification service."""

    EMAIL = "email"
    SMS = "sms"
    WEBHOOK = "webhook"


class NotificationType(str, Enum):
    STOCK_LOW = "stock_low"
    ORDER_STATUS_UPDATE = "order_status_update"
    ORDER_CONFIRMATION = "order_confirmation"
    SYNC_ERROR = "sync_error"


@dataclass(frozen=True)
class NotificationRequest:
    channel: NotificationChannel
    type: NotificationType
    recipient: str
    subject: str
    message: str
    template_data: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class NotificationResult:
    success: bool
    error: str | None = None


@runtime_checkable
class INotificationSender(Protocol):
    """
    Port for handing a notification to the delivery service.

    Implementations report failures through ``NotificationResult`` and must
    not raise; delivery is fire-and-forget from the engine's point of view.
    """

    async def send(self, request: NotificationRequest) -> NotificationResult:
        """Send notification and return the delivery outcome."""
        ...
