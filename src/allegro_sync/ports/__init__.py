"""Ports: protocols implemented by the adapters."""

from __future__ import annotations

from .credentials import AccountCredential, ICredentialProvider
from .locking import ActiveLock, ILockStrategy
from .marketplace import IMarketplaceClient, MarketplaceEventPage
from .notifications import (
    INotificationSender,
    NotificationChannel,
    NotificationRequest,
    NotificationResult,
    NotificationType,
)
from .repositories import (
    IOfferRepository,
    IOrderRepository,
    IProducerRepository,
    IProductRepository,
    ISyncEventRepository,
    SyncStore,
)

__all__ = [
    "AccountCredential",
    "ActiveLock",
    "ICredentialProvider",
    "ILockStrategy",
    "IMarketplaceClient",
    "INotificationSender",
    "IOfferRepository",
    "IOrderRepository",
    "IProducerRepository",
    "IProductRepository",
    "ISyncEventRepository",
    "MarketplaceEventPage",
    "NotificationChannel",
    "NotificationRequest",
    "NotificationResult",
    "NotificationType",
    "SyncStore",
]
