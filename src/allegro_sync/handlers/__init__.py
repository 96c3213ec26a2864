"""Entity handlers applying event payloads to local records."""

from __future__ import annotations

from .base import EntityHandler
from .inventory import InventoryUpdatedHandler
from .offers import OfferEndedHandler, OfferUpdatedHandler
from .orders import OrderCreatedHandler, OrderUpdatedHandler

__all__ = [
    "EntityHandler",
    "InventoryUpdatedHandler",
    "OfferEndedHandler",
    "OfferUpdatedHandler",
    "OrderCreatedHandler",
    "OrderUpdatedHandler",
]
