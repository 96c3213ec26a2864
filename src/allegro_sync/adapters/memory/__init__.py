"""In-memory adapters for single-process use and tests."""

from __future__ import annotations

from .credentials import StaticCredentialProvider
from .locking import InMemoryLockStrategy
from .marketplace import FakeMarketplaceClient
from .notifications import InMemorySender
from .store import (
    InMemoryOfferRepository,
    InMemoryOrderRepository,
    InMemoryProducerRepository,
    InMemoryProductRepository,
    InMemorySyncEventRepository,
    create_memory_store,
)

__all__ = [
    "FakeMarketplaceClient",
    "InMemoryLockStrategy",
    "InMemoryOfferRepository",
    "InMemoryOrderRepository",
    "InMemoryProducerRepository",
    "InMemoryProductRepository",
    "InMemorySender",
    "InMemorySyncEventRepository",
    "StaticCredentialProvider",
    "create_memory_store",
]
