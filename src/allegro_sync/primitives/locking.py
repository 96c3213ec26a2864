"""Lockable resource identifiers."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ResourceIdentifier:
    """
    Identifies a single lockable resource.

    Examples:
        >>> ResourceIdentifier("Offer", "7771234567")
        >>> ResourceIdentifier("Order", "29b5c1f0-...")
        >>> ResourceIdentifier("SyncRun", "db_to_allegro")
    """

    resource_type: str
    resource_id: str

    def __lt__(self, other: ResourceIdentifier) -> bool:
        # Sorted acquisition order prevents deadlocks between handlers.
        return (self.resource_type, self.resource_id) < (
            other.resource_type,
            other.resource_id,
        )

    def __str__(self) -> str:
        return f"{self.resource_type}:{self.resource_id}"

    @classmethod
    def offer(cls, allegro_offer_id: str) -> ResourceIdentifier:
        return cls("Offer", str(allegro_offer_id))

    @classmethod
    def order(cls, allegro_order_id: str) -> ResourceIdentifier:
        return cls("Order", str(allegro_order_id))

    @classmethod
    def product(cls, product_id: str) -> ResourceIdentifier:
        return cls("Product", str(product_id))

    @classmethod
    def sync_run(cls, sync_type: str) -> ResourceIdentifier:
        return cls("SyncRun", sync_type)
