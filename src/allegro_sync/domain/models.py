"""Persisted entities mirrored between the local store and Allegro."""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from ..utils import utcnow


def _new_id() -> str:
    return str(uuid.uuid4())


class SyncStatus(str, Enum):
    """Synchronization state of a mirrored record.

    Local edits move a record to ``PENDING``; successful push/pull moves it to
    ``SYNCED``; a failed push/pull moves it to ``ERROR`` with ``sync_error`` set.
    """

    PENDING = "PENDING"
    SYNCED = "SYNCED"
    ERROR = "ERROR"


class SyncSource(str, Enum):
    """Which side last wrote a record."""

    LOCAL = "LOCAL"
    ALLEGRO = "ALLEGRO"


class SyncedEntity(BaseModel):
    """Fields shared by every record that is kept in sync with Allegro."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    id: str = Field(default_factory=_new_id)
    sync_status: SyncStatus = SyncStatus.PENDING
    sync_source: SyncSource = SyncSource.LOCAL
    sync_error: str | None = None
    last_synced_at: datetime | None = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def mark_synced(self, source: SyncSource, *, at: datetime | None = None) -> None:
        now = at or utcnow()
        self.sync_status = SyncStatus.SYNCED
        self.sync_source = source
        self.sync_error = None
        self.last_synced_at = now

    def mark_error(self, error: str) -> None:
        self.sync_status = SyncStatus.ERROR
        self.sync_error = error

    def mark_pending(self) -> None:
        self.sync_status = SyncStatus.PENDING
        self.sync_source = SyncSource.LOCAL
        self.updated_at = utcnow()


class Product(SyncedEntity):
    """Local catalogue product; the source for offers pushed to Allegro."""

    code: str = ""
    name: str = ""
    description: str | None = None
    selling_price: Decimal | None = None
    purchase_price: Decimal | None = None
    stock_quantity: int = 0
    minimum_stock: int | None = None
    active: bool = True
    account_id: str | None = None
    producer_remote_id: str | None = None
    producer_id: str | None = None

    @property
    def effective_price(self) -> Decimal | None:
        return self.selling_price if self.selling_price is not None else self.purchase_price


class Offer(SyncedEntity):
    """Local mirror of an Allegro offer, optionally linked to a product."""

    allegro_offer_id: str | None = None
    product_id: str | None = None
    account_id: str | None = None
    title: str = ""
    description: str | None = None
    price: Decimal | None = None
    currency: str = "PLN"
    stock_quantity: int = 0
    status: str = "INACTIVE"
    remote_updated_at: datetime | None = None

    @property
    def is_linked(self) -> bool:
        return bool(self.allegro_offer_id)


class OrderLineItem(BaseModel):
    """One purchased position of an order."""

    offer_id: str
    quantity: int = 1
    price: Decimal | None = None


class Order(SyncedEntity):
    """Local mirror of an Allegro order (checkout form)."""

    allegro_order_id: str
    status: str = "NEW"
    payment_status: str | None = None
    fulfillment_status: str | None = None
    buyer_email: str | None = None
    total_amount: Decimal | None = None
    currency: str | None = None
    line_items: list[OrderLineItem] = Field(default_factory=list)


class Producer(BaseModel):
    """Responsible producer mirrored from Allegro, keyed by (account, remote id)."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    id: str = Field(default_factory=_new_id)
    account_id: str
    remote_id: str
    name: str | None = None
    email: str | None = None
    phone: str | None = None
    address: dict[str, Any] | None = None
    raw_data: dict[str, Any] = Field(default_factory=dict)
    sync_status: SyncStatus = SyncStatus.SYNCED
    sync_error: str | None = None
    last_synced_at: datetime | None = None
    created_at: datetime = Field(default_factory=utcnow)

    @classmethod
    def from_remote(cls, account_id: str, data: dict[str, Any]) -> Producer:
        """Build a producer row from an Allegro responsible-producer payload."""
        return cls(
            account_id=account_id,
            remote_id=str(data["id"]),
            name=data.get("name") or data.get("companyName"),
            email=data.get("email") or (data.get("contact") or {}).get("email"),
            phone=data.get("phone") or (data.get("contact") or {}).get("phone"),
            address=data.get("address"),
            raw_data=dict(data),
            sync_status=SyncStatus.SYNCED,
            last_synced_at=utcnow(),
        )


class SyncEvent(BaseModel):
    """A marketplace event recorded by ingestion.

    ``event_id`` is the deduplication key: at most one row exists per id.
    ``sequence`` is assigned by the store in ingestion order and is what the
    cursor is derived from.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    event_id: str
    event_type: str
    source: str
    payload: dict[str, Any] = Field(default_factory=dict)
    processed: bool = False
    processed_at: datetime | None = None
    processing_error: str | None = None
    retry_count: int = 0
    created_at: datetime = Field(default_factory=utcnow)
    sequence: int | None = None
