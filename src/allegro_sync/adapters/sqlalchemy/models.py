"""Table models for the SQLAlchemy store."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    Enum,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from ...domain.models import SyncSource, SyncStatus
from .types import JSONType


def _now() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Declarative base for the sync engine tables."""


class SyncColumnsMixin:
    """Columns shared by every record mirrored with Allegro."""

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    sync_status: Mapped[SyncStatus] = mapped_column(
        Enum(SyncStatus, native_enum=False, length=16),
        default=SyncStatus.PENDING,
        index=True,
    )
    sync_source: Mapped[SyncSource] = mapped_column(
        Enum(SyncSource, native_enum=False, length=16), default=SyncSource.LOCAL
    )
    sync_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    last_synced_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_now, index=True
    )


class SyncEventModel(Base):
    """
    One ingested marketplace event.

    ``sequence`` is the insertion order and drives cursor derivation;
    ``event_id`` carries the deduplication guarantee.
    """

    __tablename__ = "sync_events"

    sequence: Mapped[int] = mapped_column(
        Integer().with_variant(BigInteger, "postgresql"),
        primary_key=True,
        autoincrement=True,
    )
    event_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    event_type: Mapped[str] = mapped_column(String(128), index=True)
    source: Mapped[str] = mapped_column(String(64))
    payload: Mapped[dict[str, Any]] = mapped_column(JSONType, default=dict)
    processed: Mapped[bool] = mapped_column(Boolean, default=False)
    processed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    processing_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    retry_count: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now)

    __table_args__ = (
        Index("ix_sync_events_source_processed", "source", "processed"),
        Index("ix_sync_events_processed_created", "processed", "created_at"),
    )


class ProductModel(SyncColumnsMixin, Base):
    __tablename__ = "products"

    code: Mapped[str] = mapped_column(String(128), default="", index=True)
    name: Mapped[str] = mapped_column(String(512), default="")
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    selling_price: Mapped[Decimal | None] = mapped_column(
        Numeric(12, 2), nullable=True
    )
    purchase_price: Mapped[Decimal | None] = mapped_column(
        Numeric(12, 2), nullable=True
    )
    stock_quantity: Mapped[int] = mapped_column(Integer, default=0)
    minimum_stock: Mapped[int | None] = mapped_column(Integer, nullable=True)
    active: Mapped[bool] = mapped_column(Boolean, default=True)
    account_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    producer_remote_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    producer_id: Mapped[str | None] = mapped_column(String(36), nullable=True)


class OfferModel(SyncColumnsMixin, Base):
    __tablename__ = "offers"

    allegro_offer_id: Mapped[str | None] = mapped_column(
        String(128), unique=True, nullable=True
    )
    product_id: Mapped[str | None] = mapped_column(
        String(36), nullable=True, index=True
    )
    account_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    title: Mapped[str] = mapped_column(String(512), default="")
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    price: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    currency: Mapped[str] = mapped_column(String(8), default="PLN")
    stock_quantity: Mapped[int] = mapped_column(Integer, default=0)
    status: Mapped[str] = mapped_column(String(32), default="INACTIVE")
    remote_updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )


class OrderModel(SyncColumnsMixin, Base):
    __tablename__ = "orders"

    allegro_order_id: Mapped[str] = mapped_column(
        String(128), unique=True, nullable=False
    )
    status: Mapped[str] = mapped_column(String(32), default="NEW")
    payment_status: Mapped[str | None] = mapped_column(String(32), nullable=True)
    fulfillment_status: Mapped[str | None] = mapped_column(String(32), nullable=True)
    buyer_email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    total_amount: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    currency: Mapped[str | None] = mapped_column(String(8), nullable=True)
    line_items: Mapped[list[dict[str, Any]]] = mapped_column(JSONType, default=list)


class OrderStockRestorationModel(Base):
    """Ledger row: the order's cancellation has already given stock back."""

    __tablename__ = "order_stock_restorations"

    allegro_order_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    restored_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now)


class ProducerModel(Base):
    __tablename__ = "responsible_producers"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    account_id: Mapped[str] = mapped_column(String(128), nullable=False)
    remote_id: Mapped[str] = mapped_column(String(128), nullable=False)
    name: Mapped[str | None] = mapped_column(String(512), nullable=True)
    email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(64), nullable=True)
    address: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    raw_data: Mapped[dict[str, Any]] = mapped_column(JSONType, default=dict)
    sync_status: Mapped[SyncStatus] = mapped_column(
        Enum(SyncStatus, native_enum=False, length=16), default=SyncStatus.SYNCED
    )
    sync_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    last_synced_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now)

    __table_args__ = (
        UniqueConstraint("account_id", "remote_id", name="uq_producer_account_remote"),
    )
