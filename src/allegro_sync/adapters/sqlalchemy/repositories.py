"""
SQLAlchemy implementations of the store ports.

Every operation runs in its own short transaction opened from an
``async_sessionmaker``; nothing spans calls, so concurrent handlers never
share a session. Uniqueness guarantees (event ids, producer keys, the stock
restoration ledger) are enforced by database constraints and surfaced by
catching ``IntegrityError``.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import async_sessionmaker

from ...domain.models import (
    Offer,
    Order,
    Producer,
    Product,
    SyncEvent,
    SyncStatus,
)
from ...ports.repositories import (
    IOfferRepository,
    IOrderRepository,
    IProducerRepository,
    IProductRepository,
    ISyncEventRepository,
    SyncStore,
)
from ...primitives.exceptions import DuplicateEventError
from ...utils import ensure_aware
from .models import (
    Base,
    OfferModel,
    OrderModel,
    OrderStockRestorationModel,
    ProducerModel,
    ProductModel,
    SyncEventModel,
)

if TYPE_CHECKING:
    from collections.abc import Mapping

    from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

    from ...domain.results import EventFilter

logger = logging.getLogger("allegro_sync.persistence")


def _row_values(row: Base) -> dict[str, Any]:
    """Column values of *row*, with datetimes normalised to aware UTC."""
    values: dict[str, Any] = {}
    for column in row.__table__.columns:
        value = getattr(row, column.key)
        if isinstance(value, datetime):
            value = ensure_aware(value)
        values[column.key] = value
    return values


# ── Events ───────────────────────────────────────────────────────────


class SQLAlchemySyncEventRepository(ISyncEventRepository):
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def add(self, event: SyncEvent) -> SyncEvent:
        row = SyncEventModel(**event.model_dump(exclude={"sequence"}))
        try:
            async with self._session_factory.begin() as session:
                session.add(row)
                await session.flush()
                stored = SyncEvent.model_validate(_row_values(row))
        except IntegrityError as exc:
            raise DuplicateEventError(event.event_id) from exc
        return stored

    async def get(self, event_id: str) -> SyncEvent | None:
        async with self._session_factory() as session:
            row = await session.scalar(
                select(SyncEventModel).where(SyncEventModel.event_id == event_id)
            )
            return SyncEvent.model_validate(_row_values(row)) if row else None

    async def save(self, event: SyncEvent) -> None:
        async with self._session_factory.begin() as session:
            result = await session.execute(
                update(SyncEventModel)
                .where(SyncEventModel.event_id == event.event_id)
                .values(
                    processed=event.processed,
                    processed_at=event.processed_at,
                    processing_error=event.processing_error,
                    retry_count=event.retry_count,
                )
            )
            if result.rowcount == 0:
                session.add(SyncEventModel(**event.model_dump(exclude={"sequence"})))

    async def last_processed_event_id(self, source: str) -> str | None:
        async with self._session_factory() as session:
            return await session.scalar(
                select(SyncEventModel.event_id)
                .where(
                    SyncEventModel.source == source,
                    SyncEventModel.processed.is_(True),
                )
                .order_by(SyncEventModel.sequence.desc())
                .limit(1)
            )

    async def search(
        self, event_filter: EventFilter
    ) -> tuple[list[SyncEvent], int]:
        conditions = []
        if event_filter.event_type is not None:
            conditions.append(SyncEventModel.event_type == event_filter.event_type)
        if event_filter.source is not None:
            conditions.append(SyncEventModel.source == event_filter.source)
        if event_filter.processed is not None:
            conditions.append(SyncEventModel.processed.is_(event_filter.processed))

        async with self._session_factory() as session:
            total = await session.scalar(
                select(func.count()).select_from(SyncEventModel).where(*conditions)
            )
            rows = await session.scalars(
                select(SyncEventModel)
                .where(*conditions)
                .order_by(SyncEventModel.sequence.desc())
                .offset(event_filter.offset)
                .limit(event_filter.limit)
            )
            items = [SyncEvent.model_validate(_row_values(row)) for row in rows]
        return items, total or 0

    async def purge_processed(self, before: datetime) -> int:
        async with self._session_factory.begin() as session:
            result = await session.execute(
                delete(SyncEventModel).where(
                    SyncEventModel.processed.is_(True),
                    SyncEventModel.created_at < before,
                )
            )
        deleted = result.rowcount or 0
        logger.debug("Purged %d processed sync event(s)", deleted)
        return deleted


# ── Mirrored entities ────────────────────────────────────────────────


class SQLAlchemyProductRepository(IProductRepository):
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get(self, product_id: str) -> Product | None:
        async with self._session_factory() as session:
            row = await session.get(ProductModel, product_id)
            return Product.model_validate(_row_values(row)) if row else None

    async def save(self, product: Product) -> None:
        async with self._session_factory.begin() as session:
            await session.merge(ProductModel(**product.model_dump()))

    async def list_pending_push(self, since: datetime, limit: int) -> list[Product]:
        stmt = (
            select(ProductModel)
            .where(
                ProductModel.active.is_(True),
                ProductModel.updated_at >= since,
                or_(
                    ProductModel.sync_status != SyncStatus.SYNCED,
                    ProductModel.last_synced_at.is_(None),
                    ProductModel.last_synced_at < ProductModel.updated_at,
                ),
            )
            .order_by(ProductModel.updated_at)
            .limit(limit)
        )
        async with self._session_factory() as session:
            rows = await session.scalars(stmt)
            return [Product.model_validate(_row_values(row)) for row in rows]


class SQLAlchemyOfferRepository(IOfferRepository):
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get(self, offer_id: str) -> Offer | None:
        async with self._session_factory() as session:
            row = await session.get(OfferModel, offer_id)
            return Offer.model_validate(_row_values(row)) if row else None

    async def get_by_allegro_id(self, allegro_offer_id: str) -> Offer | None:
        return await self._first(OfferModel.allegro_offer_id == allegro_offer_id)

    async def get_by_product_id(self, product_id: str) -> Offer | None:
        return await self._first(OfferModel.product_id == product_id)

    async def save(self, offer: Offer) -> None:
        async with self._session_factory.begin() as session:
            await session.merge(OfferModel(**offer.model_dump()))

    async def list_linked(self, limit: int) -> list[Offer]:
        stmt = (
            select(OfferModel)
            .where(OfferModel.allegro_offer_id.is_not(None))
            # never-synced offers first, then the stalest
            .order_by(
                OfferModel.last_synced_at.is_not(None),
                OfferModel.last_synced_at,
                OfferModel.created_at,
            )
            .limit(limit)
        )
        async with self._session_factory() as session:
            rows = await session.scalars(stmt)
            return [Offer.model_validate(_row_values(row)) for row in rows]

    async def _first(self, condition: Any) -> Offer | None:
        async with self._session_factory() as session:
            row = await session.scalar(
                select(OfferModel).where(condition).order_by(OfferModel.created_at)
            )
            return Offer.model_validate(_row_values(row)) if row else None


class SQLAlchemyOrderRepository(IOrderRepository):
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get_by_allegro_id(self, allegro_order_id: str) -> Order | None:
        async with self._session_factory() as session:
            row = await session.scalar(
                select(OrderModel).where(OrderModel.allegro_order_id == allegro_order_id)
            )
            return Order.model_validate(_row_values(row)) if row else None

    async def save(self, order: Order) -> None:
        values = order.model_dump(exclude={"line_items"})
        values["line_items"] = [item.model_dump(mode="json") for item in order.line_items]
        async with self._session_factory.begin() as session:
            await session.merge(OrderModel(**values))

    async def restore_stock(
        self, allegro_order_id: str, quantities: Mapping[str, int]
    ) -> list[str] | None:
        restored: list[str] = []
        try:
            async with self._session_factory.begin() as session:
                session.add(OrderStockRestorationModel(allegro_order_id=allegro_order_id))
                await session.flush()
                for offer_id, quantity in quantities.items():
                    offer = await session.scalar(
                        select(OfferModel)
                        .where(OfferModel.allegro_offer_id == offer_id)
                        .order_by(OfferModel.created_at)
                    )
                    if offer is None:
                        continue
                    offer.stock_quantity += quantity
                    if offer.product_id:
                        product = await session.get(ProductModel, offer.product_id)
                        if product is not None:
                            product.stock_quantity += quantity
                    restored.append(offer_id)
        except IntegrityError:
            # ledger row exists: this order's stock was already given back
            return None
        return restored


# ── Producers ────────────────────────────────────────────────────────


class SQLAlchemyProducerRepository(IProducerRepository):
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get_by_remote_id(
        self, account_id: str, remote_id: str
    ) -> Producer | None:
        async with self._session_factory() as session:
            row = await self._find(session, account_id, remote_id)
            return Producer.model_validate(_row_values(row)) if row else None

    async def upsert(self, producer: Producer) -> Producer:
        try:
            return await self._upsert_once(producer)
        except IntegrityError:
            # A concurrent insert of the same key won; update its row instead.
            logger.debug(
                "Producer %s/%s inserted concurrently, updating existing row",
                producer.account_id,
                producer.remote_id,
            )
            return await self._upsert_once(producer)

    async def list_for_account(self, account_id: str) -> list[Producer]:
        async with self._session_factory() as session:
            rows = await session.scalars(
                select(ProducerModel)
                .where(ProducerModel.account_id == account_id)
                .order_by(ProducerModel.created_at)
            )
            return [Producer.model_validate(_row_values(row)) for row in rows]

    async def _upsert_once(self, producer: Producer) -> Producer:
        values = producer.model_dump()
        async with self._session_factory.begin() as session:
            row = await self._find(session, producer.account_id, producer.remote_id)
            if row is None:
                row = ProducerModel(**values)
                session.add(row)
            else:
                for key, value in values.items():
                    if key not in ("id", "created_at"):
                        setattr(row, key, value)
            await session.flush()
            return Producer.model_validate(_row_values(row))

    @staticmethod
    async def _find(
        session: AsyncSession, account_id: str, remote_id: str
    ) -> ProducerModel | None:
        return await session.scalar(
            select(ProducerModel).where(
                ProducerModel.account_id == account_id,
                ProducerModel.remote_id == remote_id,
            )
        )


# ── Wiring ───────────────────────────────────────────────────────────


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory whose objects stay readable after commit."""
    return async_sessionmaker(engine, expire_on_commit=False)


async def create_schema(engine: AsyncEngine) -> None:
    """Create all sync engine tables that do not exist yet."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


def create_sqlalchemy_store(
    session_factory: async_sessionmaker[AsyncSession],
) -> SyncStore:
    """A :class:`SyncStore` whose repositories share *session_factory*."""
    return SyncStore(
        events=SQLAlchemySyncEventRepository(session_factory),
        products=SQLAlchemyProductRepository(session_factory),
        offers=SQLAlchemyOfferRepository(session_factory),
        orders=SQLAlchemyOrderRepository(session_factory),
        producers=SQLAlchemyProducerRepository(session_factory),
    )
