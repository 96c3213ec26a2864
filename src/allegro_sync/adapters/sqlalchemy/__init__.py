"""SQLAlchemy (async) persistence for events, mirrored entities and producers."""

from __future__ import annotations

from .models import (
    Base,
    OfferModel,
    OrderModel,
    OrderStockRestorationModel,
    ProducerModel,
    ProductModel,
    SyncEventModel,
)
from .repositories import (
    SQLAlchemyOfferRepository,
    SQLAlchemyOrderRepository,
    SQLAlchemyProducerRepository,
    SQLAlchemyProductRepository,
    SQLAlchemySyncEventRepository,
    create_schema,
    create_session_factory,
    create_sqlalchemy_store,
)
from .types import JSONType

__all__ = [
    "Base",
    "JSONType",
    "OfferModel",
    "OrderModel",
    "OrderStockRestorationModel",
    "ProducerModel",
    "ProductModel",
    "SQLAlchemyOfferRepository",
    "SQLAlchemyOrderRepository",
    "SQLAlchemyProducerRepository",
    "SQLAlchemyProductRepository",
    "SQLAlchemySyncEventRepository",
    "SyncEventModel",
    "create_schema",
    "create_session_factory",
    "create_sqlalchemy_store",
]
