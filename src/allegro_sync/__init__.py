"""allegro-sync-engine — event ingestion and push/pull reconciliation with Allegro.

Concrete adapters live in :mod:`allegro_sync.adapters`; :func:`build_engine` wires them.
"""

from __future__ import annotations

# ── Conflict resolution ──────────────────────────────────────────
from .conflict import ConflictResolver, ConflictStrategy, Resolution
from .config import SyncSettings, get_settings
from .correlation import (
    CorrelationIdFilter,
    correlation_scope,
    generate_correlation_id,
    get_correlation_id,
    set_correlation_id,
)

# ── Domain ───────────────────────────────────────────────────────
from .domain import (
    BidirectionalResult,
    EventFilter,
    EventPage,
    EventStream,
    Offer,
    Order,
    PollResult,
    Producer,
    Product,
    SyncErrorKind,
    SyncEvent,
    SyncRunResult,
    SyncSource,
    SyncStatus,
)

# ── Engine ───────────────────────────────────────────────────────
from .dependencies import ProducerSyncService
from .engine import SyncEngine, build_engine, open_sqlalchemy_store
from .events import EventDispatcher, EventIngestionService
from .concurrency import CriticalSection, EntityLocks, RunLease
from .notifications import SyncNotifier
from .primitives import AllegroSyncError, ResourceIdentifier
from .resilience import RetryExecutor, RetryPolicy
from .sync import AllegroToDbStrategy, BidirectionalStrategy, DbToAllegroStrategy

__all__ = [
    "AllegroSyncError",
    "AllegroToDbStrategy",
    "BidirectionalResult",
    "BidirectionalStrategy",
    "ConflictResolver",
    "ConflictStrategy",
    "CorrelationIdFilter",
    "CriticalSection",
    "DbToAllegroStrategy",
    "EntityLocks",
    "EventDispatcher",
    "EventFilter",
    "EventIngestionService",
    "EventPage",
    "EventStream",
    "Offer",
    "Order",
    "PollResult",
    "Producer",
    "ProducerSyncService",
    "Product",
    "ResourceIdentifier",
    "Resolution",
    "RetryExecutor",
    "RetryPolicy",
    "RunLease",
    "SyncEngine",
    "SyncErrorKind",
    "SyncEvent",
    "SyncNotifier",
    "SyncRunResult",
    "SyncSettings",
    "SyncSource",
    "SyncStatus",
    "build_engine",
    "correlation_scope",
    "generate_correlation_id",
    "get_correlation_id",
    "get_settings",
    "open_sqlalchemy_store",
    "set_correlation_id",
]
