"""Conflict resolution between the local copy and the Allegro copy of a record."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any

from ..correlation import get_correlation_id
from ..utils import ensure_aware

logger = logging.getLogger("allegro_sync.conflict")

_EPOCH_MIN = datetime.min.replace(tzinfo=timezone.utc)


class ConflictStrategy(str, Enum):
    """Record-level strategies.

    - **TIMESTAMP**: the later ``updated_at`` wins; equal timestamps favor the
      remote side.
    - **DB_WINS**: the local copy always wins.
    - **REMOTE_WINS**: the Allegro copy always wins.
    - **MANUAL**: never auto-applies either side.
    """

    TIMESTAMP = "TIMESTAMP"
    DB_WINS = "DB_WINS"
    REMOTE_WINS = "REMOTE_WINS"
    MANUAL = "MANUAL"


class Resolution(str, Enum):
    USE_DB = "USE_DB"
    USE_REMOTE = "USE_REMOTE"
    MANUAL_REVIEW = "MANUAL_REVIEW"


class FieldPolicy(str, Enum):
    DB_WINS = "DB_WINS"
    REMOTE_WINS = "REMOTE_WINS"


FIELD_POLICIES: Mapping[str, FieldPolicy] = MappingProxyType(
    {
        "price": FieldPolicy.REMOTE_WINS,
        "stock_quantity": FieldPolicy.REMOTE_WINS,
        "status": FieldPolicy.REMOTE_WINS,
        "description": FieldPolicy.DB_WINS,
    }
)
DEFAULT_FIELD_POLICY = FieldPolicy.DB_WINS


class ConflictResolver:
    """
    Decides which copy of a record is authoritative.

    The strategy is passed on every call; the resolver holds no configuration
    of its own, so one instance can serve every strategy.
    """

    def resolve(
        self,
        db_record: Any,
        remote_record: Any,
        db_updated_at: datetime | None,
        remote_updated_at: datetime | None,
        strategy: ConflictStrategy,
    ) -> Resolution:
        """Record-level decision.

        A missing timestamp sorts before any real one, which keeps
        ``TIMESTAMP`` total: two missing timestamps tie and favor the remote.
        """
        if strategy is ConflictStrategy.DB_WINS:
            resolution = Resolution.USE_DB
        elif strategy is ConflictStrategy.REMOTE_WINS:
            resolution = Resolution.USE_REMOTE
        elif strategy is ConflictStrategy.MANUAL:
            resolution = Resolution.MANUAL_REVIEW
        else:
            resolution = self._resolve_by_timestamp(db_updated_at, remote_updated_at)

        logger.debug(
            "Conflict resolved with %s -> %s (db=%s, remote=%s, correlation_id=%s)",
            strategy.value,
            resolution.value,
            db_updated_at,
            remote_updated_at,
            get_correlation_id(),
        )
        return resolution

    def resolve_field(self, field_name: str, db_value: Any, remote_value: Any) -> Any:
        """Pick the winning value for one field from the static policy table."""
        policy = FIELD_POLICIES.get(field_name, DEFAULT_FIELD_POLICY)
        return remote_value if policy is FieldPolicy.REMOTE_WINS else db_value

    def merge_fields(
        self, db_fields: Mapping[str, Any], remote_fields: Mapping[str, Any]
    ) -> dict[str, Any]:
        """Field-granular merge; fields present on one side only are kept as is."""
        merged = dict(db_fields)
        for name, remote_value in remote_fields.items():
            if name in merged:
                merged[name] = self.resolve_field(name, merged[name], remote_value)
            else:
                merged[name] = remote_value
        return merged

    @staticmethod
    def _resolve_by_timestamp(
        db_updated_at: datetime | None, remote_updated_at: datetime | None
    ) -> Resolution:
        db_ts = ensure_aware(db_updated_at) if db_updated_at else _EPOCH_MIN
        remote_ts = ensure_aware(remote_updated_at) if remote_updated_at else _EPOCH_MIN
        if db_ts > remote_ts:
            return Resolution.USE_DB
        return Resolution.USE_REMOTE
