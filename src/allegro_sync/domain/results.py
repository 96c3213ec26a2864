"""Ephemeral run summaries and query result types (never persisted)."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import SyncEvent


class SyncErrorKind(str, Enum):
    """Why a single record failed inside a sync run."""

    REMOTE_UNREACHABLE = "REMOTE_UNREACHABLE"
    REMOTE_REJECTED = "REMOTE_REJECTED"
    LOCAL_CONFLICT = "LOCAL_CONFLICT"
    DEPENDENCY_NOT_FOUND = "DEPENDENCY_NOT_FOUND"
    ACCOUNT_MISMATCH = "ACCOUNT_MISMATCH"
    UNEXPECTED = "UNEXPECTED"


@dataclass(frozen=True)
class SyncRecordError:
    record_id: str
    kind: SyncErrorKind
    message: str


@dataclass
class SyncRunResult:
    """Counts for one strategy invocation; failures are isolated per record."""

    processed: int = 0
    successful: int = 0
    failed: int = 0
    errors: list[SyncRecordError] = field(default_factory=list)
    cancelled: bool = False

    def record_success(self) -> None:
        self.processed += 1
        self.successful += 1

    def record_failure(self, record_id: str, kind: SyncErrorKind, message: str) -> None:
        self.processed += 1
        self.failed += 1
        self.errors.append(SyncRecordError(record_id, kind, message))

    def __add__(self, other: SyncRunResult) -> SyncRunResult:
        return SyncRunResult(
            processed=self.processed + other.processed,
            successful=self.successful + other.successful,
            failed=self.failed + other.failed,
            errors=[*self.errors, *other.errors],
            cancelled=self.cancelled or other.cancelled,
        )


@dataclass(frozen=True)
class BidirectionalResult:
    allegro_to_db: SyncRunResult
    db_to_allegro: SyncRunResult

    @property
    def total(self) -> SyncRunResult:
        return self.allegro_to_db + self.db_to_allegro


@dataclass(frozen=True)
class PollResult:
    """Outcome of one ``poll_events`` cycle across both streams."""

    processed_count: int = 0
    failed_count: int = 0
    skipped_count: int = 0


@dataclass(frozen=True)
class ProducerSyncSummary:
    total: int
    synced: int
    errors: int


@dataclass(frozen=True)
class EventFilter:
    """Filter and paging parameters for listing stored events."""

    event_type: str | None = None
    source: str | None = None
    processed: bool | None = None
    page: int = 1
    limit: int = 20

    def __post_init__(self) -> None:
        if self.page < 1:
            raise ValueError("page must be >= 1")
        if self.limit < 1:
            raise ValueError("limit must be >= 1")

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


@dataclass(frozen=True)
class EventPage:
    items: list[SyncEvent]
    page: int
    limit: int
    total: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0
