"""Shared run mechanics for sync strategies: lease, deadline, batch isolation."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, ClassVar, TypeVar

from ..concurrency import RunLease
from ..correlation import correlation_scope, get_correlation_id
from ..domain.results import SyncErrorKind, SyncRunResult
from ..primitives.exceptions import (
    AccountMismatchError,
    CredentialUnavailableError,
    DependencyNotFoundError,
    ManualReviewRequiredError,
    RemoteRejectedError,
    RemoteUnreachableError,
)

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Sequence

    from ..concurrency import EntityLocks
    from ..notifications import SyncNotifier
    from ..ports.locking import ILockStrategy
    from ..ports.repositories import SyncStore
    from ..resilience.retry import RetryExecutor

logger = logging.getLogger("allegro_sync.sync")

R = TypeVar("R")
T = TypeVar("T")


def classify_error(exc: BaseException) -> SyncErrorKind:
    """Map an exception raised for one record to its run-summary kind."""
    if isinstance(exc, RemoteUnreachableError):
        return SyncErrorKind.REMOTE_UNREACHABLE
    if isinstance(exc, RemoteRejectedError):
        return SyncErrorKind.REMOTE_REJECTED
    if isinstance(exc, ManualReviewRequiredError):
        return SyncErrorKind.LOCAL_CONFLICT
    if isinstance(exc, DependencyNotFoundError):
        return SyncErrorKind.DEPENDENCY_NOT_FOUND
    if isinstance(exc, (AccountMismatchError, CredentialUnavailableError)):
        return SyncErrorKind.ACCOUNT_MISMATCH
    return SyncErrorKind.UNEXPECTED


class SyncStrategy(ABC):
    """
    Base class for batched reconciliation runs.

    ``execute`` holds the run lease for the strategy's ``sync_type`` for the
    whole run, so overlapping runs of the same type fail fast with
    ``SyncRunInProgressError``. Records are attempted independently and no
    record is started once the caller's deadline (event-loop time) has passed.
    """

    sync_type: ClassVar[str]

    def __init__(
        self,
        store: SyncStore,
        lock_strategy: ILockStrategy,
        locks: EntityLocks,
        *,
        retry: RetryExecutor | None = None,
        notifier: SyncNotifier | None = None,
        batch_size: int = 100,
        lease_ttl: float = 900.0,
    ) -> None:
        self.store = store
        self.lock_strategy = lock_strategy
        self.locks = locks
        self.notifier = notifier
        self.batch_size = batch_size
        self.lease_ttl = lease_ttl
        self._retry = retry

    async def execute(
        self, batch_size: int | None = None, *, deadline: float | None = None
    ) -> SyncRunResult:
        with correlation_scope(get_correlation_id()):
            async with RunLease(
                self.lock_strategy, self.sync_type, ttl=self.lease_ttl
            ) as lease:
                logger.info("Executing %s sync", self.sync_type)
                result = await self._run(lease, batch_size or self.batch_size, deadline)
                logger.info(
                    "%s sync finished: processed=%d successful=%d failed=%d%s",
                    self.sync_type,
                    result.processed,
                    result.successful,
                    result.failed,
                    " (stopped at deadline)" if result.cancelled else "",
                )
            await self._notify_failures(result)
            return result

    @abstractmethod
    async def _run(
        self, lease: RunLease, batch_size: int, deadline: float | None
    ) -> SyncRunResult:
        """Run one batch while *lease* is held."""

    async def _process_batch(
        self,
        lease: RunLease,
        records: Sequence[T],
        process: Callable[[T], Awaitable[Any]],
        record_id: Callable[[T], str],
        deadline: float | None,
    ) -> SyncRunResult:
        result = SyncRunResult()
        loop = asyncio.get_running_loop()
        heartbeat_at = loop.time() + self.lease_ttl / 2

        for record in records:
            now = loop.time()
            if deadline is not None and now >= deadline:
                result.cancelled = True
                logger.warning(
                    "%s sync reached its deadline; %d record(s) not started",
                    self.sync_type,
                    len(records) - result.processed,
                )
                break
            if now >= heartbeat_at:
                if not await lease.extend():
                    logger.warning("%s sync lost its run lease", self.sync_type)
                heartbeat_at = now + self.lease_ttl / 2

            try:
                await process(record)
                result.record_success()
            except Exception as exc:  # noqa: BLE001
                kind = classify_error(exc)
                result.record_failure(record_id(record), kind, str(exc))
                log = logger.exception if kind is SyncErrorKind.UNEXPECTED else logger.error
                log(
                    "%s sync failed for %s (%s): %s",
                    self.sync_type,
                    record_id(record),
                    kind.value,
                    exc,
                )
        return result

    async def _call(
        self, fn: Callable[..., Awaitable[R]], *args: Any, operation: str
    ) -> R:
        if self._retry is None:
            return await fn(*args)
        return await self._retry.execute(fn, *args, operation=operation)

    async def _notify_failures(self, result: SyncRunResult) -> None:
        if not result.failed or self.notifier is None:
            return
        summary = "; ".join(
            f"{e.record_id}: {e.kind.value} {e.message}" for e in result.errors[:10]
        )
        await self.notifier.sync_error(
            self.sync_type, f"{result.failed} record(s) failed. {summary}"
        )
