"""Per-entity critical sections and sync-run leases."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING, Any

from .primitives.exceptions import LockAcquisitionError, SyncRunInProgressError
from .primitives.locking import ResourceIdentifier

if TYPE_CHECKING:
    from collections.abc import Iterable

    from .ports.locking import ILockStrategy

logger = logging.getLogger("allegro_sync.locking")


class CriticalSection:
    """
    Async context manager that acquires locks on multiple resources.

    - Deduplicates and sorts resources before acquisition
    - Rolls back partial acquisitions on failure or cancellation
    - Releases in reverse order on exit

    Usage:
        ```python
        resources = [ResourceIdentifier.offer("O1"), ResourceIdentifier.product(pid)]

        async with CriticalSection(resources, lock_strategy):
            # Offer and product are locked here
            await apply_stock()
        ```
    """

    def __init__(
        self,
        resources: Iterable[ResourceIdentifier],
        lock_strategy: ILockStrategy,
        *,
        timeout: float = 10.0,
        ttl: float = 30.0,
        session_id: str | None = None,
    ) -> None:
        self._resources = sorted(set(resources))
        self._lock_strategy = lock_strategy
        self._timeout = timeout
        self._ttl = ttl
        self._session_id = session_id
        self._acquired: list[tuple[ResourceIdentifier, str]] = []

    @property
    def resources(self) -> list[ResourceIdentifier]:
        return list(self._resources)

    async def __aenter__(self) -> CriticalSection:
        start = time.monotonic()
        try:
            for resource in self._resources:
                token = await self._lock_strategy.acquire(
                    resource,
                    timeout=self._timeout,
                    ttl=self._ttl,
                    session_id=self._session_id,
                )
                self._acquired.append((resource, token))
        except asyncio.CancelledError:
            await self._rollback()
            raise
        except Exception as exc:  # noqa: BLE001
            await self._rollback()
            if isinstance(exc, LockAcquisitionError):
                raise
            failed_resource = self._resources[
                min(len(self._acquired), len(self._resources) - 1)
            ]
            raise LockAcquisitionError(
                failed_resource, self._timeout, reason=str(exc)
            ) from exc

        logger.debug(
            "Acquired %d lock(s) %s in %.1fms",
            len(self._resources),
            [str(r) for r in self._resources],
            (time.monotonic() - start) * 1000,
        )
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        await self._rollback()

    async def _rollback(self) -> list[Exception]:
        """Release acquired locks in reverse order (LIFO)."""
        errors: list[Exception] = []
        for resource, token in reversed(self._acquired):
            try:
                await self._lock_strategy.release(resource, token)
            except Exception as exc:  # noqa: BLE001
                logger.error("Failed to release lock %s: %s", resource, exc)
                errors.append(exc)
        self._acquired.clear()
        return errors


class EntityLocks:
    """
    Serializes read-modify-write on the same offer, order or product.

    Acquisition order across the engine is ``Order`` first, then the offers and
    products it touches in one sorted critical section. Nothing acquires an
    ``Order`` lock while holding an offer or product lock.
    """

    def __init__(
        self,
        lock_strategy: ILockStrategy,
        *,
        timeout: float = 10.0,
        ttl: float = 30.0,
    ) -> None:
        self._lock_strategy = lock_strategy
        self._timeout = timeout
        self._ttl = ttl

    def hold(self, *resources: ResourceIdentifier | None) -> CriticalSection:
        """Critical section over *resources*; ``None`` entries are skipped."""
        return CriticalSection(
            [r for r in resources if r is not None],
            self._lock_strategy,
            timeout=self._timeout,
            ttl=self._ttl,
        )


class RunLease:
    """
    Single-flight guard for one sync type.

    Acquisition fails fast: if another run holds the lease the caller gets
    :class:`SyncRunInProgressError` instead of waiting behind it.
    """

    def __init__(
        self,
        lock_strategy: ILockStrategy,
        sync_type: str,
        *,
        ttl: float = 900.0,
    ) -> None:
        self._lock_strategy = lock_strategy
        self._resource = ResourceIdentifier.sync_run(sync_type)
        self._sync_type = sync_type
        self._ttl = ttl
        self._token: str | None = None

    async def __aenter__(self) -> RunLease:
        try:
            self._token = await self._lock_strategy.acquire(
                self._resource, timeout=0, ttl=self._ttl
            )
        except LockAcquisitionError as exc:
            raise SyncRunInProgressError(self._sync_type) from exc
        logger.debug("Run lease acquired: %s", self._resource)
        return self

    async def extend(self) -> bool:
        """Heartbeat for long runs; False if the lease was lost."""
        if self._token is None:
            return False
        return await self._lock_strategy.extend(self._resource, self._token, self._ttl)

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        if self._token is not None:
            await self._lock_strategy.release(self._resource, self._token)
            self._token = None
            logger.debug("Run lease released: %s", self._resource)
