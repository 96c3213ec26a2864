"""InMemoryLockStrategy — single-process implementation of ILockStrategy."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING
from uuid import uuid4

from ...ports.locking import ActiveLock, ILockStrategy
from ...primitives.exceptions import LockAcquisitionError

if TYPE_CHECKING:
    from ...primitives.locking import ResourceIdentifier

logger = logging.getLogger("allegro_sync.locking")


@dataclass
class _LockState:
    """State for a single resource lock.

    ``asyncio.Lock`` wakes waiters in FIFO order, which prevents starvation.
    """

    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    token: str | None = None
    session_id: str | None = None
    ref_count: int = 0
    waiters: int = 0
    acquired_at: datetime | None = None
    ttl: float = 30.0
    expires_at: float = 0.0


class InMemoryLockStrategy(ILockStrategy):
    """
    In-memory implementation of ILockStrategy.

    Features:
    - FIFO lock ordering
    - Reentrancy support via session_id
    - Fail-fast acquisition with ``timeout=0``
    - Expired locks (holder exceeded its ttl) are reclaimed on the next acquire
    """

    def __init__(self) -> None:
        self._locks: dict[tuple[str, str], _LockState] = {}

    async def acquire(
        self,
        resource: ResourceIdentifier,
        *,
        timeout: float = 10.0,
        ttl: float = 30.0,
        session_id: str | None = None,
    ) -> str:
        key = (resource.resource_type, resource.resource_id)
        state = self._locks.setdefault(key, _LockState())

        if state.token is not None:
            if session_id is not None and state.session_id == session_id:
                state.ref_count += 1
                logger.debug(
                    "Reentrant lock acquired: %s (count=%d)", resource, state.ref_count
                )
                return state.token
            if time.monotonic() >= state.expires_at:
                logger.warning("Reclaiming expired lock: %s", resource)
                self._reset(state)
                state.lock.release()

        state.waiters += 1
        try:
            if timeout <= 0:
                if state.lock.locked():
                    raise LockAcquisitionError(resource, timeout, reason="lock is held")
                await state.lock.acquire()
            else:
                await asyncio.wait_for(state.lock.acquire(), timeout=timeout)
        except asyncio.TimeoutError as err:
            logger.warning("Lock acquisition on %s timed out after %.1fs", resource, timeout)
            raise LockAcquisitionError(resource, timeout) from err
        finally:
            state.waiters -= 1
            if not state.lock.locked() and state.waiters == 0:
                self._locks.pop(key, None)

        state.token = str(uuid4())
        state.session_id = session_id
        state.ref_count = 1
        state.acquired_at = datetime.now(timezone.utc)
        state.ttl = ttl
        state.expires_at = time.monotonic() + ttl
        logger.debug("Lock acquired: %s", resource)
        return state.token

    async def extend(
        self,
        resource: ResourceIdentifier,
        token: str,
        ttl: float,
    ) -> bool:
        state = self._locks.get((resource.resource_type, resource.resource_id))
        if state is None or state.token != token:
            return False
        state.ttl = ttl
        state.expires_at = time.monotonic() + ttl
        logger.debug("Lock extended: %s (ttl=%.1fs)", resource, ttl)
        return True

    async def release(
        self,
        resource: ResourceIdentifier,
        token: str,
    ) -> None:
        key = (resource.resource_type, resource.resource_id)
        state = self._locks.get(key)
        if state is None or state.token != token:
            logger.warning("Attempted to release invalid or expired lock: %s", resource)
            return

        state.ref_count -= 1
        if state.ref_count > 0:
            return
        self._reset(state)
        state.lock.release()
        if state.waiters == 0:
            self._locks.pop(key, None)
        logger.debug("Lock released: %s", resource)

    async def health_check(self) -> bool:
        return True

    async def get_active_locks(self) -> list[ActiveLock]:
        return [
            ActiveLock(
                resource_type=resource_type,
                resource_id=resource_id,
                token=state.token,
                acquired_at=state.acquired_at or datetime.now(timezone.utc),
                ttl_seconds=state.ttl,
                session_id=state.session_id,
            )
            for (resource_type, resource_id), state in self._locks.items()
            if state.token is not None
        ]

    @staticmethod
    def _reset(state: _LockState) -> None:
        state.token = None
        state.session_id = None
        state.ref_count = 0
        state.acquired_at = None
