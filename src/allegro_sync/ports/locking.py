"""ILockStrategy — protocol for per-entity mutexes and sync-run leases.

Lock TTL guidance:
- Entity locks guard one handler's read-modify-write; the default ttl (30s) is
  plenty.
- Sync-run leases cover a whole batch. Acquire them with a conservative TTL
  (``run_lease_ttl``) or call ``extend(resource, token, ttl=...)`` periodically
  while the run is in progress, otherwise a slow run can lose its lease and
  a second instance may start the same batch.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from datetime import datetime

    from ..primitives.locking import ResourceIdentifier


@dataclass
class ActiveLock:
    """Information about an active lock for monitoring and debugging."""

    resource_type: str
    resource_id: str
    token: str
    acquired_at: datetime
    ttl_seconds: float
    session_id: str | None = None


@runtime_checkable
class ILockStrategy(Protocol):
    """
    Lock strategy protocol for pessimistic concurrency control.

    Implementations can use Redis, database advisory locks or in-memory
    primitives for single-process deployments and tests.
    """

    async def acquire(
        self,
        resource: ResourceIdentifier,
        *,
        timeout: float = 10.0,
        ttl: float = 30.0,
        session_id: str | None = None,
    ) -> str:
        """
        Acquire a lock for the given resource.

        Args:
            resource: The resource to lock.
            timeout: Maximum time to wait for the lock. ``0`` means fail fast
                when the lock is held.
            ttl: Time-to-live for the lock (seconds). Lock auto-expires to prevent
                orphaned locks if the process crashes.
            session_id: Optional unique identifier for the execution context,
                used for reentrancy.

        Returns:
            A unique lock token required for release.

        Raises:
            LockAcquisitionError: If the lock cannot be acquired within the timeout.
        """
        ...

    async def extend(
        self,
        resource: ResourceIdentifier,
        token: str,
        ttl: float,
    ) -> bool:
        """Extend the TTL of a held lock. Returns False if the lock is gone."""
        ...

    async def release(
        self,
        resource: ResourceIdentifier,
        token: str,
    ) -> None:
        """Release a previously acquired lock."""
        ...

    async def health_check(self) -> bool:
        """Verify that the lock service is responsive and healthy."""
        ...

    async def get_active_locks(self) -> list[ActiveLock]:
        """Get all active locks for monitoring and debugging."""
        ...
