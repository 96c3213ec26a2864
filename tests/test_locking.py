"""Tests for the in-memory lock strategy, critical sections and run leases."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import pytest

from allegro_sync.adapters.memory import InMemoryLockStrategy
from allegro_sync.concurrency import CriticalSection, EntityLocks, RunLease
from allegro_sync.primitives import (
    ConcurrencyError,
    LockAcquisitionError,
    ResourceIdentifier,
    SyncRunInProgressError,
)

if TYPE_CHECKING:
    from allegro_sync.ports import ILockStrategy


class RecordingLockStrategy(InMemoryLockStrategy):
    """Remembers the order in which resources were acquired."""

    def __init__(self) -> None:
        super().__init__()
        self.acquired: list[str] = []

    async def acquire(self, resource, *, timeout=10.0, ttl=30.0, session_id=None):  # type: ignore[no-untyped-def]
        token = await super().acquire(
            resource, timeout=timeout, ttl=ttl, session_id=session_id
        )
        self.acquired.append(str(resource))
        return token


class TestResourceIdentifier:
    def test_sorting_is_by_type_then_id(self) -> None:
        resources = [
            ResourceIdentifier.product("p1"),
            ResourceIdentifier.order("R1"),
            ResourceIdentifier.offer("O2"),
            ResourceIdentifier.offer("O1"),
        ]
        assert [str(r) for r in sorted(resources)] == [
            "Offer:O1",
            "Offer:O2",
            "Order:R1",
            "Product:p1",
        ]

    def test_equal_identifiers_deduplicate(self) -> None:
        assert len({ResourceIdentifier.offer("O1"), ResourceIdentifier.offer("O1")}) == 1


class TestInMemoryLockStrategy:
    @pytest.fixture
    def strategy(self) -> InMemoryLockStrategy:
        return InMemoryLockStrategy()

    @pytest.mark.asyncio
    async def test_acquire_release(self, strategy: ILockStrategy) -> None:
        resource = ResourceIdentifier.offer("O1")
        token = await strategy.acquire(resource, timeout=1.0)
        assert token
        await strategy.release(resource, token)
        assert await strategy.get_active_locks() == []

    @pytest.mark.asyncio
    async def test_second_acquire_times_out(self, strategy: ILockStrategy) -> None:
        resource = ResourceIdentifier.offer("O1")
        token = await strategy.acquire(resource, timeout=1.0)

        with pytest.raises(ConcurrencyError):
            await strategy.acquire(resource, timeout=0.05)

        await strategy.release(resource, token)
        token2 = await strategy.acquire(resource, timeout=1.0)
        await strategy.release(resource, token2)

    @pytest.mark.asyncio
    async def test_zero_timeout_fails_fast(self, strategy: ILockStrategy) -> None:
        resource = ResourceIdentifier.sync_run("db_to_allegro")
        token = await strategy.acquire(resource, timeout=0)

        with pytest.raises(LockAcquisitionError):
            await strategy.acquire(resource, timeout=0)
        await strategy.release(resource, token)

    @pytest.mark.asyncio
    async def test_reentrant_for_same_session(self, strategy: ILockStrategy) -> None:
        resource = ResourceIdentifier.order("R1")
        t1 = await strategy.acquire(resource, session_id="s1", timeout=1.0)
        t2 = await strategy.acquire(resource, session_id="s1", timeout=1.0)
        assert t1 == t2

        await strategy.release(resource, t1)
        assert len(await strategy.get_active_locks()) == 1
        await strategy.release(resource, t2)
        assert await strategy.get_active_locks() == []

    @pytest.mark.asyncio
    async def test_expired_lock_is_reclaimed(self, strategy: ILockStrategy) -> None:
        resource = ResourceIdentifier.offer("O1")
        stale = await strategy.acquire(resource, timeout=1.0, ttl=0.01)
        await asyncio.sleep(0.02)

        fresh = await strategy.acquire(resource, timeout=0.5)
        assert fresh != stale
        # the stale holder can no longer release or extend
        await strategy.release(resource, stale)
        assert not await strategy.extend(resource, stale, 10.0)
        assert len(await strategy.get_active_locks()) == 1
        await strategy.release(resource, fresh)

    @pytest.mark.asyncio
    async def test_waiter_gets_lock_after_release(self, strategy: ILockStrategy) -> None:
        resource = ResourceIdentifier.offer("O1")
        token = await strategy.acquire(resource, timeout=1.0)

        waiter = asyncio.create_task(strategy.acquire(resource, timeout=1.0))
        await asyncio.sleep(0)
        assert not waiter.done()

        await strategy.release(resource, token)
        token2 = await waiter
        await strategy.release(resource, token2)

    @pytest.mark.asyncio
    async def test_health_check(self, strategy: ILockStrategy) -> None:
        assert await strategy.health_check() is True


class TestCriticalSection:
    @pytest.mark.asyncio
    async def test_acquires_in_sorted_order_without_duplicates(self) -> None:
        strategy = RecordingLockStrategy()
        resources = [
            ResourceIdentifier.product("p1"),
            ResourceIdentifier.offer("O1"),
            ResourceIdentifier.product("p1"),
        ]

        async with CriticalSection(resources, strategy, timeout=1.0) as section:
            assert [str(r) for r in section.resources] == ["Offer:O1", "Product:p1"]

        assert strategy.acquired == ["Offer:O1", "Product:p1"]
        assert await strategy.get_active_locks() == []

    @pytest.mark.asyncio
    async def test_rolls_back_partial_acquisition(self) -> None:
        strategy = InMemoryLockStrategy()
        held = ResourceIdentifier.product("p1")
        token = await strategy.acquire(held, timeout=1.0)

        with pytest.raises(LockAcquisitionError):
            async with CriticalSection(
                [ResourceIdentifier.offer("O1"), held], strategy, timeout=0.05
            ):
                pytest.fail("critical section must not be entered")

        active = await strategy.get_active_locks()
        assert [(lock.resource_type, lock.resource_id) for lock in active] == [
            ("Product", "p1")
        ]
        await strategy.release(held, token)

    @pytest.mark.asyncio
    async def test_releases_on_error_inside_block(self) -> None:
        strategy = InMemoryLockStrategy()
        with pytest.raises(RuntimeError):
            async with CriticalSection(
                [ResourceIdentifier.offer("O1")], strategy, timeout=1.0
            ):
                raise RuntimeError("boom")
        assert await strategy.get_active_locks() == []


class TestEntityLocks:
    @pytest.mark.asyncio
    async def test_hold_skips_missing_resources(self) -> None:
        strategy = RecordingLockStrategy()
        locks = EntityLocks(strategy, timeout=1.0)

        async with locks.hold(ResourceIdentifier.offer("O1"), None):
            pass

        assert strategy.acquired == ["Offer:O1"]

    @pytest.mark.asyncio
    async def test_serializes_read_modify_write(self) -> None:
        locks = EntityLocks(InMemoryLockStrategy(), timeout=2.0)
        counter = {"value": 0}

        async def increment() -> None:
            async with locks.hold(ResourceIdentifier.product("p1")):
                current = counter["value"]
                await asyncio.sleep(0)
                counter["value"] = current + 1

        await asyncio.gather(*(increment() for _ in range(10)))
        assert counter["value"] == 10


class TestRunLease:
    @pytest.mark.asyncio
    async def test_overlapping_run_fails_fast(self) -> None:
        strategy = InMemoryLockStrategy()

        async with RunLease(strategy, "db_to_allegro") as lease:
            assert await lease.extend()
            with pytest.raises(SyncRunInProgressError) as exc_info:
                async with RunLease(strategy, "db_to_allegro"):
                    pass
            assert exc_info.value.sync_type == "db_to_allegro"

        # released on exit
        async with RunLease(strategy, "db_to_allegro"):
            pass

    @pytest.mark.asyncio
    async def test_different_sync_types_do_not_conflict(self) -> None:
        strategy = InMemoryLockStrategy()
        async with RunLease(strategy, "db_to_allegro"):
            async with RunLease(strategy, "allegro_to_db"):
                assert len(await strategy.get_active_locks()) == 2
