"""
Concurrency safety tests.

Demonstrates:
1. Concurrent ``assign`` calls on one trip yield exactly one success.
2. One driver raced onto two trips is reserved exactly once.
3. The in-process lock provider serialises holders and fails fast on demand.
4. Distributed lock prevents simultaneous acquire (mocked Redis).
"""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest

from src.domain.enums import TripStatus
from src.domain.errors import InvalidStateError, UnavailableError
from src.infrastructure.locks import (
    DistributedLock,
    LocalLockProvider,
    LockTimeout,
    RedisLockProvider,
    trip_key,
)
from src.infrastructure.models import TripModel, UserModel
from src.services.trips import TripLifecycleManager


async def _assign_in_own_session(session_factory, locks, trip_id, driver_id):
    async with session_factory() as session:
        manager = TripLifecycleManager(session, locks)
        try:
            await manager.assign(trip_id, driver_id)
            return "ok"
        except (InvalidStateError, UnavailableError) as exc:
            await session.rollback()
            return type(exc)


class TestTripAssignmentRaces:
    @pytest.mark.asyncio
    async def test_two_drivers_racing_for_one_trip(self, factory, session_factory, locks):
        customer = await factory.customer()
        first, _ = await factory.driver()
        second, _ = await factory.driver()
        trip = await factory.trip(customer)

        results = await asyncio.gather(
            _assign_in_own_session(session_factory, locks, trip.id, first.id),
            _assign_in_own_session(session_factory, locks, trip.id, second.id),
        )

        assert results.count("ok") == 1
        assert results.count(InvalidStateError) == 1
        async with session_factory() as session:
            stored = await session.get(TripModel, trip.id)
            assert stored.status == TripStatus.CONFIRMED
            winner = await session.get(UserModel, stored.driver_id)
            loser_id = second.id if winner.id == first.id else first.id
            loser = await session.get(UserModel, loser_id)
            assert winner.is_available is False
            assert loser.is_available is True

    @pytest.mark.asyncio
    async def test_one_driver_racing_onto_two_trips(self, factory, session_factory, locks):
        customer = await factory.customer()
        driver, _ = await factory.driver()
        trip_a = await factory.trip(customer)
        trip_b = await factory.trip(customer)

        results = await asyncio.gather(
            _assign_in_own_session(session_factory, locks, trip_a.id, driver.id),
            _assign_in_own_session(session_factory, locks, trip_b.id, driver.id),
        )

        assert results.count("ok") == 1
        assert results.count(UnavailableError) == 1
        async with session_factory() as session:
            statuses = sorted(
                [
                    (await session.get(TripModel, trip_a.id)).status.value,
                    (await session.get(TripModel, trip_b.id)).status.value,
                ]
            )
            assert statuses == ["CONFIRMED", "SCHEDULED"]


class TestLocalLockProvider:
    @pytest.mark.asyncio
    async def test_holders_are_serialised(self):
        locks = LocalLockProvider()
        order: list[str] = []

        async def worker(name: str):
            async with locks.hold(trip_key(1)):
                order.append(f"{name}-in")
                await asyncio.sleep(0.01)
                order.append(f"{name}-out")

        await asyncio.gather(worker("a"), worker("b"))
        assert order in (
            ["a-in", "a-out", "b-in", "b-out"],
            ["b-in", "b-out", "a-in", "a-out"],
        )

    @pytest.mark.asyncio
    async def test_zero_wait_fails_fast_when_held(self):
        locks = LocalLockProvider()
        async with locks.hold("trip_scheduler"):
            assert locks.is_held("trip_scheduler")
            with pytest.raises(LockTimeout):
                async with locks.hold("trip_scheduler", wait=0):
                    pass
        assert not locks.is_held("trip_scheduler")

    @pytest.mark.asyncio
    async def test_wait_timeout_raises(self):
        locks = LocalLockProvider(wait_seconds=0.05)
        async with locks.hold("driver:1"):
            with pytest.raises(LockTimeout):
                async with locks.hold("driver:1"):
                    pass

    @pytest.mark.asyncio
    async def test_locks_are_dropped_after_release(self):
        locks = LocalLockProvider()
        async with locks.hold("trip:1", "driver:1"):
            pass
        assert locks._locks == {}


class TestDistributedLock:
    """Tests the Redis distributed lock logic (mocked Redis)."""

    @pytest.mark.asyncio
    async def test_acquire_succeeds(self):
        mock_redis = AsyncMock()
        mock_redis.set = AsyncMock(return_value=True)

        lock = DistributedLock(mock_redis, "trip:1", ttl_seconds=10)
        assert await lock.acquire() is True
        mock_redis.set.assert_awaited_once_with(
            "lock:trip:1", lock.token, nx=True, ex=10
        )

    @pytest.mark.asyncio
    async def test_acquire_fails_if_held(self):
        mock_redis = AsyncMock()
        mock_redis.set = AsyncMock(return_value=False)

        lock = DistributedLock(mock_redis, "trip:1", ttl_seconds=10)
        assert await lock.acquire() is False

    @pytest.mark.asyncio
    async def test_acquire_polls_until_free(self):
        mock_redis = AsyncMock()
        mock_redis.set = AsyncMock(side_effect=[False, False, True])

        lock = DistributedLock(mock_redis, "trip:1", ttl_seconds=10)
        assert await lock.acquire(wait_seconds=1.0) is True
        assert mock_redis.set.await_count == 3

    @pytest.mark.asyncio
    async def test_release_calls_eval(self):
        mock_redis = AsyncMock()
        mock_redis.set = AsyncMock(return_value=True)
        mock_redis.eval = AsyncMock(return_value=1)

        lock = DistributedLock(mock_redis, "trip:1", ttl_seconds=10)
        await lock.acquire()
        await lock.release()

        mock_redis.eval.assert_called_once()

    @pytest.mark.asyncio
    async def test_context_manager_acquire_fail_raises(self):
        mock_redis = AsyncMock()
        mock_redis.set = AsyncMock(return_value=False)

        lock = DistributedLock(mock_redis, "trip:1", ttl_seconds=10)
        with pytest.raises(LockTimeout, match="Could not acquire lock"):
            async with lock:
                pass

    @pytest.mark.asyncio
    async def test_provider_releases_in_reverse_order(self):
        mock_redis = AsyncMock()
        mock_redis.set = AsyncMock(return_value=True)
        mock_redis.eval = AsyncMock(return_value=1)

        locks = RedisLockProvider(mock_redis, ttl_seconds=10, wait_seconds=0)
        async with locks.hold("trip:1", "driver:2"):
            pass

        released = [call.args[2] for call in mock_redis.eval.await_args_list]
        assert released == ["lock:driver:2", "lock:trip:1"]

    @pytest.mark.asyncio
    async def test_provider_raises_lock_timeout(self):
        mock_redis = AsyncMock()
        mock_redis.set = AsyncMock(return_value=False)

        locks = RedisLockProvider(mock_redis, ttl_seconds=10, wait_seconds=0)
        with pytest.raises(LockTimeout):
            async with locks.hold("trip:1"):
                pass
