"""
Named mutual-exclusion scopes for trip transitions.

Every lifecycle transition runs inside ``locks.hold("trip:<id>")`` and,
when it touches a driver, a nested ``locks.hold("driver:<id>")``.  Trip
locks are always taken before driver locks, so two transitions can never
wait on each other in a cycle.

Two backends share the ``hold`` interface:

* ``LocalLockProvider`` -- one ``asyncio.Lock`` per name, for a single API
  process.  Locks are dropped once no coroutine holds or waits on them.
* ``RedisLockProvider`` -- ``DistributedLock`` per name, for several API
  processes.  Acquire is SET NX EX polled until ``wait_seconds`` runs out;
  release is a Lua check-and-delete so a lock whose TTL expired is never
  deleted on behalf of its new owner.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from contextlib import AsyncExitStack, asynccontextmanager
from typing import AsyncIterator, Optional

import redis.asyncio as aioredis

POLL_INTERVAL_SECONDS = 0.05


class LockTimeout(RuntimeError):
    """Raised when a named lock cannot be acquired within the wait budget."""


def trip_key(trip_id: int) -> str:
    return f"trip:{trip_id}"


def driver_key(driver_id: int) -> str:
    return f"driver:{driver_id}"


class DistributedLock:
    def __init__(
        self, client: aioredis.Redis, key: str, ttl_seconds: int = 30
    ):
        self.redis = client
        self.key = f"lock:{key}"
        self.ttl = ttl_seconds
        self.token = str(uuid.uuid4())

    async def acquire(self, wait_seconds: float = 0.0) -> bool:
        """Try to acquire, polling for up to *wait_seconds*.  True on success."""
        deadline = time.monotonic() + wait_seconds
        while True:
            if await self.redis.set(self.key, self.token, nx=True, ex=self.ttl):
                return True
            if time.monotonic() >= deadline:
                return False
            await asyncio.sleep(POLL_INTERVAL_SECONDS)

    async def release(self) -> None:
        """Release only if we still own the lock (atomic via Lua)."""
        lua = """
        if redis.call("get", KEYS[1]) == ARGV[1] then
            return redis.call("del", KEYS[1])
        else
            return 0
        end
        """
        await self.redis.eval(lua, 1, self.key, self.token)

    async def __aenter__(self):
        acquired = await self.acquire()
        if not acquired:
            raise LockTimeout(f"Could not acquire lock: {self.key}")
        return self

    async def __aexit__(self, *args):
        await self.release()


class LocalLockProvider:
    def __init__(self, wait_seconds: Optional[float] = None):
        self.wait_seconds = wait_seconds
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    def _checkout(self, key: str) -> asyncio.Lock:
        self._users[key] = self._users.get(key, 0) + 1
        return self._locks.setdefault(key, asyncio.Lock())

    def _checkin(self, key: str) -> None:
        self._users[key] -= 1
        if self._users[key] == 0:
            del self._users[key]
            del self._locks[key]

    async def _acquire(self, key: str, wait: Optional[float]) -> None:
        lock = self._checkout(key)
        try:
            if wait is None:
                await lock.acquire()
            elif wait <= 0:
                if lock.locked():
                    raise LockTimeout(f"Could not acquire lock: {key}")
                await lock.acquire()
            else:
                await asyncio.wait_for(lock.acquire(), timeout=wait)
        except asyncio.TimeoutError:
            self._checkin(key)
            raise LockTimeout(f"Could not acquire lock: {key}") from None
        except BaseException:
            self._checkin(key)
            raise

    def _release(self, key: str) -> None:
        self._locks[key].release()
        self._checkin(key)

    @asynccontextmanager
    async def hold(self, *keys: str, wait: Optional[float] = None) -> AsyncIterator[None]:
        """Hold every lock in *keys*, acquired in the given order."""
        wait = self.wait_seconds if wait is None else wait
        held: list[str] = []
        try:
            for key in keys:
                await self._acquire(key, wait)
                held.append(key)
            yield
        finally:
            for key in reversed(held):
                self._release(key)

    def is_held(self, key: str) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()


class RedisLockProvider:
    def __init__(
        self,
        client: aioredis.Redis,
        ttl_seconds: int = 30,
        wait_seconds: float = 5.0,
    ):
        self.redis = client
        self.ttl_seconds = ttl_seconds
        self.wait_seconds = wait_seconds

    @asynccontextmanager
    async def hold(self, *keys: str, wait: Optional[float] = None) -> AsyncIterator[None]:
        wait = self.wait_seconds if wait is None else wait
        async with AsyncExitStack() as stack:
            for key in keys:
                lock = DistributedLock(self.redis, key, ttl_seconds=self.ttl_seconds)
                if not await lock.acquire(wait_seconds=wait):
                    raise LockTimeout(f"Could not acquire lock: {lock.key}")
                stack.push_async_callback(lock.release)
            yield


def build_lock_provider(settings, redis_client: Optional[aioredis.Redis] = None):
    """Pick the lock backend named by ``settings.lock_backend``."""
    if settings.lock_backend == "redis":
        if redis_client is None:
            from .redis_client import get_redis_client

            redis_client = get_redis_client()
        return RedisLockProvider(
            redis_client,
            ttl_seconds=settings.lock_ttl_seconds,
            wait_seconds=settings.lock_wait_seconds,
        )
    if settings.lock_backend == "memory":
        return LocalLockProvider(wait_seconds=settings.lock_wait_seconds)
    raise ValueError(f"Unknown lock backend: {settings.lock_backend!r}")
