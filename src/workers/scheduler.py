"""
Background Trip Scheduler
=========================

Runs every ``SCHEDULER_INTERVAL_SECONDS`` (default 60 s).

Concurrency safety
------------------
* A cluster-wide ``trip_scheduler`` lock, taken without waiting, ensures
  only one instance runs a cycle at a time across multiple API processes.
* Each trip is dispatched through ``TripLifecycleManager``, so the usual
  ``trip:<id>`` / ``driver:<id>`` locks protect it from concurrent API
  requests.

Algorithm per cycle
-------------------
1. Fetch SCHEDULED trips whose ``scheduled_at`` is within the lookahead.
2. Skip trips without pickup coordinates (logged).
3. Dispatch each remaining trip to the best nearby driver; a failure on
   one trip is logged and the cycle moves on.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from src.config import settings
from src.domain.enums import TripStatus
from src.domain.errors import CabBookingError
from src.domain.lifecycle import utcnow
from src.infrastructure.database import async_session_factory
from src.infrastructure.locks import LockTimeout, build_lock_provider
from src.infrastructure.repositories import TripRepository
from src.services.trips import TripLifecycleManager

logger = logging.getLogger(__name__)

GUARD_LOCK = "trip_scheduler"

_task: asyncio.Task | None = None
_stop_event: asyncio.Event | None = None


# ── Public API ────────────────────────────────────────────────────────


async def start_scheduler_loop(locks=None) -> None:
    global _task, _stop_event
    _stop_event = asyncio.Event()
    _task = asyncio.create_task(_loop(locks))
    logger.info(
        "Trip scheduler started (interval=%ds)", settings.scheduler_interval_seconds
    )


async def stop_scheduler_loop() -> None:
    if _stop_event:
        _stop_event.set()
    if _task:
        _task.cancel()
        try:
            await _task
        except asyncio.CancelledError:
            pass
    logger.info("Trip scheduler stopped")


# ── Internals ─────────────────────────────────────────────────────────


async def _loop(locks) -> None:
    """Periodic loop: run a scheduling cycle then sleep."""
    assert _stop_event is not None
    while not _stop_event.is_set():
        try:
            await run_scheduling_cycle(locks=locks)
        except Exception:
            logger.exception("Unhandled error in scheduling cycle")
        try:
            await asyncio.wait_for(
                _stop_event.wait(), timeout=settings.scheduler_interval_seconds
            )
            break
        except asyncio.TimeoutError:
            pass


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


async def run_scheduling_cycle(
    session_factory=async_session_factory,
    locks=None,
    now: Optional[datetime] = None,
) -> int:
    """Execute one scheduling cycle.  Returns the number of trips dispatched."""
    if locks is None:
        locks = build_lock_provider(settings)
    now = now or utcnow()
    horizon = now + timedelta(minutes=settings.scheduler_lookahead_minutes)

    try:
        async with locks.hold(GUARD_LOCK, wait=0):
            return await _dispatch_due_trips(session_factory, locks, horizon)
    except LockTimeout:
        logger.debug("Lock held by another worker - skipping cycle")
        return 0


async def _dispatch_due_trips(session_factory, locks, horizon: datetime) -> int:
    dispatched = 0
    async with session_factory() as session:
        scheduled = await TripRepository(session).list_by_status(TripStatus.SCHEDULED)
        # plain values: a rollback below expires the ORM rows
        due = [
            (trip.id, trip.from_latitude, trip.from_longitude)
            for trip in scheduled
            if trip.scheduled_at is None or _as_utc(trip.scheduled_at) <= horizon
        ]
        await session.commit()

        manager = TripLifecycleManager(session, locks)
        for trip_id, lat, lng in due:
            if lat is None or lng is None:
                logger.warning("Trip %s has no pickup coordinates - skipped", trip_id)
                continue
            try:
                await manager.dispatch(trip_id)
                dispatched += 1
            except (CabBookingError, LockTimeout) as exc:
                await session.rollback()
                logger.warning("Could not dispatch trip %s: %s", trip_id, exc)

    if dispatched:
        logger.info("Scheduling cycle: %d trips dispatched", dispatched)
    return dispatched
