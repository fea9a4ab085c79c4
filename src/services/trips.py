"""
Trip Lifecycle Manager
======================

Application service that loads trips, drivers and cabs through the
repositories, applies the state machine in ``src.domain.lifecycle`` and
commits.

Concurrency safety
------------------
* Every transition holds the ``trip:<id>`` lock from the first read of the
  trip until after the commit, so concurrent ``assign`` / ``cancel`` /
  ``complete`` calls on one trip are serialised.
* Transitions that touch a driver additionally hold ``driver:<id>``,
  always taken *after* the trip lock.  This keeps two trips from reserving
  the same driver and keeps availability flags consistent with trip
  status.
* Rows are read with ``SELECT ... FOR UPDATE`` so the same guarantees hold
  at the database level when several API processes share PostgreSQL.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager, nullcontext
from datetime import date, datetime, time, timedelta, timezone
from typing import AsyncIterator, Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from src.config import settings
from src.domain import lifecycle
from src.domain.dispatch import rank_drivers
from src.domain.enums import Role, TripStatus
from src.domain.errors import (
    NotFoundError,
    PermissionDeniedError,
    UnavailableError,
    ValidationError,
)
from src.infrastructure.locks import driver_key, trip_key
from src.infrastructure.models import TripModel, UserModel
from src.infrastructure.repositories import (
    CabRepository,
    TripRepository,
    UserRepository,
)

logger = logging.getLogger(__name__)


class TripLifecycleManager:
    def __init__(
        self,
        session: AsyncSession,
        locks,
        *,
        clock: Callable[[], datetime] = lifecycle.utcnow,
        radius_km: Optional[float] = None,
        h3_resolution: Optional[int] = None,
    ):
        self.session = session
        self.locks = locks
        self.clock = clock
        self.radius_km = settings.nearby_radius_km if radius_km is None else radius_km
        self.h3_resolution = (
            settings.h3_resolution if h3_resolution is None else h3_resolution
        )
        self.trips = TripRepository(session)
        self.users = UserRepository(session)
        self.cabs = CabRepository(session)

    # ── Queries ───────────────────────────────────────────────────────

    async def get(self, trip_id: int, actor: Optional[UserModel] = None) -> TripModel:
        trip = await self.trips.get_by_id(trip_id)
        if trip is None:
            raise NotFoundError(f"Trip {trip_id} not found")
        _check_actor(trip, actor)
        return trip

    async def for_customer(self, customer_id: int) -> list[TripModel]:
        return await self.trips.list_by_customer(customer_id)

    async def for_driver(self, driver_id: int) -> list[TripModel]:
        return await self.trips.list_by_driver(driver_id)

    async def for_cab(self, cab_id: int) -> list[TripModel]:
        return await self.trips.list_by_cab(cab_id)

    async def on_date(self, day: date) -> list[TripModel]:
        """Trips whose ``from_date_time`` falls on *day* (UTC)."""
        start = datetime.combine(day, time.min, tzinfo=timezone.utc)
        return await self.trips.list_started_between(start, start + timedelta(days=1))

    # ── Transitions ───────────────────────────────────────────────────

    async def create(
        self,
        customer_id: int,
        pickup: str,
        dropoff: str,
        car_type: Optional[str],
        pickup_coordinates: Optional[tuple[float, float]] = None,
        scheduled_at: Optional[datetime] = None,
    ) -> TripModel:
        if not pickup or not pickup.strip():
            raise ValidationError("Pickup location is required")
        if not dropoff or not dropoff.strip():
            raise ValidationError("Dropoff location is required")

        customer = await self.users.get_with_role(customer_id, Role.CUSTOMER)
        if customer is None:
            raise NotFoundError(f"Customer {customer_id} not found")

        lat, lng = pickup_coordinates if pickup_coordinates else (None, None)
        trip = await self.trips.create(
            TripModel(
                customer_id=customer_id,
                from_location=pickup.strip(),
                to_location=dropoff.strip(),
                from_latitude=lat,
                from_longitude=lng,
                car_type=car_type,
                scheduled_at=scheduled_at or self.clock(),
                status=TripStatus.SCHEDULED,
            )
        )
        await self.session.commit()
        logger.info(
            "Trip %s scheduled for customer %s (%s -> %s, car_type=%s)",
            trip.id, customer_id, trip.from_location, trip.to_location, car_type,
        )
        return trip

    async def assign(
        self, trip_id: int, driver_id: int, actor: Optional[UserModel] = None
    ) -> TripModel:
        async with self._locked_trip(trip_id, actor) as trip:
            await self._assign_locked(trip, driver_id)
        return trip

    async def dispatch(self, trip_id: int, actor: Optional[UserModel] = None) -> TripModel:
        """Assign the best eligible driver to a scheduled trip."""
        async with self._locked_trip(trip_id, actor) as trip:
            lifecycle.require_transition(trip, TripStatus.CONFIRMED, "dispatch")
            origin = None
            if trip.from_latitude is not None and trip.from_longitude is not None:
                origin = (trip.from_latitude, trip.from_longitude)

            ranked = rank_drivers(
                await self.users.list_dispatch_candidates(),
                car_type=trip.car_type,
                origin=origin,
                radius_km=self.radius_km,
                resolution=self.h3_resolution,
            )
            for driver, _ in ranked:
                try:
                    await self._assign_locked(trip, driver.id)
                except UnavailableError as exc:
                    logger.info("Trip %s: skipping driver %s (%s)", trip.id, driver.id, exc)
                    continue
                break
            else:
                raise UnavailableError("No drivers are available at the moment")
        return trip

    async def start(self, trip_id: int, actor: Optional[UserModel] = None) -> TripModel:
        async with self._locked_trip(trip_id, actor) as trip:
            lifecycle.start(trip, self.clock())
            await self.session.commit()
        logger.info("Trip %s started by driver %s", trip.id, trip.driver_id)
        return trip

    async def complete(
        self,
        trip_id: int,
        distance_in_km: float,
        actor: Optional[UserModel] = None,
    ) -> TripModel:
        async with self._locked_trip(trip_id, actor) as trip:
            lifecycle.require_transition(trip, TripStatus.COMPLETED, "complete")
            async with self._driver_scope(trip.driver_id):
                driver, cab = await self._assignment(trip)
                lifecycle.complete(trip, driver, cab, distance_in_km, self.clock())
                await self.session.commit()
        logger.info(
            "Trip %s completed: %.2f km, bill=%.2f", trip.id, trip.distance_in_km, trip.bill
        )
        return trip

    async def cancel(self, trip_id: int, actor: Optional[UserModel] = None) -> TripModel:
        async with self._locked_trip(trip_id, actor) as trip:
            lifecycle.require_transition(trip, TripStatus.CANCELLED, "cancel")
            async with self._driver_scope(trip.driver_id):
                driver, cab = await self._assignment(trip)
                lifecycle.cancel(trip, driver, cab)
                await self.session.commit()
        logger.info("Trip %s cancelled", trip.id)
        return trip

    async def rate(
        self, trip_id: int, rating: int, actor: Optional[UserModel] = None
    ) -> TripModel:
        lifecycle.validate_rating(rating)
        async with self._locked_trip(trip_id, actor) as trip:
            async with self._driver_scope(trip.driver_id):
                driver, _ = await self._assignment(trip)
                lifecycle.rate(trip, driver, rating)
                await self.session.commit()
        logger.info(
            "Trip %s rated %d; driver %s now %.3f over %d ratings",
            trip.id, rating, driver.id, driver.rating, driver.total_ratings,
        )
        return trip

    # ── Internals ─────────────────────────────────────────────────────

    @asynccontextmanager
    async def _locked_trip(
        self, trip_id: int, actor: Optional[UserModel]
    ) -> AsyncIterator[TripModel]:
        async with self.locks.hold(trip_key(trip_id)):
            trip = await self.trips.get_for_update(trip_id)
            if trip is None:
                raise NotFoundError(f"Trip {trip_id} not found")
            _check_actor(trip, actor)
            yield trip

    def _driver_scope(self, driver_id: Optional[int]):
        if driver_id is None:
            return nullcontext()
        return self.locks.hold(driver_key(driver_id))

    async def _assignment(self, trip: TripModel):
        driver = None
        cab = None
        if trip.driver_id is not None:
            driver = await self.users.get_with_role(
                trip.driver_id, Role.DRIVER, for_update=True
            )
        if trip.cab_id is not None:
            cab = await self.cabs.get_for_update(trip.cab_id)
        return driver, cab

    async def _assign_locked(self, trip: TripModel, driver_id: int) -> None:
        lifecycle.require_transition(trip, TripStatus.CONFIRMED, "assign")
        async with self.locks.hold(driver_key(driver_id)):
            driver = await self.users.get_with_role(
                driver_id, Role.DRIVER, for_update=True
            )
            if driver is None:
                raise NotFoundError(f"Driver {driver_id} not found")
            cab = await self.cabs.get_by_driver_id(driver_id, for_update=True)
            lifecycle.assign(trip, driver, cab)
            await self.session.commit()
        logger.info(
            "Trip %s confirmed with driver %s and cab %s",
            trip.id, trip.driver_id, trip.cab_id,
        )


def _check_actor(trip: TripModel, actor: Optional[UserModel]) -> None:
    """Customers act on their own trips, drivers on trips assigned to them."""
    if actor is None or actor.role == Role.ADMIN:
        return
    if actor.role == Role.CUSTOMER and trip.customer_id == actor.id:
        return
    if actor.role == Role.DRIVER and trip.driver_id == actor.id:
        return
    raise PermissionDeniedError(f"Trip {trip.id} does not belong to {actor.username}")
