"""Trip Lifecycle Manager against a real (SQLite) database."""

from datetime import date, datetime, timezone

import pytest

from src.domain.enums import TripStatus
from src.domain.errors import (
    InvalidStateError,
    NotFoundError,
    PermissionDeniedError,
    UnavailableError,
    ValidationError,
)
from src.infrastructure.models import UserModel
from src.services.trips import TripLifecycleManager

NOW = datetime(2024, 5, 1, 9, 30, tzinfo=timezone.utc)
AIRPORT = (19.0896, 72.8656)


@pytest.fixture
def manager(db_session, locks):
    return TripLifecycleManager(db_session, locks, clock=lambda: NOW)


class TestCreate:
    @pytest.mark.asyncio
    async def test_new_trip_is_scheduled_and_unassigned(self, manager, factory):
        customer = await factory.customer()
        trip = await manager.create(customer.id, "Airport", "Andheri", "Sedan")

        assert trip.id is not None
        assert trip.status == TripStatus.SCHEDULED
        assert trip.driver_id is None and trip.cab_id is None
        assert trip.scheduled_at == NOW

    @pytest.mark.asyncio
    async def test_pickup_coordinates_are_stored(self, manager, factory):
        customer = await factory.customer()
        trip = await manager.create(
            customer.id, "Airport", "Andheri", None, pickup_coordinates=AIRPORT
        )
        assert (trip.from_latitude, trip.from_longitude) == AIRPORT

    @pytest.mark.asyncio
    async def test_unknown_customer(self, manager):
        with pytest.raises(NotFoundError):
            await manager.create(999, "Airport", "Andheri", "Sedan")

    @pytest.mark.asyncio
    async def test_driver_cannot_be_the_customer(self, manager, factory):
        driver, _ = await factory.driver()
        with pytest.raises(NotFoundError):
            await manager.create(driver.id, "Airport", "Andheri", "Sedan")

    @pytest.mark.asyncio
    async def test_blank_locations_rejected(self, manager, factory):
        customer = await factory.customer()
        with pytest.raises(ValidationError):
            await manager.create(customer.id, "  ", "Andheri", "Sedan")


class TestFullLifecycle:
    @pytest.mark.asyncio
    async def test_book_assign_start_complete_rate(self, manager, factory, db_session):
        customer = await factory.customer()
        driver, cab = await factory.driver(rating=4.5, total_ratings=10, per_km_rate=15.0)
        trip = await manager.create(customer.id, "Airport", "Andheri", "Sedan")

        trip = await manager.assign(trip.id, driver.id)
        assert trip.status == TripStatus.CONFIRMED
        assert (trip.driver_id, trip.cab_id) == (driver.id, cab.id)
        await db_session.refresh(driver)
        await db_session.refresh(cab)
        assert driver.is_available is False and cab.is_available is False

        trip = await manager.start(trip.id)
        assert trip.status == TripStatus.IN_PROGRESS

        trip = await manager.complete(trip.id, 10.0)
        assert trip.status == TripStatus.COMPLETED
        assert trip.bill == 150.0
        await db_session.refresh(driver)
        await db_session.refresh(cab)
        assert driver.is_available is True and cab.is_available is True

        trip = await manager.rate(trip.id, 5)
        await db_session.refresh(driver)
        assert trip.customer_rating == 5
        assert driver.total_ratings == 11
        assert driver.rating == pytest.approx((4.5 * 10 + 5) / 11)

    @pytest.mark.asyncio
    async def test_assign_confirmed_trip_fails(self, manager, factory):
        customer = await factory.customer()
        first, _ = await factory.driver()
        second, _ = await factory.driver()
        trip = await manager.create(customer.id, "Airport", "Andheri", "Sedan")
        await manager.assign(trip.id, first.id)

        with pytest.raises(InvalidStateError):
            await manager.assign(trip.id, second.id)

    @pytest.mark.asyncio
    async def test_assign_busy_driver_fails(self, manager, factory):
        customer = await factory.customer()
        driver, _ = await factory.driver(available=False)
        trip = await manager.create(customer.id, "Airport", "Andheri", "Sedan")
        with pytest.raises(UnavailableError):
            await manager.assign(trip.id, driver.id)

    @pytest.mark.asyncio
    async def test_assign_driver_without_cab_fails(self, manager, factory):
        customer = await factory.customer()
        driver, _ = await factory.driver(car_type=None)
        trip = await manager.create(customer.id, "Airport", "Andheri", "Sedan")
        with pytest.raises(UnavailableError):
            await manager.assign(trip.id, driver.id)

    @pytest.mark.asyncio
    async def test_assign_unknown_driver(self, manager, factory):
        customer = await factory.customer()
        trip = await manager.create(customer.id, "Airport", "Andheri", "Sedan")
        with pytest.raises(NotFoundError):
            await manager.assign(trip.id, 4242)

    @pytest.mark.asyncio
    async def test_unknown_trip(self, manager):
        with pytest.raises(NotFoundError):
            await manager.start(4242)

    @pytest.mark.asyncio
    async def test_cancel_confirmed_trip_frees_driver(self, manager, factory, db_session):
        customer = await factory.customer()
        driver, cab = await factory.driver()
        trip = await manager.create(customer.id, "Airport", "Andheri", "Sedan")
        await manager.assign(trip.id, driver.id)

        trip = await manager.cancel(trip.id)

        assert trip.status == TripStatus.CANCELLED
        await db_session.refresh(driver)
        await db_session.refresh(cab)
        assert driver.is_available and cab.is_available

    @pytest.mark.asyncio
    async def test_cancel_in_progress_trip_fails(self, manager, factory):
        customer = await factory.customer()
        driver, _ = await factory.driver()
        trip = await manager.create(customer.id, "Airport", "Andheri", "Sedan")
        await manager.assign(trip.id, driver.id)
        await manager.start(trip.id)

        with pytest.raises(InvalidStateError):
            await manager.cancel(trip.id)

    @pytest.mark.asyncio
    async def test_negative_distance_leaves_trip_in_progress(self, manager, factory):
        customer = await factory.customer()
        driver, _ = await factory.driver()
        trip = await manager.create(customer.id, "Airport", "Andheri", "Sedan")
        await manager.assign(trip.id, driver.id)
        await manager.start(trip.id)

        with pytest.raises(ValidationError):
            await manager.complete(trip.id, -3.0)
        assert (await manager.get(trip.id)).status == TripStatus.IN_PROGRESS

    @pytest.mark.asyncio
    async def test_nan_distance_leaves_trip_unbilled(self, manager, factory):
        customer = await factory.customer()
        driver, _ = await factory.driver()
        trip = await manager.create(customer.id, "Airport", "Andheri", "Sedan")
        await manager.assign(trip.id, driver.id)
        await manager.start(trip.id)

        with pytest.raises(ValidationError):
            await manager.complete(trip.id, float("nan"))
        stored = await manager.get(trip.id)
        assert stored.status == TripStatus.IN_PROGRESS
        assert stored.bill is None

    @pytest.mark.asyncio
    async def test_rate_out_of_range(self, manager, factory):
        customer = await factory.customer()
        trip = await factory.trip(customer)
        with pytest.raises(ValidationError):
            await manager.rate(trip.id, 6)

    @pytest.mark.asyncio
    async def test_rate_twice_rejected(self, manager, factory):
        customer = await factory.customer()
        driver, cab = await factory.driver()
        trip = await factory.trip(
            customer, status=TripStatus.COMPLETED, driver_id=driver.id, cab_id=cab.id
        )
        await manager.rate(trip.id, 4)
        with pytest.raises(InvalidStateError):
            await manager.rate(trip.id, 5)


class TestDispatch:
    @pytest.mark.asyncio
    async def test_picks_best_nearby_driver(self, manager, factory):
        customer = await factory.customer()
        await factory.driver(rating=4.2, location=(19.0900, 72.8660))
        best, _ = await factory.driver(rating=4.8, location=(19.0880, 72.8640))
        await factory.driver(rating=5.0, location=(19.2183, 72.9781))  # too far
        await factory.driver(rating=5.0, location=(19.0890, 72.8650), car_type="SUV")
        trip = await factory.trip(customer, pickup=AIRPORT)

        trip = await manager.dispatch(trip.id)

        assert trip.status == TripStatus.CONFIRMED
        assert trip.driver_id == best.id

    @pytest.mark.asyncio
    async def test_no_driver_available(self, manager, factory):
        customer = await factory.customer()
        await factory.driver(available=False, location=AIRPORT)
        trip = await factory.trip(customer, pickup=AIRPORT)
        with pytest.raises(UnavailableError):
            await manager.dispatch(trip.id)

    @pytest.mark.asyncio
    async def test_driver_taken_meanwhile_falls_through_to_next(
        self, manager, factory, db_session, session_factory, monkeypatch
    ):
        customer = await factory.customer()
        best, _ = await factory.driver(rating=4.9, location=AIRPORT)
        runner_up, _ = await factory.driver(rating=4.1, location=AIRPORT)
        trip = await factory.trip(customer, pickup=AIRPORT)

        snapshot = await manager.users.list_dispatch_candidates()
        await db_session.commit()
        async with session_factory() as other:
            taken = await other.get(UserModel, best.id)
            taken.is_available = False
            await other.commit()

        async def stale_candidates():
            return snapshot

        monkeypatch.setattr(manager.users, "list_dispatch_candidates", stale_candidates)

        trip = await manager.dispatch(trip.id)

        assert trip.status == TripStatus.CONFIRMED
        assert trip.driver_id == runner_up.id

    @pytest.mark.asyncio
    async def test_dispatch_requires_scheduled(self, manager, factory):
        customer = await factory.customer()
        trip = await factory.trip(customer, status=TripStatus.CANCELLED)
        with pytest.raises(InvalidStateError):
            await manager.dispatch(trip.id)


class TestActors:
    @pytest.mark.asyncio
    async def test_customer_cannot_touch_foreign_trip(self, manager, factory):
        owner = await factory.customer()
        other = await factory.customer()
        trip = await factory.trip(owner)
        with pytest.raises(PermissionDeniedError):
            await manager.cancel(trip.id, actor=other)

    @pytest.mark.asyncio
    async def test_driver_can_only_start_own_trip(self, manager, factory):
        customer = await factory.customer()
        assigned, _ = await factory.driver()
        stranger, _ = await factory.driver()
        trip = await factory.trip(customer)
        await manager.assign(trip.id, assigned.id)

        with pytest.raises(PermissionDeniedError):
            await manager.start(trip.id, actor=stranger)
        trip = await manager.start(trip.id, actor=assigned)
        assert trip.status == TripStatus.IN_PROGRESS

    @pytest.mark.asyncio
    async def test_admin_may_act_on_any_trip(self, manager, factory):
        customer = await factory.customer()
        admin = await factory.admin()
        trip = await factory.trip(customer)
        trip = await manager.cancel(trip.id, actor=admin)
        assert trip.status == TripStatus.CANCELLED


class TestQueries:
    @pytest.mark.asyncio
    async def test_history_by_customer_driver_and_cab(self, manager, factory):
        alice = await factory.customer()
        bob = await factory.customer()
        driver, cab = await factory.driver()
        t1 = await factory.trip(alice)
        await factory.trip(bob)
        await manager.assign(t1.id, driver.id)

        assert [t.id for t in await manager.for_customer(alice.id)] == [t1.id]
        assert [t.id for t in await manager.for_driver(driver.id)] == [t1.id]
        assert [t.id for t in await manager.for_cab(cab.id)] == [t1.id]

    @pytest.mark.asyncio
    async def test_trips_on_date(self, manager, factory):
        customer = await factory.customer()
        driver, _ = await factory.driver()
        trip = await factory.trip(customer)
        await manager.assign(trip.id, driver.id)
        await manager.start(trip.id)

        assert [t.id for t in await manager.on_date(date(2024, 5, 1))] == [trip.id]
        assert await manager.on_date(date(2024, 5, 2)) == []
