"""Cab registration, driver/cab links, cab listings and fare estimates."""

from __future__ import annotations

import logging
from contextlib import nullcontext
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from src.config import settings
from src.domain.dispatch import nearby
from src.domain.enums import Role
from src.domain.lifecycle import validate_amount
from src.domain.errors import ConflictError, NotFoundError, ValidationError
from src.domain.pricing import FareEstimate, estimate_fares
from src.infrastructure.locks import driver_key
from src.infrastructure.models import CabModel
from src.infrastructure.repositories import CabRepository, UserRepository

logger = logging.getLogger(__name__)


class CabService:
    def __init__(self, session: AsyncSession, locks=None):
        self.session = session
        self.locks = locks
        self.cabs = CabRepository(session)
        self.users = UserRepository(session)

    async def get(self, cab_id: int) -> CabModel:
        cab = await self.cabs.get_by_id(cab_id)
        if cab is None:
            raise NotFoundError(f"Cab {cab_id} not found")
        return cab

    async def list_all(self) -> list[CabModel]:
        return await self.cabs.list_all()

    async def list_available(self) -> list[CabModel]:
        return await self.cabs.list_available()

    async def list_by_car_type(self, car_type: str) -> list[CabModel]:
        return await self.cabs.list_by_car_type(car_type)

    async def upsert_driver_cab(
        self,
        driver_id: int,
        car_type: str,
        per_km_rate: float,
        number_plate: Optional[str] = None,
    ) -> CabModel:
        """Create or update the cab driven by *driver_id*."""
        validate_amount(per_km_rate, "per_km_rate")
        if not car_type or not car_type.strip():
            raise ValidationError("car_type is required")

        driver = await self.users.get_with_role(driver_id, Role.DRIVER)
        if driver is None:
            raise NotFoundError(f"Driver {driver_id} not found")

        async with self._driver_lock(driver_id):
            cab = await self.cabs.get_by_driver_id(driver_id, for_update=True)
            if number_plate:
                owner = await self.cabs.get_by_number_plate(number_plate)
                if owner is not None and (cab is None or owner.id != cab.id):
                    raise ConflictError(
                        f"Number plate {number_plate} is already registered"
                    )

            if cab is None:
                cab = await self.cabs.create(
                    CabModel(
                        driver_id=driver_id,
                        car_type=car_type.strip(),
                        per_km_rate=per_km_rate,
                        number_plate=number_plate,
                        is_available=True,
                    )
                )
                logger.info("Driver %s registered cab %s", driver_id, cab.id)
            else:
                cab.car_type = car_type.strip()
                cab.per_km_rate = per_km_rate
                if number_plate:
                    cab.number_plate = number_plate
                logger.info("Driver %s updated cab %s", driver_id, cab.id)
            await self.session.commit()
        return cab

    async def attach_cab_to_driver(self, driver_id: int, cab_id: int) -> CabModel:
        driver = await self.users.get_with_role(driver_id, Role.DRIVER)
        if driver is None:
            raise NotFoundError(f"Driver {driver_id} not found")

        async with self._driver_lock(driver_id):
            cab = await self.cabs.get_for_update(cab_id)
            if cab is None:
                raise NotFoundError(f"Cab {cab_id} not found")
            if cab.driver_id is not None and cab.driver_id != driver_id:
                raise ConflictError(
                    f"Cab {cab_id} already belongs to driver {cab.driver_id}"
                )
            current = await self.cabs.get_by_driver_id(driver_id, for_update=True)
            if current is not None and current.id != cab.id:
                raise ConflictError(f"Driver {driver_id} already has cab {current.id}")
            cab.driver_id = driver_id
            await self.session.commit()
        logger.info("Cab %s attached to driver %s", cab_id, driver_id)
        return cab

    async def fare_estimates(
        self,
        distance_in_km: float,
        latitude: Optional[float] = None,
        longitude: Optional[float] = None,
    ) -> list[FareEstimate]:
        """Min / max fare per car type over available cabs.

        With a location, only cabs whose driver is within the nearby radius
        are considered.
        """
        validate_amount(distance_in_km, "distance_in_km")
        if (latitude is None) != (longitude is None):
            raise ValidationError("latitude and longitude must be given together")

        pairs = await self.cabs.list_available_with_drivers()
        if latitude is not None:
            located = [(driver, cab) for cab, driver in pairs if driver is not None]
            pairs = [
                (cab, driver)
                for driver, cab in nearby(
                    located,
                    latitude,
                    longitude,
                    settings.nearby_radius_km,
                    settings.h3_resolution,
                )
            ]
        return estimate_fares([cab for cab, _ in pairs], distance_in_km)

    def _driver_lock(self, driver_id: int):
        if self.locks is None:
            return nullcontext()
        return self.locks.hold(driver_key(driver_id))
