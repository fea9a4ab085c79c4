"""Driver-facing queries and updates."""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from src.config import settings
from src.domain.enums import Role
from src.domain.errors import NotFoundError, ValidationError
from src.infrastructure.models import UserModel
from src.infrastructure.repositories import UserRepository

logger = logging.getLogger(__name__)


class DriverService:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.users = UserRepository(session)

    async def best_drivers(self, min_rating: Optional[float] = None) -> list[UserModel]:
        """Drivers rated at least *min_rating*, best first."""
        if min_rating is None:
            min_rating = settings.best_driver_min_rating
        return await self.users.list_drivers_rated_at_least(min_rating)

    async def update_location(
        self, driver_id: int, latitude: float, longitude: float
    ) -> UserModel:
        if not -90 <= latitude <= 90:
            raise ValidationError(f"Latitude {latitude} is out of range")
        if not -180 <= longitude <= 180:
            raise ValidationError(f"Longitude {longitude} is out of range")

        driver = await self.users.get_with_role(driver_id, Role.DRIVER)
        if driver is None:
            raise NotFoundError(f"Driver {driver_id} not found")
        driver.latitude = latitude
        driver.longitude = longitude
        await self.session.commit()
        logger.debug("Driver %s moved to (%f, %f)", driver_id, latitude, longitude)
        return driver
