"""
Repository Pattern -- abstracts DB access so domain logic stays DB-agnostic.

Each repository receives an ``AsyncSession`` (unit-of-work) and exposes
domain-relevant queries only.  ``*_for_update`` variants issue
``SELECT ... FOR UPDATE`` and refresh any instance already in the
identity map, so a caller holding the trip lock always sees committed
state.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import (
    AccountTokenModel,
    BlacklistedTokenModel,
    CabModel,
    TripModel,
    UserModel,
)
from src.domain.enums import Role, TokenPurpose, TripStatus


class UserRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, user: UserModel) -> UserModel:
        self.session.add(user)
        await self.session.flush()
        return user

    async def delete(self, user: UserModel) -> None:
        await self.session.delete(user)
        await self.session.flush()

    async def get_by_id(self, user_id: int) -> Optional[UserModel]:
        return await self.session.get(UserModel, user_id)

    async def get_with_role(
        self, user_id: int, role: Role, *, for_update: bool = False
    ) -> Optional[UserModel]:
        query = select(UserModel).where(
            UserModel.id == user_id, UserModel.role == role
        )
        if for_update:
            query = query.with_for_update().execution_options(
                populate_existing=True
            )
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def get_by_username(self, username: str) -> Optional[UserModel]:
        result = await self.session.execute(
            select(UserModel).where(UserModel.username == username)
        )
        return result.scalar_one_or_none()

    async def get_by_email(self, email: str) -> Optional[UserModel]:
        result = await self.session.execute(
            select(UserModel).where(func.lower(UserModel.email) == email.lower())
        )
        return result.scalar_one_or_none()

    async def exists_by_username(self, username: str) -> bool:
        return await self.get_by_username(username) is not None

    async def exists_by_email(self, email: str) -> bool:
        return await self.get_by_email(email) is not None

    async def exists_by_licence_no(self, licence_no: str) -> bool:
        result = await self.session.execute(
            select(func.count())
            .select_from(UserModel)
            .where(func.lower(UserModel.licence_no) == licence_no.lower())
        )
        return (result.scalar() or 0) > 0

    async def list_by_role(self, role: Role) -> list[UserModel]:
        result = await self.session.execute(
            select(UserModel).where(UserModel.role == role).order_by(UserModel.id)
        )
        return list(result.scalars().all())

    async def list_unverified(self, role: Role) -> list[UserModel]:
        result = await self.session.execute(
            select(UserModel)
            .where(UserModel.role == role, UserModel.verified.is_(False))
            .order_by(UserModel.id)
        )
        return list(result.scalars().all())

    async def list_drivers_rated_at_least(self, min_rating: float) -> list[UserModel]:
        result = await self.session.execute(
            select(UserModel)
            .where(UserModel.role == Role.DRIVER, UserModel.rating >= min_rating)
            .order_by(UserModel.rating.desc())
        )
        return list(result.scalars().all())

    async def list_dispatch_candidates(self) -> list[tuple[UserModel, CabModel]]:
        """Verified, available drivers paired with their available cab."""
        result = await self.session.execute(
            select(UserModel, CabModel)
            .join(CabModel, CabModel.driver_id == UserModel.id)
            .where(
                UserModel.role == Role.DRIVER,
                UserModel.verified.is_(True),
                UserModel.is_available.is_(True),
                CabModel.is_available.is_(True),
            )
            .order_by(UserModel.id)
        )
        return [(driver, cab) for driver, cab in result.all()]


class CabRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, cab: CabModel) -> CabModel:
        self.session.add(cab)
        await self.session.flush()
        return cab

    async def get_by_id(self, cab_id: int) -> Optional[CabModel]:
        return await self.session.get(CabModel, cab_id)

    async def get_for_update(self, cab_id: int) -> Optional[CabModel]:
        result = await self.session.execute(
            select(CabModel)
            .where(CabModel.id == cab_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_by_driver_id(
        self, driver_id: int, *, for_update: bool = False
    ) -> Optional[CabModel]:
        query = select(CabModel).where(CabModel.driver_id == driver_id)
        if for_update:
            query = query.with_for_update().execution_options(
                populate_existing=True
            )
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def get_by_number_plate(self, number_plate: str) -> Optional[CabModel]:
        result = await self.session.execute(
            select(CabModel).where(CabModel.number_plate == number_plate)
        )
        return result.scalar_one_or_none()

    async def list_all(self) -> list[CabModel]:
        result = await self.session.execute(select(CabModel).order_by(CabModel.id))
        return list(result.scalars().all())

    async def list_available(self) -> list[CabModel]:
        result = await self.session.execute(
            select(CabModel)
            .where(CabModel.is_available.is_(True))
            .order_by(CabModel.id)
        )
        return list(result.scalars().all())

    async def list_by_car_type(self, car_type: str) -> list[CabModel]:
        result = await self.session.execute(
            select(CabModel)
            .where(func.lower(CabModel.car_type) == car_type.lower())
            .order_by(CabModel.id)
        )
        return list(result.scalars().all())

    async def list_available_with_drivers(self) -> list[tuple[CabModel, Optional[UserModel]]]:
        result = await self.session.execute(
            select(CabModel, UserModel)
            .outerjoin(UserModel, CabModel.driver_id == UserModel.id)
            .where(CabModel.is_available.is_(True))
            .order_by(CabModel.id)
        )
        return [(cab, driver) for cab, driver in result.all()]


class TripRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, trip: TripModel) -> TripModel:
        self.session.add(trip)
        await self.session.flush()
        return trip

    async def get_by_id(self, trip_id: int) -> Optional[TripModel]:
        return await self.session.get(TripModel, trip_id)

    async def get_for_update(self, trip_id: int) -> Optional[TripModel]:
        result = await self.session.execute(
            select(TripModel)
            .where(TripModel.id == trip_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_by_customer(self, customer_id: int) -> list[TripModel]:
        result = await self.session.execute(
            select(TripModel)
            .where(TripModel.customer_id == customer_id)
            .order_by(TripModel.id.desc())
        )
        return list(result.scalars().all())

    async def list_by_driver(self, driver_id: int) -> list[TripModel]:
        result = await self.session.execute(
            select(TripModel)
            .where(TripModel.driver_id == driver_id)
            .order_by(TripModel.id.desc())
        )
        return list(result.scalars().all())

    async def list_by_cab(self, cab_id: int) -> list[TripModel]:
        result = await self.session.execute(
            select(TripModel)
            .where(TripModel.cab_id == cab_id)
            .order_by(TripModel.id.desc())
        )
        return list(result.scalars().all())

    async def list_started_between(
        self, start: datetime, end: datetime
    ) -> list[TripModel]:
        result = await self.session.execute(
            select(TripModel)
            .where(TripModel.from_date_time >= start, TripModel.from_date_time < end)
            .order_by(TripModel.from_date_time)
        )
        return list(result.scalars().all())

    async def list_by_status(self, status: TripStatus) -> list[TripModel]:
        result = await self.session.execute(
            select(TripModel)
            .where(TripModel.status == status)
            .order_by(TripModel.id)
        )
        return list(result.scalars().all())

    async def count_for_user(self, user_id: int) -> int:
        result = await self.session.execute(
            select(func.count())
            .select_from(TripModel)
            .where(
                or_(TripModel.customer_id == user_id, TripModel.driver_id == user_id)
            )
        )
        return result.scalar() or 0


class AccountTokenRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, token: AccountTokenModel) -> AccountTokenModel:
        self.session.add(token)
        await self.session.flush()
        return token

    async def get(self, token: str, purpose: TokenPurpose) -> Optional[AccountTokenModel]:
        result = await self.session.execute(
            select(AccountTokenModel).where(
                AccountTokenModel.token == token,
                AccountTokenModel.purpose == purpose,
            )
        )
        return result.scalar_one_or_none()

    async def delete(self, token: AccountTokenModel) -> None:
        await self.session.delete(token)
        await self.session.flush()

    async def delete_for_email(
        self, email: str, purpose: Optional[TokenPurpose] = None
    ) -> None:
        query = delete(AccountTokenModel).where(AccountTokenModel.user_email == email)
        if purpose is not None:
            query = query.where(AccountTokenModel.purpose == purpose)
        await self.session.execute(query)


class BlacklistedTokenRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def add(self, token: str) -> None:
        if await self.contains(token):
            return
        self.session.add(BlacklistedTokenModel(token=token))
        await self.session.flush()

    async def contains(self, token: str) -> bool:
        result = await self.session.execute(
            select(func.count())
            .select_from(BlacklistedTokenModel)
            .where(BlacklistedTokenModel.token == token)
        )
        return (result.scalar() or 0) > 0
