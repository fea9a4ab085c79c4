"""Admin operations: user listings and approval of drivers and admins."""

from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from src.domain.enums import Role
from src.domain.errors import InvalidStateError, NotFoundError
from src.infrastructure.models import UserModel
from src.infrastructure.repositories import UserRepository

logger = logging.getLogger(__name__)


class AdminService:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.users = UserRepository(session)

    async def list_customers(self) -> list[UserModel]:
        return await self.users.list_by_role(Role.CUSTOMER)

    async def list_drivers(self) -> list[UserModel]:
        return await self.users.list_by_role(Role.DRIVER)

    async def list_unverified_admins(self) -> list[UserModel]:
        return await self.users.list_unverified(Role.ADMIN)

    async def verify_admin(self, admin_id: int, approver: UserModel) -> UserModel:
        return await self._verify(admin_id, Role.ADMIN, approver)

    async def verify_driver(self, driver_id: int, approver: UserModel) -> UserModel:
        return await self._verify(driver_id, Role.DRIVER, approver)

    async def _verify(self, user_id: int, role: Role, approver: UserModel) -> UserModel:
        user = await self.users.get_with_role(user_id, role)
        if user is None:
            raise NotFoundError(f"{role.value} {user_id} not found")
        if user.verified:
            raise InvalidStateError(f"{role.value} {user.username} is already verified")
        user.verified = True
        await self.session.commit()
        logger.info(
            "%s %s verified by admin %s", role.value, user.username, approver.username
        )
        return user
