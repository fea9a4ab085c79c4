"""
Admin endpoints
===============

GET    /api/v1/admin/customers              -- all customers
GET    /api/v1/admin/drivers                -- all drivers
GET    /api/v1/admin/admins/unverified      -- admins awaiting approval
PATCH  /api/v1/admin/admins/{id}/verify     -- approve an admin
PATCH  /api/v1/admin/drivers/{id}/verify    -- approve a driver
DELETE /api/v1/admin/users/{username}       -- delete any user
GET    /api/v1/admin/health                 -- simple health check

Everything except ``/health`` requires a verified admin.
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.dependencies import get_account_service, get_db, require_roles
from src.api.middleware import limiter
from src.api.schemas import (
    AdminResponse,
    DriverResponse,
    HealthResponse,
    MessageResponse,
    UserSummaryResponse,
)
from src.config import settings
from src.domain.enums import Role
from src.infrastructure.models import UserModel
from src.services.accounts import AccountService
from src.services.admin import AdminService

router = APIRouter(prefix="/admin", tags=["admin"])

admin_only = require_roles(Role.ADMIN)


@router.get(
    "/customers",
    response_model=list[UserSummaryResponse],
    summary="List all customers",
)
@limiter.limit(settings.rate_limit)
async def list_customers(
    request: Request,
    admin: UserModel = Depends(admin_only),
    db: AsyncSession = Depends(get_db),
):
    return await AdminService(db).list_customers()


@router.get("/drivers", response_model=list[DriverResponse], summary="List all drivers")
@limiter.limit(settings.rate_limit)
async def list_drivers(
    request: Request,
    admin: UserModel = Depends(admin_only),
    db: AsyncSession = Depends(get_db),
):
    return await AdminService(db).list_drivers()


@router.get(
    "/admins/unverified",
    response_model=list[AdminResponse],
    summary="List admins awaiting approval",
)
@limiter.limit(settings.rate_limit)
async def list_unverified_admins(
    request: Request,
    admin: UserModel = Depends(admin_only),
    db: AsyncSession = Depends(get_db),
):
    return await AdminService(db).list_unverified_admins()


@router.patch("/admins/{admin_id}/verify", response_model=AdminResponse)
@limiter.limit(settings.rate_limit)
async def verify_admin(
    request: Request,
    admin_id: int,
    admin: UserModel = Depends(admin_only),
    db: AsyncSession = Depends(get_db),
):
    return await AdminService(db).verify_admin(admin_id, admin)


@router.patch("/drivers/{driver_id}/verify", response_model=DriverResponse)
@limiter.limit(settings.rate_limit)
async def verify_driver(
    request: Request,
    driver_id: int,
    admin: UserModel = Depends(admin_only),
    db: AsyncSession = Depends(get_db),
):
    return await AdminService(db).verify_driver(driver_id, admin)


@router.delete("/users/{username}", response_model=MessageResponse)
@limiter.limit(settings.rate_limit)
async def delete_user(
    request: Request,
    username: str,
    admin: UserModel = Depends(admin_only),
    accounts: AccountService = Depends(get_account_service),
):
    await accounts.delete_by_username(username)
    return MessageResponse(message=f"User {username} deleted")


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health():
    return HealthResponse()
