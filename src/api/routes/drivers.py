"""
Driver endpoints
================

GET   /api/v1/drivers/best                    -- drivers rated 4.5 and above
PATCH /api/v1/drivers/me/location             -- driver reports their position
PATCH /api/v1/drivers/{driver_id}/cab/{cab_id} -- admin attaches a cab
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.dependencies import get_current_user, get_db, get_locks, require_roles
from src.api.middleware import limiter
from src.api.schemas import CabResponse, DriverResponse, LocationUpdateRequest
from src.config import settings
from src.domain.enums import Role
from src.infrastructure.models import UserModel
from src.services.cabs import CabService
from src.services.drivers import DriverService

router = APIRouter(prefix="/drivers", tags=["drivers"])


@router.get("/best", response_model=list[DriverResponse], summary="Best rated drivers")
@limiter.limit(settings.rate_limit)
async def best_drivers(
    request: Request,
    min_rating: Optional[float] = Query(None, ge=0, le=5),
    user: UserModel = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await DriverService(db).best_drivers(min_rating)


@router.patch(
    "/me/location", response_model=DriverResponse, summary="Update my location"
)
@limiter.limit(settings.rate_limit)
async def update_my_location(
    request: Request,
    body: LocationUpdateRequest,
    user: UserModel = Depends(require_roles(Role.DRIVER)),
    db: AsyncSession = Depends(get_db),
):
    return await DriverService(db).update_location(user.id, body.latitude, body.longitude)


@router.patch(
    "/{driver_id}/cab/{cab_id}",
    response_model=CabResponse,
    summary="Attach a cab to a driver",
)
@limiter.limit(settings.rate_limit)
async def attach_cab(
    request: Request,
    driver_id: int,
    cab_id: int,
    user: UserModel = Depends(require_roles(Role.ADMIN)),
    db: AsyncSession = Depends(get_db),
    locks=Depends(get_locks),
):
    return await CabService(db, locks).attach_cab_to_driver(driver_id, cab_id)
