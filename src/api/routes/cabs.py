"""
Cab endpoints
=============

PUT /api/v1/cabs/me               -- driver registers or updates their cab
GET /api/v1/cabs                  -- all cabs
GET /api/v1/cabs/available        -- cabs free for assignment
GET /api/v1/cabs/type/{car_type}  -- cabs of one car type
GET /api/v1/cabs/{cab_id}         -- one cab
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.dependencies import get_current_user, get_db, get_locks, require_roles
from src.api.middleware import limiter
from src.api.schemas import CabResponse, CabUpsertRequest
from src.config import settings
from src.domain.enums import Role
from src.infrastructure.models import UserModel
from src.services.cabs import CabService

router = APIRouter(prefix="/cabs", tags=["cabs"])


@router.put("/me", response_model=CabResponse, summary="Register or update my cab")
@limiter.limit(settings.rate_limit)
async def upsert_my_cab(
    request: Request,
    body: CabUpsertRequest,
    user: UserModel = Depends(require_roles(Role.DRIVER)),
    db: AsyncSession = Depends(get_db),
    locks=Depends(get_locks),
):
    return await CabService(db, locks).upsert_driver_cab(
        user.id, body.car_type, body.per_km_rate, body.number_plate
    )


@router.get("", response_model=list[CabResponse], summary="List all cabs")
@limiter.limit(settings.rate_limit)
async def list_cabs(
    request: Request,
    user: UserModel = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await CabService(db).list_all()


@router.get("/available", response_model=list[CabResponse], summary="List available cabs")
@limiter.limit(settings.rate_limit)
async def list_available_cabs(
    request: Request,
    user: UserModel = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await CabService(db).list_available()


@router.get("/type/{car_type}", response_model=list[CabResponse])
@limiter.limit(settings.rate_limit)
async def list_cabs_by_type(
    request: Request,
    car_type: str,
    user: UserModel = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await CabService(db).list_by_car_type(car_type)


@router.get("/{cab_id}", response_model=CabResponse, summary="Get one cab")
@limiter.limit(settings.rate_limit)
async def get_cab(
    request: Request,
    cab_id: int,
    user: UserModel = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await CabService(db).get(cab_id)
