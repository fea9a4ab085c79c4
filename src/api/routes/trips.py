"""
Trip endpoints
==============

POST  /api/v1/trips                       -- book a trip (201, SCHEDULED)
GET   /api/v1/trips/estimate              -- fare range per car type
GET   /api/v1/trips/{trip_id}             -- one trip
PATCH /api/v1/trips/{trip_id}/assign      -- admin assigns a driver
PATCH /api/v1/trips/{trip_id}/dispatch    -- pick the best available driver
PATCH /api/v1/trips/{trip_id}/start       -- driver starts the trip
PATCH /api/v1/trips/{trip_id}/complete    -- driver completes; trip is billed
PATCH /api/v1/trips/{trip_id}/cancel      -- cancel before the trip starts
PATCH /api/v1/trips/{trip_id}/rate        -- customer rates the driver
GET   /api/v1/trips/customer/{id}         -- a customer's trips
GET   /api/v1/trips/driver/{id}           -- a driver's trips
GET   /api/v1/trips/cab/{id}              -- trips driven with a cab (admin)
GET   /api/v1/trips/date/{yyyy-mm-dd}     -- trips started on a day (admin)
"""

import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.dependencies import get_current_user, get_db, get_trip_manager, require_roles
from src.api.middleware import limiter
from src.api.schemas import (
    AssignRequest,
    CompleteRequest,
    FareEstimateResponse,
    RatingRequest,
    TripCreateRequest,
    TripResponse,
)
from src.config import settings
from src.domain.enums import Role
from src.domain.errors import PermissionDeniedError, ValidationError
from src.infrastructure.models import UserModel
from src.services.cabs import CabService
from src.services.trips import TripLifecycleManager

router = APIRouter(prefix="/trips", tags=["trips"])


def _require_self_or_admin(user: UserModel, role: Role, user_id: int) -> None:
    if user.role == Role.ADMIN:
        return
    if user.role == role and user.id == user_id:
        return
    raise PermissionDeniedError("You may only view your own trips")


@router.post("", status_code=201, response_model=TripResponse, summary="Book a trip")
@limiter.limit(settings.rate_limit)
async def create_trip(
    request: Request,
    body: TripCreateRequest,
    user: UserModel = Depends(require_roles(Role.CUSTOMER, Role.ADMIN)),
    manager: TripLifecycleManager = Depends(get_trip_manager),
):
    if user.role == Role.CUSTOMER:
        customer_id = user.id
    elif body.customer_id is None:
        raise ValidationError("customer_id is required when booking for a customer")
    else:
        customer_id = body.customer_id

    coordinates = None
    if body.from_latitude is not None and body.from_longitude is not None:
        coordinates = (body.from_latitude, body.from_longitude)
    elif body.from_latitude is not None or body.from_longitude is not None:
        raise ValidationError("from_latitude and from_longitude must be given together")

    return await manager.create(
        customer_id,
        body.from_location,
        body.to_location,
        body.car_type,
        pickup_coordinates=coordinates,
        scheduled_at=body.scheduled_at,
    )


@router.get(
    "/estimate",
    response_model=list[FareEstimateResponse],
    summary="Estimate fares per car type",
)
@limiter.limit(settings.rate_limit)
async def estimate_fares(
    request: Request,
    distance_in_km: float = Query(..., ge=0, allow_inf_nan=False),
    latitude: Optional[float] = Query(None, ge=-90, le=90),
    longitude: Optional[float] = Query(None, ge=-180, le=180),
    user: UserModel = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await CabService(db).fare_estimates(distance_in_km, latitude, longitude)


@router.get("/customer/{customer_id}", response_model=list[TripResponse])
@limiter.limit(settings.rate_limit)
async def trips_for_customer(
    request: Request,
    customer_id: int,
    user: UserModel = Depends(get_current_user),
    manager: TripLifecycleManager = Depends(get_trip_manager),
):
    _require_self_or_admin(user, Role.CUSTOMER, customer_id)
    return await manager.for_customer(customer_id)


@router.get("/driver/{driver_id}", response_model=list[TripResponse])
@limiter.limit(settings.rate_limit)
async def trips_for_driver(
    request: Request,
    driver_id: int,
    user: UserModel = Depends(get_current_user),
    manager: TripLifecycleManager = Depends(get_trip_manager),
):
    _require_self_or_admin(user, Role.DRIVER, driver_id)
    return await manager.for_driver(driver_id)


@router.get("/cab/{cab_id}", response_model=list[TripResponse])
@limiter.limit(settings.rate_limit)
async def trips_for_cab(
    request: Request,
    cab_id: int,
    user: UserModel = Depends(require_roles(Role.ADMIN)),
    manager: TripLifecycleManager = Depends(get_trip_manager),
):
    return await manager.for_cab(cab_id)


@router.get("/date/{day}", response_model=list[TripResponse])
@limiter.limit(settings.rate_limit)
async def trips_on_date(
    request: Request,
    day: datetime.date,
    user: UserModel = Depends(require_roles(Role.ADMIN)),
    manager: TripLifecycleManager = Depends(get_trip_manager),
):
    return await manager.on_date(day)


@router.get("/{trip_id}", response_model=TripResponse, summary="Get one trip")
@limiter.limit(settings.rate_limit)
async def get_trip(
    request: Request,
    trip_id: int,
    user: UserModel = Depends(get_current_user),
    manager: TripLifecycleManager = Depends(get_trip_manager),
):
    return await manager.get(trip_id, actor=user)


@router.patch(
    "/{trip_id}/assign",
    response_model=TripResponse,
    summary="Assign a driver",
    description=(
        "SCHEDULED -> CONFIRMED. The driver must be verified and available "
        "and own an available cab; both are marked unavailable."
    ),
)
@limiter.limit(settings.rate_limit)
async def assign_driver(
    request: Request,
    trip_id: int,
    body: AssignRequest,
    user: UserModel = Depends(require_roles(Role.ADMIN)),
    manager: TripLifecycleManager = Depends(get_trip_manager),
):
    return await manager.assign(trip_id, body.driver_id, actor=user)


@router.patch(
    "/{trip_id}/dispatch",
    response_model=TripResponse,
    summary="Assign the best available driver",
)
@limiter.limit(settings.rate_limit)
async def dispatch_trip(
    request: Request,
    trip_id: int,
    user: UserModel = Depends(require_roles(Role.CUSTOMER, Role.ADMIN)),
    manager: TripLifecycleManager = Depends(get_trip_manager),
):
    return await manager.dispatch(trip_id, actor=user)


@router.patch("/{trip_id}/start", response_model=TripResponse, summary="Start a trip")
@limiter.limit(settings.rate_limit)
async def start_trip(
    request: Request,
    trip_id: int,
    user: UserModel = Depends(require_roles(Role.DRIVER, Role.ADMIN)),
    manager: TripLifecycleManager = Depends(get_trip_manager),
):
    return await manager.start(trip_id, actor=user)


@router.patch(
    "/{trip_id}/complete",
    response_model=TripResponse,
    summary="Complete a trip",
    description="Bill = distance_in_km x the cab's per-km rate. Frees driver and cab.",
)
@limiter.limit(settings.rate_limit)
async def complete_trip(
    request: Request,
    trip_id: int,
    body: CompleteRequest,
    user: UserModel = Depends(require_roles(Role.DRIVER, Role.ADMIN)),
    manager: TripLifecycleManager = Depends(get_trip_manager),
):
    return await manager.complete(trip_id, body.distance_in_km, actor=user)


@router.patch("/{trip_id}/cancel", response_model=TripResponse, summary="Cancel a trip")
@limiter.limit(settings.rate_limit)
async def cancel_trip(
    request: Request,
    trip_id: int,
    user: UserModel = Depends(get_current_user),
    manager: TripLifecycleManager = Depends(get_trip_manager),
):
    return await manager.cancel(trip_id, actor=user)


@router.patch("/{trip_id}/rate", response_model=TripResponse, summary="Rate the driver")
@limiter.limit(settings.rate_limit)
async def rate_trip(
    request: Request,
    trip_id: int,
    body: RatingRequest,
    user: UserModel = Depends(require_roles(Role.CUSTOMER)),
    manager: TripLifecycleManager = Depends(get_trip_manager),
):
    return await manager.rate(trip_id, body.rating, actor=user)
