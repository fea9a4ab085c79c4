"""Pydantic request / response schemas for the REST API."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from src.domain.enums import Role, TripStatus

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


# ── Requests ──────────────────────────────────────────────────────────


class _RegisterBase(BaseModel):
    username: str = Field(..., min_length=3, max_length=80)
    password: str = Field(..., min_length=6, max_length=72)
    email: str = Field(..., max_length=255, pattern=EMAIL_PATTERN)
    address: Optional[str] = Field(None, max_length=255)
    mobile_number: Optional[str] = Field(None, max_length=20)


class CustomerRegisterRequest(_RegisterBase):
    pass


class DriverRegisterRequest(_RegisterBase):
    licence_no: str = Field(..., min_length=1, max_length=40)


class AdminRegisterRequest(_RegisterBase):
    name: Optional[str] = Field(None, max_length=120)


class LoginRequest(BaseModel):
    username: str
    password: str


class EmailRequest(BaseModel):
    email: str = Field(..., max_length=255, pattern=EMAIL_PATTERN)


class PasswordResetConfirmRequest(BaseModel):
    token: str
    new_password: str = Field(..., min_length=6, max_length=72)


class TokenRequest(BaseModel):
    token: str


class ProfileUpdateRequest(BaseModel):
    address: Optional[str] = Field(None, max_length=255)
    mobile_number: Optional[str] = Field(None, max_length=20)
    email: Optional[str] = Field(None, max_length=255, pattern=EMAIL_PATTERN)


class TripCreateRequest(BaseModel):
    customer_id: Optional[int] = Field(
        None, description="Required when an admin books on behalf of a customer."
    )
    from_location: str = Field(..., max_length=255)
    to_location: str = Field(..., max_length=255)
    car_type: Optional[str] = Field(None, max_length=40)
    from_latitude: Optional[float] = Field(None, ge=-90, le=90)
    from_longitude: Optional[float] = Field(None, ge=-180, le=180)
    scheduled_at: Optional[datetime] = None


class AssignRequest(BaseModel):
    driver_id: int


class CompleteRequest(BaseModel):
    distance_in_km: float = Field(..., ge=0, allow_inf_nan=False)


class RatingRequest(BaseModel):
    rating: int


class CabUpsertRequest(BaseModel):
    car_type: str = Field(..., min_length=1, max_length=40)
    per_km_rate: float = Field(..., ge=0, allow_inf_nan=False)
    number_plate: Optional[str] = Field(None, max_length=20)


class LocationUpdateRequest(BaseModel):
    latitude: float
    longitude: float


# ── Responses ─────────────────────────────────────────────────────────


class UserSummaryResponse(BaseModel):
    id: int
    username: str
    email: str
    role: Role
    address: Optional[str] = None
    mobile_number: Optional[str] = None
    email_verified: bool = False
    profile_photo: Optional[str] = None

    model_config = {"from_attributes": True}


class ProfileResponse(UserSummaryResponse):
    name: Optional[str] = None
    verified: bool = False
    licence_no: Optional[str] = None
    rating: Optional[float] = None
    total_ratings: Optional[int] = None
    is_available: Optional[bool] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    created_at: Optional[datetime] = None


class DriverResponse(UserSummaryResponse):
    licence_no: Optional[str] = None
    verified: bool = False
    rating: float = 0.0
    total_ratings: int = 0
    is_available: bool = True
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class AdminResponse(UserSummaryResponse):
    name: Optional[str] = None
    verified: bool = False


class CabResponse(BaseModel):
    id: int
    driver_id: Optional[int] = None
    car_type: str
    per_km_rate: float
    number_plate: Optional[str] = None
    is_available: bool

    model_config = {"from_attributes": True}


class TripResponse(BaseModel):
    id: int
    customer_id: int
    driver_id: Optional[int] = None
    cab_id: Optional[int] = None
    from_location: str
    to_location: str
    from_latitude: Optional[float] = None
    from_longitude: Optional[float] = None
    car_type: Optional[str] = None
    scheduled_at: Optional[datetime] = None
    from_date_time: Optional[datetime] = None
    to_date_time: Optional[datetime] = None
    distance_in_km: Optional[float] = None
    bill: Optional[float] = None
    status: TripStatus
    customer_rating: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class FareEstimateResponse(BaseModel):
    car_type: str
    min_fare: float
    max_fare: float

    model_config = {"from_attributes": True}


class LoginResponse(BaseModel):
    message: str = "Login successful"
    user_id: int
    role: str
    token: str


class MessageResponse(BaseModel):
    message: str


class HealthResponse(BaseModel):
    status: str = "ok"
