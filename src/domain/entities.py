"""
Domain entities with business logic.

Patterns used
-------------
- **State Pattern** on ``Trip``: enforces valid lifecycle transitions
  (SCHEDULED -> CONFIRMED -> IN_PROGRESS -> COMPLETED | CANCELLED).
- **Tagged role** on ``User``: one record shape for admins, customers and
  drivers; driver-only fields are simply unused for other roles.
- References between entities are ids, never object pointers.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from . import lifecycle
from .enums import Role, TripStatus


# ── Entities ──────────────────────────────────────────────────────────


@dataclass
class User:
    id: Optional[int] = None
    role: Role = Role.CUSTOMER
    username: str = ""
    email: str = ""
    address: Optional[str] = None
    mobile_number: Optional[str] = None
    email_verified: bool = False
    # admins
    name: Optional[str] = None
    # admins and drivers
    verified: bool = False
    # drivers
    licence_no: Optional[str] = None
    rating: float = 0.0
    total_ratings: int = 0
    is_available: bool = True
    latitude: Optional[float] = None
    longitude: Optional[float] = None


@dataclass
class Cab:
    id: Optional[int] = None
    driver_id: Optional[int] = None
    car_type: str = "Sedan"
    per_km_rate: float = 0.0
    number_plate: Optional[str] = None
    is_available: bool = True


@dataclass
class Trip:
    id: Optional[int] = None
    customer_id: int = 0
    driver_id: Optional[int] = None
    cab_id: Optional[int] = None
    from_location: str = ""
    to_location: str = ""
    from_latitude: Optional[float] = None
    from_longitude: Optional[float] = None
    car_type: Optional[str] = None
    scheduled_at: Optional[datetime] = None
    from_date_time: Optional[datetime] = None
    to_date_time: Optional[datetime] = None
    distance_in_km: Optional[float] = None
    bill: Optional[float] = None
    status: TripStatus = TripStatus.SCHEDULED
    customer_rating: Optional[int] = None

    def transition_to(self, new_status: TripStatus) -> None:
        """Move to *new_status* if the transition is legal, else raise."""
        lifecycle.transition(self, new_status)
