"""
Trip lifecycle state machine.

    SCHEDULED --assign--> CONFIRMED --start--> IN_PROGRESS --complete--> COMPLETED
        |                     |
        +------cancel---------+-------------------------------------> CANCELLED

Every function validates *all* preconditions before it mutates anything,
so a raised error leaves the trip, driver and cab untouched.

The functions only read and write plain attributes (``status``,
``driver_id``, ``is_available``, ...), which lets them operate on the
dataclass entities in ``entities.py`` and on the ORM rows in
``src.infrastructure.models`` alike.  Availability of the driver and cab
is only ever changed here, as a side effect of a trip transition.
"""

from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Any, Optional

from .enums import TRIP_TRANSITIONS, TripStatus
from .errors import InvalidStateError, UnavailableError, ValidationError
from .pricing import compute_bill

MIN_RATING = 1
MAX_RATING = 5


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def current_status(trip: Any) -> TripStatus:
    return TripStatus(trip.status)


def can_transition(trip: Any, new_status: TripStatus) -> bool:
    return new_status in TRIP_TRANSITIONS.get(current_status(trip), set())


def transition(trip: Any, new_status: TripStatus) -> None:
    """Move *trip* to *new_status* if the edge exists, else raise."""
    if not can_transition(trip, new_status):
        raise InvalidStateError(
            f"Cannot transition trip {trip.id} from "
            f"{current_status(trip).value} to {new_status.value}"
        )
    trip.status = new_status


def require_transition(trip: Any, new_status: TripStatus, action: str) -> None:
    if not can_transition(trip, new_status):
        raise InvalidStateError(
            f"Cannot {action} trip {trip.id} in status {current_status(trip).value}"
        )


def _release(driver: Any, cab: Any) -> None:
    if driver is not None:
        driver.is_available = True
    if cab is not None:
        cab.is_available = True


# ── Transitions ───────────────────────────────────────────────────────


def assign(trip: Any, driver: Any, cab: Any) -> None:
    """SCHEDULED -> CONFIRMED; reserves *driver* and *cab*."""
    require_transition(trip, TripStatus.CONFIRMED, "assign")
    if not driver.verified:
        raise UnavailableError(f"Driver {driver.id} is not verified")
    if not driver.is_available:
        raise UnavailableError(f"Driver {driver.id} is not available")
    if cab is None:
        raise UnavailableError(f"Driver {driver.id} has no cab")
    if not cab.is_available:
        raise UnavailableError(f"Cab {cab.id} is not available")

    trip.driver_id = driver.id
    trip.cab_id = cab.id
    trip.status = TripStatus.CONFIRMED
    driver.is_available = False
    cab.is_available = False


def start(trip: Any, now: datetime) -> None:
    """CONFIRMED -> IN_PROGRESS."""
    require_transition(trip, TripStatus.IN_PROGRESS, "start")
    trip.from_date_time = now
    trip.status = TripStatus.IN_PROGRESS


def complete(
    trip: Any,
    driver: Any,
    cab: Any,
    distance_in_km: float,
    now: datetime,
) -> None:
    """IN_PROGRESS -> COMPLETED; bills the trip and frees driver and cab."""
    require_transition(trip, TripStatus.COMPLETED, "complete")
    validate_amount(distance_in_km, "distance_in_km")
    if cab is None:
        raise InvalidStateError(f"Trip {trip.id} has no cab to bill against")

    trip.to_date_time = now
    trip.distance_in_km = distance_in_km
    trip.bill = compute_bill(distance_in_km, cab.per_km_rate)
    trip.status = TripStatus.COMPLETED
    _release(driver, cab)


def cancel(trip: Any, driver: Optional[Any] = None, cab: Optional[Any] = None) -> None:
    """SCHEDULED | CONFIRMED -> CANCELLED; frees anything that was assigned."""
    require_transition(trip, TripStatus.CANCELLED, "cancel")
    trip.status = TripStatus.CANCELLED
    _release(driver, cab)


def validate_amount(value: Any, field: str) -> float:
    """Distances and rates: finite and non-negative. NaN fails every comparison."""
    if (
        value is None
        or isinstance(value, bool)
        or not isinstance(value, (int, float))
        or not math.isfinite(value)
        or value < 0
    ):
        raise ValidationError(f"{field} must be a finite, non-negative number")
    return float(value)


def validate_rating(rating: Any) -> int:
    if isinstance(rating, bool) or not isinstance(rating, int):
        raise ValidationError("Rating must be an integer between 1 and 5")
    if not MIN_RATING <= rating <= MAX_RATING:
        raise ValidationError(
            f"Rating must be between {MIN_RATING} and {MAX_RATING}, got {rating}"
        )
    return rating


def rate(trip: Any, driver: Any, rating: int) -> None:
    """Record the customer's rating once and fold it into the driver's average."""
    validate_rating(rating)
    if current_status(trip) != TripStatus.COMPLETED:
        raise InvalidStateError("Trip must be completed before it can be rated")
    if trip.customer_rating is not None:
        raise InvalidStateError(f"Trip {trip.id} has already been rated")
    if driver is None:
        raise InvalidStateError(f"Trip {trip.id} has no driver to rate")

    old_avg = driver.rating or 0.0
    total = driver.total_ratings or 0
    driver.rating = (old_avg * total + rating) / (total + 1)
    driver.total_ratings = total + 1
    trip.customer_rating = rating
