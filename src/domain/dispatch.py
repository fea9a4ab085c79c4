"""
Driver dispatch
===============

Chooses the driver for a scheduled trip.

1. **Eligibility** -- driver verified and available, with a cab that is
   available and whose car type matches the trip (case-insensitive).
2. **Spatial prefilter** -- when the trip has pickup coordinates, the
   pickup is mapped to an H3 cell and expanded to a grid disk large
   enough to contain the search radius; drivers outside the disk are
   dropped without computing a distance.
3. **Radius check** -- remaining drivers must be within ``radius_km``
   (haversine) of the pickup.
4. **Ranking** -- highest rating first; ties keep candidate order. The
   caller tries drivers in this order, so a driver taken in the meantime
   falls through to the next one.

Trips without pickup coordinates skip steps 2 and 3.

Complexity: O(D) for D candidate drivers, one H3 call each.
"""

from __future__ import annotations

import math
from typing import Any, Iterable, Optional

import h3

from .distance import haversine_km

Candidate = tuple[Any, Any]  # (driver, cab)


def location_cell(lat: float, lng: float, resolution: int = 7) -> str:
    """Map a geo-point to an H3 hexagonal cell index.  O(1)."""
    return h3.latlng_to_cell(lat, lng, resolution)


def search_cells(
    lat: float, lng: float, radius_km: float, resolution: int = 7
) -> set[str]:
    """H3 cells that together cover a circle of *radius_km* around a point."""
    edge_km = h3.average_hexagon_edge_length(resolution, unit="km")
    # adjacent cell centres are sqrt(3) * edge apart; one extra ring covers
    # points near the boundary of the centre cell
    k = math.ceil(radius_km / (math.sqrt(3) * edge_km)) + 1
    return set(h3.grid_disk(location_cell(lat, lng, resolution), k))


def is_eligible(driver: Any, cab: Any, car_type: Optional[str] = None) -> bool:
    if not (driver.verified and driver.is_available):
        return False
    if cab is None or not cab.is_available:
        return False
    if car_type and (cab.car_type or "").lower() != car_type.lower():
        return False
    return True


def nearby(
    candidates: Iterable[Candidate],
    lat: float,
    lng: float,
    radius_km: float,
    resolution: int = 7,
) -> list[Candidate]:
    """Keep candidates whose driver is within *radius_km* of (lat, lng)."""
    cells = search_cells(lat, lng, radius_km, resolution)
    result = []
    for driver, cab in candidates:
        if driver.latitude is None or driver.longitude is None:
            continue
        if location_cell(driver.latitude, driver.longitude, resolution) not in cells:
            continue
        if haversine_km(lat, lng, driver.latitude, driver.longitude) <= radius_km:
            result.append((driver, cab))
    return result


def rank_drivers(
    candidates: Iterable[Candidate],
    *,
    car_type: Optional[str] = None,
    origin: Optional[tuple[float, float]] = None,
    radius_km: float = 5.0,
    resolution: int = 7,
) -> list[Candidate]:
    """Eligible ``(driver, cab)`` pairs, best rated first."""
    eligible = [
        (driver, cab)
        for driver, cab in candidates
        if is_eligible(driver, cab, car_type)
    ]
    if origin is not None:
        eligible = nearby(eligible, origin[0], origin[1], radius_km, resolution)
    return sorted(eligible, key=lambda pair: -(pair[0].rating or 0.0))


def pick_driver(
    candidates: Iterable[Candidate],
    *,
    car_type: Optional[str] = None,
    origin: Optional[tuple[float, float]] = None,
    radius_km: float = 5.0,
    resolution: int = 7,
) -> Optional[Candidate]:
    """Return the best ``(driver, cab)`` for a trip, or ``None``."""
    ranked = rank_drivers(
        candidates,
        car_type=car_type,
        origin=origin,
        radius_km=radius_km,
        resolution=resolution,
    )
    return ranked[0] if ranked else None
