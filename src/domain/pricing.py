"""
Billing and fare estimation
===========================

Formula
-------
Bill = Distance_km x Per_KM_Rate   (rate of the cab that drove the trip)

No base fare, surge or rounding: the bill is exactly the product of the
inputs.  Fare estimates apply the same formula to every available cab of
a car type and report the cheapest and dearest outcome.

Complexity: O(1) per bill, O(C) for an estimate over C cabs.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Iterable


def compute_bill(distance_in_km: float, per_km_rate: float) -> float:
    return distance_in_km * per_km_rate


@dataclass(frozen=True)
class FareEstimate:
    car_type: str
    min_fare: float
    max_fare: float


def estimate_fares(cabs: Iterable[Any], distance_in_km: float) -> list[FareEstimate]:
    """Group available *cabs* by car type and bound the fare for each type."""
    rates: dict[str, list[float]] = defaultdict(list)
    for cab in cabs:
        if not cab.is_available or cab.per_km_rate is None:
            continue
        rates[cab.car_type].append(cab.per_km_rate)

    return [
        FareEstimate(
            car_type=car_type,
            min_fare=compute_bill(distance_in_km, min(type_rates)),
            max_fare=compute_bill(distance_in_km, max(type_rates)),
        )
        for car_type, type_rates in sorted(rates.items())
    ]
