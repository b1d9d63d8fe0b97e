"""Deterministic freight pricing.

price = ceil_to_100((base + max(100, km) * per_km + m3 * per_m3
                     + tons * per_ton + pallets * per_pallet) * multiplier)

Every term is non-negative and the rounding is monotone, so the price never
decreases when weight or distance grows.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, timedelta

from src.swiftship.agents.quote.schemas import Coordinates, QuoteDraft, ServiceLevel

EARTH_RADIUS_KM = 6371.0
DEFAULT_DISTANCE_KM = 1000.0
MINIMUM_BILLED_KM = 100.0
DEFAULT_SERVICE_LEVEL = ServiceLevel.STANDARD


@dataclass(frozen=True)
class ServiceRate:
    base_price: float
    per_km: float
    per_m3: float
    per_ton: float
    per_pallet: float
    multiplier: float
    transit_days: tuple[int, int]

    @property
    def transit_label(self) -> str:
        low, high = self.transit_days
        return f"{low}-{high} business days"


SERVICE_RATES: dict[ServiceLevel, ServiceRate] = {
    ServiceLevel.EXPRESS: ServiceRate(2000, 2.5, 10, 20, 15, 1.5, (1, 2)),
    ServiceLevel.STANDARD: ServiceRate(1500, 1.8, 8, 15, 12, 1.0, (3, 5)),
    ServiceLevel.ECO: ServiceRate(1000, 1.2, 6, 12, 10, 0.8, (5, 7)),
}


@dataclass(frozen=True)
class ServiceOption:
    level: ServiceLevel
    price: float
    transit: str
    estimated_delivery: date | None

    def to_wire(self) -> dict:
        return {
            "id": self.level.value,
            "name": self.level.label,
            "price": self.price,
            "duration": self.transit,
            "estimatedDelivery": self.estimated_delivery.isoformat() if self.estimated_delivery else None,
        }


def haversine_km(origin: Coordinates, destination: Coordinates) -> float:
    """Great-circle distance in kilometers."""
    lat1, lat2 = math.radians(origin.latitude), math.radians(destination.latitude)
    dlat = lat2 - lat1
    dlon = math.radians(destination.longitude - origin.longitude)
    a = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def route_distance_km(draft: QuoteDraft) -> float:
    """Distance between resolved coordinates, or the default when either is missing."""
    if draft.route.origin_coords and draft.route.destination_coords:
        return round(haversine_km(draft.route.origin_coords, draft.route.destination_coords), 1)
    return DEFAULT_DISTANCE_KM


def calculate_price(
    level: ServiceLevel,
    distance_km: float,
    weight_tons: float,
    volume_m3: float = 0.0,
    pallet_count: int = 0,
) -> float:
    rate = SERVICE_RATES[level]
    amount = (
        rate.base_price
        + max(MINIMUM_BILLED_KM, distance_km) * rate.per_km
        + max(0.0, volume_m3) * rate.per_m3
        + max(0.0, weight_tons) * rate.per_ton
        + max(0, pallet_count) * rate.per_pallet
    )
    return float(math.ceil(round(amount * rate.multiplier, 6) / 100) * 100)


def add_business_days(start: date, days: int) -> date:
    current = start
    remaining = days
    while remaining > 0:
        current += timedelta(days=1)
        if current.weekday() < 5:
            remaining -= 1
    return current


def estimate_delivery(pickup: date | None, level: ServiceLevel) -> date | None:
    if pickup is None:
        return None
    return add_business_days(pickup, SERVICE_RATES[level].transit_days[1])


def service_options(draft: QuoteDraft, distance_km: float) -> list[ServiceOption]:
    """Price every service level for the draft's package and route."""
    package = draft.package
    return [
        ServiceOption(
            level=level,
            price=calculate_price(
                level,
                distance_km,
                package.weight or 0.0,
                package.volume or 0.0,
                package.pallet_count or 0,
            ),
            transit=rate.transit_label,
            estimated_delivery=estimate_delivery(draft.route.pickup_date, level),
        )
        for level, rate in SERVICE_RATES.items()
    ]
