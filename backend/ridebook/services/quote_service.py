"""Quote calculator — price every available vehicle for a route."""

import logging
import math
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ridebook.errors import MissingField
from ridebook.maps.distance import DistanceProvider, Route
from ridebook.models import Vehicle, VehicleAvailability

logger = logging.getLogger(__name__)

_CENTS = Decimal("0.01")


def calculate_price(distance_km: Decimal | float, rate_per_km: Decimal | float | None) -> Decimal | None:
    """``round(distance * rate, 2)``, or ``None`` when the inputs cannot be priced.

    A missing, zero or negative rate, or a negative / non-finite distance,
    means the vehicle is left out of the quote rather than an error.
    """
    if rate_per_km is None:
        return None
    distance = Decimal(str(distance_km))
    rate = Decimal(str(rate_per_km))
    if not distance.is_finite() or distance < 0:
        return None
    if not rate.is_finite() or rate <= 0:
        return None
    return (distance * rate).quantize(_CENTS, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class PricedVehicle:
    vehicle: Vehicle
    rate: Decimal
    distance_km: Decimal
    total_price: Decimal


def price_vehicles(distance_km: Decimal, vehicles: list[Vehicle]) -> list[PricedVehicle]:
    """Price ``vehicles`` and sort them cheapest first.

    The sort is stable, so equal prices keep the input order.
    """
    if not math.isfinite(float(distance_km)) or distance_km < 0:
        return []
    priced = []
    for vehicle in vehicles:
        total = calculate_price(distance_km, vehicle.price_per_km)
        if total is None:
            continue
        priced.append(
            PricedVehicle(
                vehicle=vehicle,
                rate=Decimal(vehicle.price_per_km),
                distance_km=distance_km,
                total_price=total,
            )
        )
    priced.sort(key=lambda item: item.total_price)
    return priced


@dataclass(frozen=True)
class Quote:
    origin: str
    destination: str
    route: Route
    vehicles: list[PricedVehicle]
    candidates: int

    @property
    def price_range(self) -> tuple[Decimal, Decimal] | None:
        if not self.vehicles:
            return None
        prices = [item.total_price for item in self.vehicles]
        return min(prices), max(prices)


async def quote_route(
    db: AsyncSession,
    distance_provider: DistanceProvider,
    origin: str | None,
    destination: str | None,
) -> Quote:
    """Look up the route distance and price every available vehicle for it."""
    origin = (origin or "").strip()
    destination = (destination or "").strip()
    if not origin:
        raise MissingField("Origin is required", field="origin")
    if not destination:
        raise MissingField("Destination is required", field="destination")

    route = await distance_provider.distance(origin, destination)

    result = await db.execute(
        select(Vehicle)
        .where(
            Vehicle.availability == VehicleAvailability.AVAILABLE,
            Vehicle.price_per_km.is_not(None),
            Vehicle.price_per_km > 0,
        )
        .order_by(Vehicle.created_at, Vehicle.id)
    )
    vehicles = list(result.scalars().all())
    priced = price_vehicles(route.km, vehicles)
    logger.info(
        "Quoted %s -> %s (%s km): %d of %d vehicles priced",
        origin,
        destination,
        route.km,
        len(priced),
        len(vehicles),
    )
    return Quote(
        origin=origin,
        destination=destination,
        route=route,
        vehicles=priced,
        candidates=len(vehicles),
    )
