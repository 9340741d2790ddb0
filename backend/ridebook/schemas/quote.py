"""Pydantic v2 schemas for route quotes."""

from decimal import Decimal

from pydantic import BaseModel

from ridebook.schemas.vehicle import VehicleResponse


class QuoteRequest(BaseModel):
    origin: str | None = None
    destination: str | None = None


class RouteInfo(BaseModel):
    km: Decimal
    text: str
    duration_text: str
    duration_minutes: int


class QuotedVehicle(BaseModel):
    vehicle: VehicleResponse
    rate_per_km: Decimal
    distance_km: Decimal
    total_price: Decimal
    pricing_model: str = "per-kilometer"


class PriceRange(BaseModel):
    min: Decimal
    max: Decimal


class QuoteResponse(BaseModel):
    """Every available vehicle priced for the route, cheapest first."""

    origin: str
    destination: str
    distance: RouteInfo
    vehicles: list[QuotedVehicle]
    total_vehicles: int
    price_range: PriceRange | None = None
