"""Pydantic v2 schemas for the vehicle catalogue."""

import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict

from ridebook.models import VehicleAvailability


class VehicleResponse(BaseModel):
    """Public vehicle information."""

    id: uuid.UUID
    name: str
    brand: str
    vehicle_type: str
    seats: int
    license_plate: str | None = None
    base_location: str | None = None
    description: str | None = None
    features: list | None = None
    price_per_km: Decimal | None = None
    price_per_hour: Decimal | None = None
    availability: VehicleAvailability
    booked_by_name: str | None = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class VehicleListResponse(BaseModel):
    """Paginated list of vehicles."""

    items: list[VehicleResponse]
    total: int


class MaintenanceRequest(BaseModel):
    enabled: bool = True
