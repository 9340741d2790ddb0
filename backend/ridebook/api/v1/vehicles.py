"""Vehicle catalogue API router."""

import uuid
from decimal import Decimal

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ridebook.api.deps import get_current_admin, get_db, get_session_factory
from ridebook.errors import NotFound
from ridebook.models import User, Vehicle, VehicleAvailability
from ridebook.schemas.common import ApiResponse, ok
from ridebook.schemas.vehicle import MaintenanceRequest, VehicleListResponse, VehicleResponse
from ridebook.services.reservation_service import set_vehicle_maintenance

router = APIRouter(prefix="/api/v1/vehicles", tags=["vehicles"])


@router.get("", response_model=ApiResponse[VehicleListResponse], summary="List vehicles")
async def list_vehicles(
    vehicle_type: str | None = Query(None, description="Filter by vehicle type"),
    availability: VehicleAvailability | None = Query(None, description="Filter by availability"),
    min_price_per_km: Decimal | None = Query(None, ge=0),
    max_price_per_km: Decimal | None = Query(None, ge=0),
    skip: int = Query(0, ge=0, description="Pagination offset"),
    limit: int = Query(20, ge=1, le=100, description="Pagination limit"),
    db: AsyncSession = Depends(get_db),
) -> dict:
    """Return a page of the fleet, oldest listing first."""
    conditions = []
    if vehicle_type is not None:
        conditions.append(Vehicle.vehicle_type == vehicle_type)
    if availability is not None:
        conditions.append(Vehicle.availability == availability)
    if min_price_per_km is not None:
        conditions.append(Vehicle.price_per_km >= min_price_per_km)
    if max_price_per_km is not None:
        conditions.append(Vehicle.price_per_km <= max_price_per_km)

    total = (await db.execute(select(func.count()).select_from(Vehicle).where(*conditions))).scalar_one()
    result = await db.execute(
        select(Vehicle).where(*conditions).order_by(Vehicle.created_at, Vehicle.id).offset(skip).limit(limit)
    )
    items = list(result.scalars().all())
    return ok({"items": items, "total": total}, f"{total} vehicles")


@router.get("/{vehicle_id}", response_model=ApiResponse[VehicleResponse], summary="Get a vehicle")
async def get_vehicle(vehicle_id: uuid.UUID, db: AsyncSession = Depends(get_db)) -> dict:
    vehicle = await db.get(Vehicle, vehicle_id)
    if vehicle is None:
        raise NotFound()
    return ok(vehicle)


@router.post(
    "/{vehicle_id}/maintenance",
    response_model=ApiResponse[VehicleResponse],
    summary="Move a vehicle into or out of maintenance (admin)",
)
async def toggle_maintenance(
    vehicle_id: uuid.UUID,
    body: MaintenanceRequest,
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    admin: User = Depends(get_current_admin),
) -> dict:
    vehicle = await set_vehicle_maintenance(session_factory, vehicle_id, enabled=body.enabled)
    return ok(vehicle, f"Vehicle is now {vehicle.availability.value}")
