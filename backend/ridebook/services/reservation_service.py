"""Reservation reads and admin lifecycle operations."""

import logging
import uuid

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ridebook.errors import NotFound, NotFoundError, Unauthorized
from ridebook.models import Reservation, ReservationStatus, User, Vehicle
from ridebook.services.cancellation_service import release_vehicle_for
from ridebook.services.transactions import lock_vehicle, run_in_transaction

logger = logging.getLogger(__name__)


async def get_reservation(db: AsyncSession, reservation_id: uuid.UUID, user: User) -> Reservation:
    """Fetch one reservation. Customers only see their own; admins see all."""
    reservation = await db.get(Reservation, reservation_id)
    if reservation is None:
        raise NotFoundError("Booking not found")
    if reservation.user_id != user.id and not user.is_admin:
        raise Unauthorized("You do not have access to this booking")
    return reservation


async def list_user_reservations(
    db: AsyncSession,
    user: User,
    *,
    status: ReservationStatus | None = None,
    skip: int = 0,
    limit: int = 20,
) -> tuple[list[Reservation], int]:
    """Return one page of the user's reservations (newest first) and the total count."""
    query = select(Reservation).where(Reservation.user_id == user.id)
    count_query = select(func.count()).select_from(Reservation).where(Reservation.user_id == user.id)
    if status is not None:
        query = query.where(Reservation.status == status)
        count_query = count_query.where(Reservation.status == status)

    total = (await db.execute(count_query)).scalar_one()
    result = await db.execute(
        query.order_by(Reservation.created_at.desc(), Reservation.id).offset(skip).limit(limit)
    )
    return list(result.scalars().all()), total


async def complete_reservation(
    session_factory: async_sessionmaker[AsyncSession],
    *,
    booking_code: str,
) -> tuple[Reservation, Vehicle | None]:
    """Mark a confirmed trip as completed and return its vehicle to the pool."""
    code = booking_code.strip()

    async def work(db: AsyncSession) -> tuple[Reservation, Vehicle | None]:
        reservation = (
            await db.execute(select(Reservation).where(Reservation.booking_code == code))
        ).scalar_one_or_none()
        if reservation is None:
            raise NotFoundError("Booking not found")
        vehicle = await lock_vehicle(db, reservation.vehicle_id)
        await db.refresh(reservation)

        reservation.transition_to(ReservationStatus.COMPLETED)
        release_vehicle_for(vehicle, reservation)
        await db.flush()
        return reservation, vehicle

    reservation, vehicle = await run_in_transaction(session_factory, work, label=f"complete {code}")
    logger.info("Completed booking %s on vehicle %s", reservation.booking_code, reservation.vehicle_id)
    return reservation, vehicle


async def set_vehicle_maintenance(
    session_factory: async_sessionmaker[AsyncSession],
    vehicle_id: uuid.UUID,
    *,
    enabled: bool,
) -> Vehicle:
    """Take a vehicle out of (or back into) service."""

    async def work(db: AsyncSession) -> Vehicle:
        vehicle = await lock_vehicle(db, vehicle_id)
        if vehicle is None:
            raise NotFound()
        vehicle.set_maintenance(enabled)
        await db.flush()
        return vehicle

    vehicle = await run_in_transaction(session_factory, work, label=f"maintenance {vehicle_id}")
    logger.info("Vehicle %s is now %s", vehicle.id, vehicle.availability.value)
    return vehicle
