"""Order initiation — validate a booking request and open a provider order.

No reservation row is written here. Every booking parameter is sent to the
payment provider as order notes and read back during verification, so a
reservation only exists once its payment has been verified.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation

from sqlalchemy.ext.asyncio import AsyncSession

from ridebook.config import settings
from ridebook.database import utcnow
from ridebook.errors import (
    InvalidAmount,
    InvalidReference,
    MissingField,
    NotFound,
    SchedulingConflict,
    Unavailable,
    ValidationError,
)
from ridebook.models import BookingType, User, Vehicle
from ridebook.payments.gateway import PaymentGateway, to_minor_units
from ridebook.payments.razorpay_client import NOTES_MAX_VALUE_LENGTH
from ridebook.services.booking_rules import find_conflict, generate_booking_code, resolve_booking_window

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OrderInitiation:
    provider_order_id: str
    booking_code: str
    amount: Decimal
    amount_minor: int
    currency: str
    booking_type: BookingType
    start_at: datetime
    end_at: datetime | None
    vehicle: Vehicle

    @property
    def message(self) -> str:
        if self.booking_type == BookingType.IMMEDIATE:
            return "Complete payment to confirm immediate booking"
        return f"Complete payment to confirm scheduled booking for {self.start_at:%Y-%m-%d %H:%M} UTC"


def _parse_vehicle_id(value: str | uuid.UUID | None) -> uuid.UUID:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError):
        raise InvalidReference(field="vehicle_id") from None


def _parse_amount(value: Decimal | float | str | None) -> Decimal:
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise InvalidAmount(field="amount") from None
    if not amount.is_finite() or amount <= 0:
        raise InvalidAmount(field="amount")
    amount = amount.quantize(Decimal("0.01"))
    if amount <= 0:
        raise InvalidAmount(field="amount")
    return amount


def _require_place(value: str | None, field: str) -> str:
    place = (value or "").strip()
    if not place:
        raise MissingField("Origin and destination are required", field=field)
    if len(place) > NOTES_MAX_VALUE_LENGTH:
        raise ValidationError(
            f"{field.capitalize()} must be at most {NOTES_MAX_VALUE_LENGTH} characters",
            field=field,
        )
    return place


def _iso(value: datetime | None) -> str:
    return value.isoformat() if value is not None else ""


async def initiate_order(
    db: AsyncSession,
    gateway: PaymentGateway,
    *,
    user: User,
    vehicle_id: str | uuid.UUID | None,
    amount: Decimal | float | str | None,
    origin: str | None,
    destination: str | None,
    start_date: str | datetime | None = None,
    end_date: str | datetime | None = None,
    is_round_trip: bool = False,
    now: datetime | None = None,
) -> OrderInitiation:
    """Validate a booking request and open a payment order for it.

    Checks run in a fixed order and the first failure wins: vehicle id,
    amount, origin/destination, dates, vehicle existence and availability,
    then (scheduled only) the conflict window.
    """
    now = now or utcnow()

    parsed_vehicle_id = _parse_vehicle_id(vehicle_id)
    price = _parse_amount(amount)
    origin = _require_place(origin, "origin")
    destination = _require_place(destination, "destination")
    window = resolve_booking_window(start_date, end_date, now)

    vehicle = await db.get(Vehicle, parsed_vehicle_id)
    if vehicle is None:
        raise NotFound()
    if not vehicle.is_available:
        raise Unavailable()

    if window.booking_type == BookingType.SCHEDULED:
        conflict = await find_conflict(db, vehicle.id, window.start_at, window.end_at)  # type: ignore[arg-type]
        if conflict is not None:
            logger.info(
                "Order for vehicle %s rejected: window %s-%s overlaps %s",
                vehicle.id,
                window.start_at,
                window.end_at,
                conflict.booking_code,
            )
            raise SchedulingConflict()

    booking_code = generate_booking_code(settings.booking_code_prefix, now)
    notes = {
        "vehicle_id": str(vehicle.id),
        "user_id": str(user.id),
        "origin": origin,
        "destination": destination,
        "start_at": _iso(window.start_at),
        "end_at": _iso(window.end_at),
        "is_round_trip": "true" if is_round_trip else "false",
        "booking_type": window.booking_type.value,
        "booking_code": booking_code,
    }

    order = await gateway.create_order(price, settings.currency, booking_code, notes)
    logger.info(
        "Opened %s order %s for booking %s (vehicle %s, user %s, %s %s)",
        window.booking_type.value,
        order.id,
        booking_code,
        vehicle.id,
        user.id,
        price,
        settings.currency,
    )

    return OrderInitiation(
        provider_order_id=order.id,
        booking_code=booking_code,
        amount=price,
        amount_minor=to_minor_units(price),
        currency=settings.currency,
        booking_type=window.booking_type,
        start_at=window.start_at,
        end_at=window.end_at,
        vehicle=vehicle,
    )
