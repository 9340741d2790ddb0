"""Payment verification — turn a verified payment into a confirmed reservation.

The signature check and order lookup happen first; everything that reads or
writes booking state then runs in one transaction that starts by locking
the vehicle row, so duplicate and competing callbacks queue up:

1. replayed callbacks for an already-paid order return the stored reservation
2. the order must belong to the caller
3. the vehicle must still be available
4. scheduled bookings re-run the conflict window check
5. the reservation is written as confirmed/paid
6. immediate bookings take the vehicle out of the pool

Notifications go out after commit and cannot undo the booking.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ridebook.database import utcnow
from ridebook.errors import (
    MissingField,
    NotFound,
    OrderNotFound,
    SchedulingConflict,
    SignatureInvalid,
    Unauthorized,
    VehicleNoLongerAvailable,
)
from ridebook.models import (
    BookingType,
    PaymentProvider,
    PaymentStatus,
    Reservation,
    ReservationStatus,
    User,
    Vehicle,
)
from ridebook.notifications.notifier import Notifier, notify_booking_confirmed
from ridebook.payments.gateway import PaymentGateway, ProviderOrder
from ridebook.services.booking_rules import find_conflict
from ridebook.services.transactions import RETRYABLE_WITH_UNIQUE_KEYS, lock_vehicle, run_in_transaction

logger = logging.getLogger(__name__)

_REQUIRED_NOTES = ("vehicle_id", "user_id", "origin", "destination", "booking_type", "booking_code", "start_at")


@dataclass(frozen=True)
class BookingDetails:
    """Booking parameters carried in the provider order's notes."""

    booking_code: str
    vehicle_id: uuid.UUID
    user_id: str
    origin: str
    destination: str
    booking_type: BookingType
    start_at: datetime | None
    end_at: datetime | None
    is_round_trip: bool

    @classmethod
    def from_order(cls, order: ProviderOrder) -> "BookingDetails":
        notes = order.notes
        missing = [key for key in _REQUIRED_NOTES if key not in notes]
        if missing:
            logger.warning("Order %s is missing booking notes: %s", order.id, ", ".join(missing))
            raise OrderNotFound("Order has no booking details")
        try:
            return cls(
                booking_code=notes["booking_code"],
                vehicle_id=uuid.UUID(notes["vehicle_id"]),
                user_id=notes["user_id"],
                origin=notes["origin"],
                destination=notes["destination"],
                booking_type=BookingType(notes["booking_type"]),
                start_at=datetime.fromisoformat(notes["start_at"]) if notes["start_at"] else None,
                end_at=datetime.fromisoformat(notes["end_at"]) if notes.get("end_at") else None,
                is_round_trip=notes.get("is_round_trip", "false").lower() == "true",
            )
        except ValueError:
            logger.warning("Order %s has malformed booking notes", order.id)
            raise OrderNotFound("Order has no booking details") from None


@dataclass(frozen=True)
class VerificationResult:
    reservation: Reservation
    vehicle: Vehicle | None
    created: bool

    @property
    def message(self) -> str:
        # A replayed verification reports the booking as it stands now.
        status = self.reservation.status
        if status in (ReservationStatus.CANCELLED, ReservationStatus.REFUNDED):
            return f"Booking {self.reservation.booking_code} has already been cancelled"
        if status == ReservationStatus.COMPLETED:
            return f"Booking {self.reservation.booking_code} has already been completed"
        if self.reservation.booking_type == BookingType.IMMEDIATE:
            return "Immediate booking confirmed - driver will contact you shortly"
        return "Scheduled booking confirmed - you will be contacted before pickup time"


async def verify_payment(
    session_factory: async_sessionmaker[AsyncSession],
    gateway: PaymentGateway,
    notifier: Notifier,
    *,
    user: User,
    payment_id: str | None,
    order_id: str | None,
    signature: str | None,
    now: datetime | None = None,
) -> VerificationResult:
    """Verify a completed checkout and confirm its reservation exactly once."""
    if not payment_id:
        raise MissingField("Missing payment details", field="payment_id")
    if not order_id:
        raise MissingField("Missing payment details", field="order_id")
    if not signature:
        raise MissingField("Missing payment details", field="signature")

    if not gateway.verify_signature(order_id, payment_id, signature):
        logger.warning(
            "Rejected payment %s for order %s from user %s: signature mismatch",
            payment_id,
            order_id,
            user.id,
        )
        raise SignatureInvalid()

    order = await gateway.fetch_order(order_id)
    details = BookingDetails.from_order(order)

    async def work(db: AsyncSession) -> VerificationResult:
        vehicle = await lock_vehicle(db, details.vehicle_id)

        result = await db.execute(
            select(Reservation).where(
                or_(
                    Reservation.booking_code == details.booking_code,
                    Reservation.provider_order_id == order.id,
                )
            )
        )
        existing = result.scalars().first()

        if existing is not None and existing.payment_status != PaymentStatus.PENDING:
            if existing.user_id != user.id:
                logger.warning("User %s replayed verification of %s owned by another user", user.id, order.id)
                raise Unauthorized()
            logger.info("Order %s already verified as %s, returning it unchanged", order.id, existing.booking_code)
            return VerificationResult(reservation=existing, vehicle=None, created=False)

        if details.user_id != str(user.id):
            logger.warning(
                "User %s tried to verify order %s opened by user %s",
                user.id,
                order.id,
                details.user_id,
            )
            raise Unauthorized()

        if vehicle is None:
            raise NotFound()
        if not vehicle.is_available:
            logger.info("Vehicle %s became %s before order %s was verified", vehicle.id, vehicle.availability, order.id)
            raise VehicleNoLongerAvailable()

        if details.booking_type == BookingType.SCHEDULED:
            conflict = await find_conflict(
                db,
                vehicle.id,
                details.start_at,  # type: ignore[arg-type]
                details.end_at,  # type: ignore[arg-type]
                exclude_reservation_id=existing.id if existing is not None else None,
            )
            if conflict is not None:
                logger.warning(
                    "Order %s lost the window on vehicle %s to booking %s",
                    order.id,
                    vehicle.id,
                    conflict.booking_code,
                )
                raise SchedulingConflict("Vehicle has been booked by someone else during payment process")

        amount = order.major_amount
        reservation = existing
        if reservation is None:
            reservation = Reservation(
                id=uuid.uuid4(),
                booking_code=details.booking_code,
                vehicle_id=vehicle.id,
                user_id=user.id,
                origin=details.origin,
                destination=details.destination,
                is_round_trip=details.is_round_trip,
                booking_type=details.booking_type,
                start_at=details.start_at or now or utcnow(),
                end_at=details.end_at,
                total_price=amount,
                status=ReservationStatus.PENDING,
                payment_provider=PaymentProvider(gateway.name),
                provider_order_id=order.id,
                payment_amount=amount,
                currency=order.currency.upper(),
            )
            db.add(reservation)

        reservation.provider_payment_id = payment_id
        reservation.payment_status = PaymentStatus.PAID
        reservation.transition_to(ReservationStatus.CONFIRMED)
        await db.flush()

        if details.booking_type == BookingType.IMMEDIATE:
            vehicle.mark_reserved(reservation.id, user.id, user.display_name)
            await db.flush()

        return VerificationResult(reservation=reservation, vehicle=vehicle, created=True)

    outcome = await run_in_transaction(
        session_factory,
        work,
        retry_on=RETRYABLE_WITH_UNIQUE_KEYS,
        label=f"verify order {order.id}",
    )

    if outcome.created:
        logger.info(
            "Confirmed %s booking %s on vehicle %s for user %s",
            outcome.reservation.booking_type.value,
            outcome.reservation.booking_code,
            outcome.reservation.vehicle_id,
            user.id,
        )
        try:
            await notify_booking_confirmed(notifier, outcome.reservation, user, outcome.vehicle)
        except Exception:
            logger.exception("Confirmation notifications failed for %s", outcome.reservation.booking_code)

    return outcome
