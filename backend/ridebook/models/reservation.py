"""Reservation model — a paid booking of a vehicle, with its payment record."""

import enum
import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import Boolean, Enum, ForeignKey, Index, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from ridebook.database import Base, TimestampMixin, UUIDPrimaryKeyMixin
from ridebook.errors import InvalidTransition


class ReservationStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    REFUNDED = "refunded"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    REFUNDED = "refunded"
    NO_REFUND = "no_refund"
    REFUND_FAILED = "refund_failed"
    REFUND_UNKNOWN = "refund_unknown"


class BookingType(str, enum.Enum):
    IMMEDIATE = "immediate"
    SCHEDULED = "scheduled"


class PaymentProvider(str, enum.Enum):
    RAZORPAY = "razorpay"
    STRIPE = "stripe"
    PAYPAL = "paypal"
    OTHER = "other"


# Statuses that hold a vehicle's time window.
ACTIVE_STATUSES = (ReservationStatus.PENDING, ReservationStatus.CONFIRMED)

TRANSITIONS: dict[ReservationStatus, frozenset[ReservationStatus]] = {
    ReservationStatus.PENDING: frozenset({ReservationStatus.CONFIRMED, ReservationStatus.CANCELLED}),
    ReservationStatus.CONFIRMED: frozenset(
        {ReservationStatus.CANCELLED, ReservationStatus.REFUNDED, ReservationStatus.COMPLETED}
    ),
    ReservationStatus.CANCELLED: frozenset(),
    ReservationStatus.COMPLETED: frozenset(),
    ReservationStatus.REFUNDED: frozenset(),
}


def _str_enum(enum_cls: type[enum.Enum], length: int = 20) -> Enum:
    return Enum(
        enum_cls,
        native_enum=False,
        length=length,
        values_callable=lambda members: [m.value for m in members],
    )


class Reservation(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A vehicle reservation.

    Rows are only written once the payment has been verified, so a fresh row
    is already ``confirmed``/``paid``. ``booking_code`` and
    ``provider_order_id`` are the two idempotency keys.
    """

    __tablename__ = "reservations"

    booking_code: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    vehicle_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("vehicles.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    # Trip
    origin: Mapped[str] = mapped_column(String(256), nullable=False)
    destination: Mapped[str] = mapped_column(String(256), nullable=False)
    is_round_trip: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    booking_type: Mapped[BookingType] = mapped_column(_str_enum(BookingType), nullable=False)
    start_at: Mapped[datetime] = mapped_column(nullable=False)
    end_at: Mapped[datetime | None] = mapped_column(nullable=True)

    total_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    status: Mapped[ReservationStatus] = mapped_column(
        _str_enum(ReservationStatus),
        default=ReservationStatus.PENDING,
        nullable=False,
        index=True,
    )

    # Payment
    payment_provider: Mapped[PaymentProvider] = mapped_column(
        _str_enum(PaymentProvider),
        default=PaymentProvider.RAZORPAY,
        nullable=False,
    )
    provider_payment_id: Mapped[str] = mapped_column(String(64), nullable=False)
    provider_order_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    payment_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="INR")
    payment_status: Mapped[PaymentStatus] = mapped_column(
        _str_enum(PaymentStatus),
        default=PaymentStatus.PENDING,
        nullable=False,
        index=True,
    )
    refund_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    failure_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (Index("ix_reservations_vehicle_start", "vehicle_id", "start_at"),)

    @property
    def is_refunded(self) -> bool:
        return self.payment_status == PaymentStatus.REFUNDED

    def transition_to(self, new_status: ReservationStatus) -> None:
        """Move to ``new_status`` or raise :class:`InvalidTransition`."""
        if new_status not in TRANSITIONS[self.status]:
            raise InvalidTransition(f"Booking cannot move from {self.status.value} to {new_status.value}")
        self.status = new_status

    def __repr__(self) -> str:
        return (
            f"<Reservation(code={self.booking_code!r}, vehicle_id={self.vehicle_id}, "
            f"status={self.status}, payment_status={self.payment_status})>"
        )
