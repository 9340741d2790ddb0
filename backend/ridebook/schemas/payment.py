"""Pydantic v2 request/response schemas for the payment and booking endpoints.

Request models are deliberately permissive: the booking services validate
the values in a fixed order and report the first failure, so fields are
optional here and only coerced. Both snake_case and the camelCase names
used by the checkout widget are accepted.
"""

import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from ridebook.models import BookingType, PaymentProvider, PaymentStatus, ReservationStatus

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class CreateOrderRequest(BaseModel):
    """Booking parameters for a new payment order."""

    vehicle_id: str | None = Field(None, validation_alias=AliasChoices("vehicle_id", "vehicleId"))
    amount: Decimal | str | None = None
    origin: str | None = None
    destination: str | None = None
    start_date: str | None = Field(None, validation_alias=AliasChoices("start_date", "startDate"))
    end_date: str | None = Field(None, validation_alias=AliasChoices("end_date", "endDate"))
    is_round_trip: bool = Field(False, validation_alias=AliasChoices("is_round_trip", "isRoundTrip"))


class VerifyPaymentRequest(BaseModel):
    """Checkout callback fields as posted by the Razorpay widget."""

    payment_id: str | None = Field(None, validation_alias=AliasChoices("payment_id", "razorpay_payment_id"))
    order_id: str | None = Field(None, validation_alias=AliasChoices("order_id", "razorpay_order_id"))
    signature: str | None = Field(None, validation_alias=AliasChoices("signature", "razorpay_signature"))


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class OrderResponse(BaseModel):
    """Everything the client needs to open the checkout widget."""

    order_id: str
    booking_code: str
    amount: Decimal
    amount_minor: int
    currency: str
    key_id: str
    booking_type: BookingType
    start_at: datetime
    end_at: datetime | None = None
    vehicle_name: str


class ReservationResponse(BaseModel):
    """A reservation with its payment record."""

    id: uuid.UUID
    booking_code: str
    vehicle_id: uuid.UUID
    user_id: uuid.UUID
    origin: str
    destination: str
    is_round_trip: bool
    booking_type: BookingType
    start_at: datetime
    end_at: datetime | None = None
    total_price: Decimal
    status: ReservationStatus = Field(
        description=(
            "Lifecycle status. A cancellation refunded inside the refund window ends in `refunded`; "
            "one made after the window ends in `cancelled` with payment_status `no_refund`"
        )
    )
    payment_provider: PaymentProvider
    provider_payment_id: str
    provider_order_id: str
    payment_amount: Decimal
    currency: str
    payment_status: PaymentStatus
    refund_id: str | None = None
    failure_reason: str | None = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ReservationListResponse(BaseModel):
    """Paginated list of reservations."""

    items: list[ReservationResponse]
    total: int


class CancellationResponse(BaseModel):
    reservation: ReservationResponse
    refunded: bool
    refund_id: str | None = None
    vehicle_released: bool
