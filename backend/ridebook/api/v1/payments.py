"""Payments API router — order creation, verification, cancellation and booking reads.

Domain errors raised by the services propagate to the application
exception handlers, which render the ``{success, message, data}`` envelope.
"""

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ridebook.api.deps import (
    get_current_active_user,
    get_current_admin,
    get_db,
    get_notifier,
    get_payment_gateway,
    get_session_factory,
)
from ridebook.models import ReservationStatus, User
from ridebook.notifications.notifier import Notifier
from ridebook.payments.gateway import PaymentGateway
from ridebook.schemas.common import ApiResponse, ok
from ridebook.schemas.payment import (
    CancellationResponse,
    CreateOrderRequest,
    OrderResponse,
    ReservationListResponse,
    ReservationResponse,
    VerifyPaymentRequest,
)
from ridebook.services.cancellation_service import cancel_by_code, reconcile_refund
from ridebook.services.order_service import initiate_order
from ridebook.services.reservation_service import (
    complete_reservation,
    get_reservation,
    list_user_reservations,
)
from ridebook.services.verification_service import verify_payment

router = APIRouter(prefix="/api/v1/payments", tags=["payments"])


# ---------------------------------------------------------------------------
# Checkout
# ---------------------------------------------------------------------------


@router.post("/create-order", response_model=ApiResponse[OrderResponse], summary="Open a payment order")
async def create_order(
    body: CreateOrderRequest,
    db: AsyncSession = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    current_user: User = Depends(get_current_active_user),
) -> dict:
    """Validate the booking and open a provider order. No reservation is stored yet."""
    initiation = await initiate_order(
        db,
        gateway,
        user=current_user,
        vehicle_id=body.vehicle_id,
        amount=body.amount,
        origin=body.origin,
        destination=body.destination,
        start_date=body.start_date,
        end_date=body.end_date,
        is_round_trip=body.is_round_trip,
    )
    vehicle = initiation.vehicle
    data = {
        "order_id": initiation.provider_order_id,
        "booking_code": initiation.booking_code,
        "amount": initiation.amount,
        "amount_minor": initiation.amount_minor,
        "currency": initiation.currency,
        "key_id": getattr(gateway, "key_id", ""),
        "booking_type": initiation.booking_type,
        "start_at": initiation.start_at,
        "end_at": initiation.end_at,
        "vehicle_name": f"{vehicle.brand} {vehicle.name}",
    }
    return ok(data, initiation.message)


@router.post("/verify", response_model=ApiResponse[ReservationResponse], summary="Verify a completed payment")
async def verify(
    body: VerifyPaymentRequest,
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    notifier: Notifier = Depends(get_notifier),
    current_user: User = Depends(get_current_active_user),
) -> dict:
    """Check the payment signature and confirm the reservation. Safe to call more than once."""
    outcome = await verify_payment(
        session_factory,
        gateway,
        notifier,
        user=current_user,
        payment_id=body.payment_id,
        order_id=body.order_id,
        signature=body.signature,
    )
    return ok(outcome.reservation, outcome.message)


@router.post(
    "/cancel/{booking_code}",
    response_model=ApiResponse[CancellationResponse],
    summary="Cancel a booking, refunding it inside the refund window",
)
async def cancel(
    booking_code: str,
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    notifier: Notifier = Depends(get_notifier),
    current_user: User = Depends(get_current_active_user),
) -> dict:
    outcome = await cancel_by_code(
        session_factory,
        gateway,
        notifier,
        user=current_user,
        booking_code=booking_code,
    )
    data = {
        "reservation": outcome.reservation,
        "refunded": outcome.refund is not None,
        "refund_id": outcome.refund.id if outcome.refund else None,
        "vehicle_released": outcome.vehicle is not None and outcome.vehicle.is_available,
    }
    return ok(data, outcome.message)


# ---------------------------------------------------------------------------
# Booking reads
# ---------------------------------------------------------------------------


@router.get("/bookings", response_model=ApiResponse[ReservationListResponse], summary="List my bookings")
async def list_bookings(
    status_filter: ReservationStatus | None = Query(
        None,
        alias="status",
        description="Filter by status; refunded cancellations are listed under `refunded`, not `cancelled`",
    ),
    skip: int = Query(0, ge=0, description="Pagination offset"),
    limit: int = Query(20, ge=1, le=100, description="Pagination limit"),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> dict:
    items, total = await list_user_reservations(db, current_user, status=status_filter, skip=skip, limit=limit)
    return ok({"items": items, "total": total})


@router.get("/bookings/{reservation_id}", response_model=ApiResponse[ReservationResponse], summary="Get a booking")
async def get_booking(
    reservation_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> dict:
    reservation = await get_reservation(db, reservation_id, current_user)
    return ok(reservation)


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------


@router.post(
    "/bookings/{booking_code}/complete",
    response_model=ApiResponse[ReservationResponse],
    summary="Mark a trip as completed (admin)",
)
async def complete_booking(
    booking_code: str,
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    admin: User = Depends(get_current_admin),
) -> dict:
    reservation, _ = await complete_reservation(session_factory, booking_code=booking_code)
    return ok(reservation, "Booking completed")


@router.post(
    "/bookings/{booking_code}/reconcile-refund",
    response_model=ApiResponse[ReservationResponse],
    summary="Settle a refund whose outcome is unknown (admin)",
)
async def reconcile(
    booking_code: str,
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    notifier: Notifier = Depends(get_notifier),
    admin: User = Depends(get_current_admin),
) -> dict:
    reservation = await reconcile_refund(session_factory, gateway, notifier, booking_code=booking_code)
    return ok(reservation, f"Payment status is now {reservation.payment_status.value}")
