"""Cancellation and refunds.

A cancellation is one transaction: lock the vehicle, re-read the booking,
refund (inside the refund window), mark the booking and release the
vehicle. If the refund call fails nothing is cancelled. The failure is
written to the booking in the same transaction, while the vehicle lock is
still held, and only then reported to the caller:

- a provider error, or a refund the provider reports as failed, marks the
  payment ``refund_failed``; the user may retry
- a timeout marks it ``refund_unknown``; the booking stays locked until an
  admin reconciles it with the provider, and further cancellation attempts
  are refused without calling the provider again
"""

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ridebook.config import settings
from ridebook.database import utcnow
from ridebook.errors import (
    AlreadyCancelled,
    MissingField,
    NotFoundOrNotCancellable,
    ProviderError,
    ProviderTimeout,
    RefundFailed,
    RefundStatusUnknown,
)
from ridebook.models import (
    ACTIVE_STATUSES,
    PaymentStatus,
    Reservation,
    ReservationStatus,
    User,
    Vehicle,
)
from ridebook.notifications.notifier import Notifier, notify_booking_cancelled
from ridebook.payments.gateway import PaymentGateway, ProviderRefund
from ridebook.services.booking_rules import hours_since, is_refund_eligible
from ridebook.services.transactions import lock_vehicle, run_in_transaction

logger = logging.getLogger(__name__)

NO_REFUND_REASON = "Cancellation after {hours}h, no refund available"
REFUND_REJECTED_REASON = "Refund request was rejected by the payment provider"
REFUND_REPORTED_FAILED_REASON = "Refund was reported failed by the payment provider"
REFUND_TIMEOUT_REASON = "Refund request timed out; outcome unknown until reconciled"

REFUND_FAILED_STATUS = "failed"

_CANCELLABLE_PAYMENTS = (PaymentStatus.PAID, PaymentStatus.REFUND_FAILED)
_TERMINAL_CANCELLED = (ReservationStatus.CANCELLED, ReservationStatus.REFUNDED)


@dataclass(frozen=True)
class CancellationResult:
    reservation: Reservation
    vehicle: Vehicle | None
    refund: ProviderRefund | None
    # Set when the refund did not go through; the booking stays active.
    refund_error: ProviderError | None = None

    @property
    def message(self) -> str:
        if self.refund is not None:
            return "Booking cancelled and refund initiated"
        return "Booking cancelled. No refund is available after the refund window"


def release_vehicle_for(vehicle: Vehicle | None, reservation: Reservation) -> None:
    """Release ``vehicle`` unless another reservation holds it."""
    if vehicle is None:
        return
    if vehicle.current_reservation_id in (None, reservation.id):
        vehicle.release()


async def _load_for_update(db: AsyncSession, booking_code: str, user_id) -> tuple[Reservation, Vehicle | None]:
    query = select(Reservation).where(Reservation.booking_code == booking_code)
    if user_id is not None:
        query = query.where(Reservation.user_id == user_id)
    reservation = (await db.execute(query)).scalar_one_or_none()
    if reservation is None:
        raise NotFoundOrNotCancellable()

    vehicle = await lock_vehicle(db, reservation.vehicle_id)
    # Re-read under the lock; a concurrent cancellation may have committed.
    await db.refresh(reservation)
    return reservation, vehicle


def _check_cancellable(reservation: Reservation) -> None:
    if reservation.status in _TERMINAL_CANCELLED:
        raise AlreadyCancelled()
    if reservation.payment_status == PaymentStatus.REFUND_UNKNOWN:
        raise RefundStatusUnknown()
    if reservation.status not in ACTIVE_STATUSES or reservation.payment_status not in _CANCELLABLE_PAYMENTS:
        raise NotFoundOrNotCancellable()


def _hold_for_refund_error(reservation: Reservation, error: ProviderError, reason: str) -> None:
    """Mark a refund problem on a still-active booking."""
    if isinstance(error, ProviderTimeout):
        reservation.payment_status = PaymentStatus.REFUND_UNKNOWN
        reservation.failure_reason = REFUND_TIMEOUT_REASON
    else:
        reservation.payment_status = PaymentStatus.REFUND_FAILED
        reservation.failure_reason = reason


async def cancel_by_code(
    session_factory: async_sessionmaker[AsyncSession],
    gateway: PaymentGateway,
    notifier: Notifier,
    *,
    user: User,
    booking_code: str | None,
    now: datetime | None = None,
) -> CancellationResult:
    """Cancel the caller's paid booking, refunding it inside the refund window."""
    code = (booking_code or "").strip()
    if not code:
        raise MissingField("Booking code is required", field="booking_code")

    now = now or utcnow()
    # Survive retries so a provider call made before an aborted commit is not repeated.
    issued: dict[str, ProviderRefund] = {}
    refused: dict[str, tuple[ProviderError, str]] = {}

    async def work(db: AsyncSession) -> CancellationResult:
        reservation, vehicle = await _load_for_update(db, code, user.id)
        _check_cancellable(reservation)

        refund = None
        if is_refund_eligible(reservation.created_at, now, settings.refund_window_hours):
            refund = issued.get(code)
            if refund is None and code not in refused:
                try:
                    refund = await gateway.refund(
                        reservation.provider_payment_id,
                        reservation.payment_amount,
                        {"reason": f"User cancelled booking within {settings.refund_window_hours}h"},
                    )
                except ProviderError as e:
                    refused[code] = (e, REFUND_REJECTED_REASON)
                else:
                    if refund.status == REFUND_FAILED_STATUS:
                        refused[code] = (
                            ProviderError(f"Refund {refund.id} reported failed"),
                            REFUND_REPORTED_FAILED_REASON,
                        )
                    else:
                        issued[code] = refund
            if code in refused:
                error, reason = refused[code]
                # Committed with the lock still held so a queued cancellation sees it.
                _hold_for_refund_error(reservation, error, reason)
                await db.flush()
                return CancellationResult(reservation=reservation, vehicle=vehicle, refund=None, refund_error=error)
            reservation.refund_id = refund.id
            reservation.payment_status = PaymentStatus.REFUNDED
            reservation.failure_reason = None
            reservation.transition_to(ReservationStatus.REFUNDED)
        else:
            reservation.payment_status = PaymentStatus.NO_REFUND
            reservation.failure_reason = NO_REFUND_REASON.format(hours=settings.refund_window_hours)
            reservation.transition_to(ReservationStatus.CANCELLED)

        release_vehicle_for(vehicle, reservation)
        await db.flush()
        return CancellationResult(reservation=reservation, vehicle=vehicle, refund=refund)

    outcome = await run_in_transaction(session_factory, work, label=f"cancel {code}")

    if outcome.refund_error is not None:
        if isinstance(outcome.refund_error, ProviderTimeout):
            logger.error("Refund for booking %s timed out; holding it for reconciliation", code)
            raise RefundStatusUnknown() from outcome.refund_error
        logger.error("Refund for booking %s failed: %s; booking left active", code, outcome.refund_error.message)
        raise RefundFailed() from outcome.refund_error

    reservation = outcome.reservation
    logger.info(
        "Cancelled booking %s for user %s %.1fh after payment (%s)",
        reservation.booking_code,
        user.id,
        hours_since(reservation.created_at, now),
        reservation.payment_status.value,
    )
    try:
        await notify_booking_cancelled(notifier, reservation, user, outcome.vehicle)
    except Exception:
        logger.exception("Cancellation notifications failed for %s", reservation.booking_code)
    return outcome


async def reconcile_refund(
    session_factory: async_sessionmaker[AsyncSession],
    gateway: PaymentGateway,
    notifier: Notifier,
    *,
    booking_code: str,
) -> Reservation:
    """Settle a booking whose refund outcome is unknown or failed (admin).

    If the provider holds a non-failed refund for the payment, the
    cancellation is completed; otherwise the payment goes back to ``paid``
    so the customer can cancel again.
    """
    code = booking_code.strip()

    async def load(db: AsyncSession) -> Reservation:
        reservation = (
            await db.execute(select(Reservation).where(Reservation.booking_code == code))
        ).scalar_one_or_none()
        if reservation is None or reservation.payment_status not in (
            PaymentStatus.REFUND_UNKNOWN,
            PaymentStatus.REFUND_FAILED,
        ):
            raise NotFoundOrNotCancellable("No booking awaiting refund reconciliation for this code")
        return reservation

    pending = await run_in_transaction(session_factory, load, label=f"load {code}")
    refunds = await gateway.list_refunds(pending.provider_payment_id)
    settled = next((refund for refund in refunds if refund.status != REFUND_FAILED_STATUS), None)

    async def work(db: AsyncSession) -> tuple[Reservation, Vehicle | None]:
        reservation, vehicle = await _load_for_update(db, code, None)
        if reservation.payment_status not in (PaymentStatus.REFUND_UNKNOWN, PaymentStatus.REFUND_FAILED):
            return reservation, None
        if settled is not None:
            reservation.refund_id = settled.id
            reservation.payment_status = PaymentStatus.REFUNDED
            reservation.failure_reason = None
            reservation.transition_to(ReservationStatus.REFUNDED)
            release_vehicle_for(vehicle, reservation)
        else:
            reservation.payment_status = PaymentStatus.PAID
            reservation.failure_reason = "No refund found at provider; cancellation may be retried"
        await db.flush()
        return reservation, vehicle

    reservation, vehicle = await run_in_transaction(session_factory, work, label=f"reconcile {code}")
    logger.info("Reconciled refund for %s: payment status %s", code, reservation.payment_status.value)

    if settled is not None and vehicle is not None:
        async def load_user(db: AsyncSession) -> User | None:
            return await db.get(User, reservation.user_id)

        owner = await run_in_transaction(session_factory, load_user, label=f"load owner {code}")
        if owner is not None:
            try:
                await notify_booking_cancelled(notifier, reservation, owner, vehicle)
            except Exception:
                logger.exception("Cancellation notifications failed for %s", code)
    return reservation
