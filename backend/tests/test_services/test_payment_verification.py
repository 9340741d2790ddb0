"""Tests for payment verification: idempotence, ownership, signatures and availability."""

import uuid
from datetime import datetime

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

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
    VehicleAvailability,
)
from ridebook.services.cancellation_service import cancel_by_code
from ridebook.services.order_service import initiate_order
from ridebook.services.verification_service import verify_payment

pytestmark = pytest.mark.asyncio


async def _open_order(session_factory, gateway, user, vehicle, **kwargs):
    async with session_factory() as db:
        return await initiate_order(
            db,
            gateway,
            user=user,
            vehicle_id=str(vehicle.id),
            amount=kwargs.pop("amount", "250"),
            origin="A",
            destination="B",
            **kwargs,
        )


async def _verify(session_factory, gateway, notifier, user, order_id, payment_id="pay_test123", signature=None):
    return await verify_payment(
        session_factory,
        gateway,
        notifier,
        user=user,
        payment_id=payment_id,
        order_id=order_id,
        signature=signature if signature is not None else gateway.sign(order_id, payment_id),
    )


async def _reservation_count(db: AsyncSession) -> int:
    return (await db.execute(select(func.count()).select_from(Reservation))).scalar_one()


class TestVerifyImmediate:
    async def test_creates_confirmed_reservation_and_reserves_vehicle(
        self, db_session: AsyncSession, session_factory, gateway, notifier, test_user, test_vehicle
    ):
        order = await _open_order(session_factory, gateway, test_user, test_vehicle)

        result = await _verify(session_factory, gateway, notifier, test_user, order.provider_order_id)

        assert result.created is True
        reservation = result.reservation
        assert reservation.booking_code == order.booking_code
        assert reservation.status == ReservationStatus.CONFIRMED
        assert reservation.payment_status == PaymentStatus.PAID
        assert reservation.payment_provider == PaymentProvider.RAZORPAY
        assert reservation.provider_order_id == order.provider_order_id
        assert reservation.provider_payment_id == "pay_test123"
        assert reservation.booking_type == BookingType.IMMEDIATE
        assert reservation.end_at is None
        assert str(reservation.payment_amount) == "250.00"

        await db_session.refresh(test_vehicle)
        assert test_vehicle.availability == VehicleAvailability.RESERVED
        assert test_vehicle.current_reservation_id == reservation.id
        assert test_vehicle.booked_by_id == test_user.id
        assert test_vehicle.booked_by_name == test_user.name

    async def test_sends_confirmation_and_admin_alert(
        self, session_factory, gateway, notifier, test_user, test_vehicle
    ):
        order = await _open_order(session_factory, gateway, test_user, test_vehicle)
        await _verify(session_factory, gateway, notifier, test_user, order.provider_order_id)

        assert notifier.templates == ["booking_confirmation", "admin_new_booking"]
        to, _, data = notifier.sent[0]
        assert to == test_user.email
        assert data["booking_code"] == order.booking_code

    async def test_replay_is_idempotent(
        self, db_session: AsyncSession, session_factory, gateway, notifier, test_user, test_vehicle
    ):
        order = await _open_order(session_factory, gateway, test_user, test_vehicle)
        first = await _verify(session_factory, gateway, notifier, test_user, order.provider_order_id)
        second = await _verify(session_factory, gateway, notifier, test_user, order.provider_order_id)

        assert second.created is False
        assert second.reservation.id == first.reservation.id
        assert await _reservation_count(db_session) == 1
        # Notifications only go out for the first confirmation.
        assert notifier.templates.count("booking_confirmation") == 1

    async def test_replay_after_cancellation_reports_cancelled(
        self, db_session: AsyncSession, session_factory, gateway, notifier, test_user, test_vehicle
    ):
        order = await _open_order(session_factory, gateway, test_user, test_vehicle)
        first = await _verify(session_factory, gateway, notifier, test_user, order.provider_order_id)
        assert "confirmed" in first.message
        await cancel_by_code(session_factory, gateway, notifier, user=test_user, booking_code=order.booking_code)

        replay = await _verify(session_factory, gateway, notifier, test_user, order.provider_order_id)

        assert replay.created is False
        assert replay.reservation.status == ReservationStatus.REFUNDED
        assert replay.message == f"Booking {order.booking_code} has already been cancelled"
        assert "confirmed" not in replay.message

    async def test_replay_after_completion_reports_completed(
        self, db_session: AsyncSession, session_factory, gateway, notifier, test_user, test_vehicle
    ):
        order = await _open_order(session_factory, gateway, test_user, test_vehicle)
        first = await _verify(session_factory, gateway, notifier, test_user, order.provider_order_id)
        stored = await db_session.get(Reservation, first.reservation.id)
        stored.status = ReservationStatus.COMPLETED
        await db_session.flush()

        replay = await _verify(session_factory, gateway, notifier, test_user, order.provider_order_id)

        assert replay.message == f"Booking {order.booking_code} has already been completed"

    async def test_notifier_failure_does_not_undo_booking(
        self, db_session: AsyncSession, session_factory, gateway, test_user, test_vehicle
    ):
        class BrokenNotifier:
            async def send(self, to, template, data):
                raise RuntimeError("smtp down")

        order = await _open_order(session_factory, gateway, test_user, test_vehicle)
        result = await _verify(session_factory, gateway, BrokenNotifier(), test_user, order.provider_order_id)

        assert result.created is True
        assert await _reservation_count(db_session) == 1


class TestVerifyRejections:
    async def test_tampered_signature_changes_nothing(
        self, db_session: AsyncSession, session_factory, gateway, notifier, test_user, test_vehicle
    ):
        order = await _open_order(session_factory, gateway, test_user, test_vehicle)
        good = gateway.sign(order.provider_order_id, "pay_test123")
        tampered = good[:-1] + ("0" if good[-1] != "0" else "1")

        with pytest.raises(SignatureInvalid):
            await _verify(session_factory, gateway, notifier, test_user, order.provider_order_id, signature=tampered)

        assert await _reservation_count(db_session) == 0
        await db_session.refresh(test_vehicle)
        assert test_vehicle.availability == VehicleAvailability.AVAILABLE
        assert test_vehicle.current_reservation_id is None
        assert notifier.sent == []

    @pytest.mark.parametrize("missing", ["payment_id", "order_id", "signature"])
    async def test_missing_fields(self, session_factory, gateway, notifier, test_user, missing):
        fields = {"payment_id": "pay_1", "order_id": "order_1", "signature": "abc"}
        fields[missing] = ""
        with pytest.raises(MissingField) as exc_info:
            await verify_payment(session_factory, gateway, notifier, user=test_user, **fields)
        assert exc_info.value.field == missing

    async def test_unknown_order(self, session_factory, gateway, notifier, test_user):
        with pytest.raises(OrderNotFound):
            await _verify(session_factory, gateway, notifier, test_user, "order_missing")

    async def test_order_without_booking_notes(self, session_factory, gateway, notifier, test_user):
        order = await gateway.create_order(100, "INR", "rcpt", {})
        with pytest.raises(OrderNotFound):
            await _verify(session_factory, gateway, notifier, test_user, order.id)

    async def test_other_users_order_rejected(
        self, db_session: AsyncSession, session_factory, gateway, notifier, test_user, other_user, test_vehicle
    ):
        order = await _open_order(session_factory, gateway, test_user, test_vehicle)

        with pytest.raises(Unauthorized):
            await _verify(session_factory, gateway, notifier, other_user, order.provider_order_id)
        assert await _reservation_count(db_session) == 0

    async def test_replay_by_other_user_rejected(
        self, session_factory, gateway, notifier, test_user, other_user, test_vehicle
    ):
        order = await _open_order(session_factory, gateway, test_user, test_vehicle)
        await _verify(session_factory, gateway, notifier, test_user, order.provider_order_id)

        with pytest.raises(Unauthorized):
            await _verify(session_factory, gateway, notifier, other_user, order.provider_order_id)

    async def test_vehicle_taken_between_order_and_payment(
        self, db_session: AsyncSession, session_factory, gateway, notifier, test_user, other_user, test_vehicle
    ):
        mine = await _open_order(session_factory, gateway, test_user, test_vehicle)
        theirs = await _open_order(session_factory, gateway, other_user, test_vehicle)
        await _verify(session_factory, gateway, notifier, other_user, theirs.provider_order_id, payment_id="pay_theirs")

        with pytest.raises(VehicleNoLongerAvailable):
            await _verify(session_factory, gateway, notifier, test_user, mine.provider_order_id)
        assert await _reservation_count(db_session) == 1

    async def test_vehicle_sent_to_maintenance_before_payment(
        self, db_session: AsyncSession, session_factory, gateway, notifier, test_user, test_vehicle
    ):
        order = await _open_order(session_factory, gateway, test_user, test_vehicle)
        test_vehicle.availability = VehicleAvailability.MAINTENANCE
        await db_session.flush()

        with pytest.raises(VehicleNoLongerAvailable):
            await _verify(session_factory, gateway, notifier, test_user, order.provider_order_id)


class TestVerifyScheduled:
    async def test_scheduled_booking_leaves_vehicle_available(
        self, db_session: AsyncSession, session_factory, gateway, notifier, test_user, test_vehicle
    ):
        order = await _open_order(
            session_factory,
            gateway,
            test_user,
            test_vehicle,
            start_date="2026-11-01T09:00:00",
            end_date="2026-11-01T18:00:00",
        )
        result = await _verify(session_factory, gateway, notifier, test_user, order.provider_order_id)

        assert result.reservation.booking_type == BookingType.SCHEDULED
        assert result.reservation.start_at == datetime(2026, 11, 1, 9)
        assert result.reservation.end_at == datetime(2026, 11, 1, 18)
        await db_session.refresh(test_vehicle)
        assert test_vehicle.availability == VehicleAvailability.AVAILABLE

    async def test_window_taken_during_payment(
        self, db_session: AsyncSession, session_factory, gateway, notifier, test_user, other_user, test_vehicle
    ):
        window = {"start_date": "2026-11-01T09:00:00", "end_date": "2026-11-01T18:00:00"}
        mine = await _open_order(session_factory, gateway, test_user, test_vehicle, **window)
        theirs = await _open_order(
            session_factory,
            gateway,
            other_user,
            test_vehicle,
            start_date="2026-11-01T17:00:00",
            end_date="2026-11-01T20:00:00",
        )
        await _verify(session_factory, gateway, notifier, other_user, theirs.provider_order_id, payment_id="pay_theirs")

        with pytest.raises(SchedulingConflict, match="during payment process"):
            await _verify(session_factory, gateway, notifier, test_user, mine.provider_order_id)
        assert await _reservation_count(db_session) == 1


class TestVerifyUnknownVehicle:
    async def test_vehicle_deleted_after_order(self, session_factory, gateway, notifier, test_user):
        order = await gateway.create_order(
            250,
            "INR",
            "RBTEST",
            {
                "vehicle_id": str(uuid.uuid4()),
                "user_id": str(test_user.id),
                "origin": "A",
                "destination": "B",
                "start_at": "2026-10-19T10:00:00",
                "end_at": "",
                "is_round_trip": "false",
                "booking_type": "immediate",
                "booking_code": "RBTEST",
            },
        )
        with pytest.raises(NotFound):
            await _verify(session_factory, gateway, notifier, test_user, order.id)
