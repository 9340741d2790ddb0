"""Best-effort booking notifications.

Notifications are sent after the booking transaction has committed. A
failure is logged and reported as ``False``; it never propagates.
"""

import asyncio
import logging
import smtplib
from email.message import EmailMessage
from typing import Protocol

from ridebook.config import settings
from ridebook.models import Reservation, User, Vehicle
from ridebook.models.reservation import BookingType, PaymentStatus
from ridebook.notifications.templates import render

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    async def send(self, to: str, template: str, data: dict) -> bool: ...


class EmailNotifier:
    """Render templates and deliver them over SMTP.

    Without an SMTP host the rendered message is only logged, which keeps
    local development and tests free of a mail server.
    """

    def __init__(
        self,
        host: str = "",
        port: int = 587,
        username: str = "",
        password: str = "",
        sender: str = "",
        use_tls: bool = True,
        timeout: float = 10.0,
    ) -> None:
        self._host = host
        self._port = port
        self._username = username
        self._password = password
        self._sender = sender
        self._use_tls = use_tls
        self._timeout = timeout

    async def send(self, to: str, template: str, data: dict) -> bool:
        if not to:
            logger.warning("Skipping %s notification: no recipient", template)
            return False
        try:
            subject, body = render(template, data)
            if not self._host:
                logger.info("Notification %s to %s (SMTP disabled): %s", template, to, subject)
                return True
            message = EmailMessage()
            message["From"] = self._sender
            message["To"] = to
            message["Subject"] = subject
            message.set_content(body)
            await asyncio.to_thread(self._deliver, message)
        except Exception:
            logger.exception("Failed to send %s notification to %s", template, to)
            return False
        logger.info("Sent %s notification to %s", template, to)
        return True

    def _deliver(self, message: EmailMessage) -> None:
        with smtplib.SMTP(self._host, self._port, timeout=self._timeout) as smtp:
            if self._use_tls:
                smtp.starttls()
            if self._username:
                smtp.login(self._username, self._password)
            smtp.send_message(message)


def get_notifier() -> EmailNotifier:
    """Create the configured notifier (FastAPI dependency)."""
    return EmailNotifier(
        host=settings.smtp_host,
        port=settings.smtp_port,
        username=settings.smtp_username,
        password=settings.smtp_password,
        sender=settings.email_sender,
        use_tls=settings.smtp_use_tls,
        timeout=settings.smtp_timeout_seconds,
    )


# ---------------------------------------------------------------------------
# Booking notifications
# ---------------------------------------------------------------------------


def _booking_data(reservation: Reservation, user: User, vehicle: Vehicle | None) -> dict:
    return {
        "booking_code": reservation.booking_code,
        "booking_type": reservation.booking_type.value,
        "user_name": user.display_name,
        "user_email": user.email,
        "vehicle_name": f"{vehicle.brand} {vehicle.name}" if vehicle else "your vehicle",
        "origin": reservation.origin,
        "destination": reservation.destination,
        "round_trip": "yes" if reservation.is_round_trip else "no",
        "start_at": reservation.start_at.strftime("%Y-%m-%d %H:%M UTC"),
        "end_at": reservation.end_at.strftime("%Y-%m-%d %H:%M UTC") if reservation.end_at else None,
        "amount": f"{reservation.payment_amount:.2f}",
        "currency": reservation.currency,
        "payment_id": reservation.provider_payment_id,
        "payment_status": reservation.payment_status.value,
        "refund_id": reservation.refund_id,
    }


async def notify_booking_confirmed(
    notifier: Notifier, reservation: Reservation, user: User, vehicle: Vehicle | None
) -> None:
    """Send the customer confirmation and the admin alert."""
    data = _booking_data(reservation, user, vehicle)
    if reservation.booking_type == BookingType.IMMEDIATE:
        data["booking_type_note"] = "Immediate booking confirmed. Our driver will contact you shortly."
        data["admin_action"] = "Arrange immediate pickup"
    else:
        data["booking_type_note"] = "Scheduled booking confirmed. You will be contacted before pickup time."
        data["admin_action"] = "Schedule pickup as per booking time"

    await notifier.send(user.email, "booking_confirmation", data)
    await notifier.send(settings.admin_notification_email, "admin_new_booking", data)


async def notify_booking_cancelled(
    notifier: Notifier, reservation: Reservation, user: User, vehicle: Vehicle | None
) -> None:
    """Send the refund receipt (if any), the cancellation notice and the admin alert."""
    data = _booking_data(reservation, user, vehicle)
    if reservation.payment_status == PaymentStatus.REFUNDED:
        data["refund_note"] = f"A full refund of {reservation.currency} {data['amount']} has been issued."
        await notifier.send(user.email, "refund_processed", data)
    else:
        data["refund_note"] = (
            f"The booking was cancelled more than {settings.refund_window_hours} hours after payment, "
            "so no refund is available."
        )

    await notifier.send(user.email, "booking_cancellation", data)
    await notifier.send(settings.admin_notification_email, "admin_booking_cancelled", data)
