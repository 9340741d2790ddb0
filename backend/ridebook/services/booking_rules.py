"""Shared booking rules: booking codes, time windows, conflicts, refund window."""

import secrets
import string
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ridebook.database import to_naive_utc
from ridebook.errors import InvalidDate, InvalidWindow
from ridebook.models import ACTIVE_STATUSES, BookingType, Reservation

_CODE_ALPHABET = string.ascii_uppercase + string.digits

# Values older clients send for "no date".
_EMPTY_DATE_VALUES = {"", "null", "undefined", "none"}


def generate_booking_code(prefix: str, now: datetime) -> str:
    """``<prefix><6 random alphanumerics><YYYYMMDDHHMMSS>``, e.g. ``RBX7K2QD20261019101500``."""
    suffix = "".join(secrets.choice(_CODE_ALPHABET) for _ in range(6))
    return f"{prefix}{suffix}{now.strftime('%Y%m%d%H%M%S')}"


@dataclass(frozen=True)
class BookingWindow:
    booking_type: BookingType
    start_at: datetime
    end_at: datetime | None


def _has_value(value: str | datetime | None) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return value.strip().lower() not in _EMPTY_DATE_VALUES
    return True


def _parse_datetime(value: str | datetime, field: str) -> datetime:
    if isinstance(value, datetime):
        return to_naive_utc(value)
    try:
        parsed = datetime.fromisoformat(value.strip())
    except ValueError:
        raise InvalidDate(f"Invalid date format for {field}", field=field) from None
    return to_naive_utc(parsed)


def resolve_booking_window(
    start_date: str | datetime | None,
    end_date: str | datetime | None,
    now: datetime,
) -> BookingWindow:
    """Classify a request as immediate (no dates) or scheduled (both dates).

    Supplying only one of the two dates is an error.
    """
    has_start = _has_value(start_date)
    has_end = _has_value(end_date)

    if not has_start and not has_end:
        return BookingWindow(BookingType.IMMEDIATE, now, None)

    if has_start and has_end:
        start_at = _parse_datetime(start_date, "start_date")  # type: ignore[arg-type]
        end_at = _parse_datetime(end_date, "end_date")  # type: ignore[arg-type]
        if end_at <= start_at:
            raise InvalidWindow("End time must be after start time", field="end_date")
        return BookingWindow(BookingType.SCHEDULED, start_at, end_at)

    raise InvalidWindow(field="start_date" if not has_start else "end_date")


def windows_overlap(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    """Closed-interval overlap: touching endpoints count as a conflict."""
    return a_start <= b_end and a_end >= b_start


async def find_conflict(
    db: AsyncSession,
    vehicle_id: uuid.UUID,
    start_at: datetime,
    end_at: datetime,
    exclude_reservation_id: uuid.UUID | None = None,
) -> Reservation | None:
    """Return an active reservation whose window overlaps ``[start_at, end_at]``."""
    query = select(Reservation).where(
        Reservation.vehicle_id == vehicle_id,
        Reservation.status.in_(ACTIVE_STATUSES),
        Reservation.end_at.is_not(None),
        Reservation.start_at <= end_at,
        Reservation.end_at >= start_at,
    )
    if exclude_reservation_id is not None:
        query = query.where(Reservation.id != exclude_reservation_id)

    result = await db.execute(query.limit(1))
    return result.scalar_one_or_none()


def hours_since(moment: datetime, now: datetime) -> float:
    return (now - moment) / timedelta(hours=1)


def is_refund_eligible(created_at: datetime, now: datetime, window_hours: int) -> bool:
    """Refunds are granted up to and including ``window_hours`` after booking."""
    return hours_since(created_at, now) <= window_hours
