"""SQLAlchemy models for RideBook.

All models are imported here so that Alembic's autogenerate can discover
them via Base.metadata. If you add a new model, import it in this file.
"""

from ridebook.models.reservation import (
    ACTIVE_STATUSES,
    BookingType,
    PaymentProvider,
    PaymentStatus,
    Reservation,
    ReservationStatus,
)
from ridebook.models.user import User
from ridebook.models.vehicle import Vehicle, VehicleAvailability

__all__ = [
    "ACTIVE_STATUSES",
    "BookingType",
    "PaymentProvider",
    "PaymentStatus",
    "Reservation",
    "ReservationStatus",
    "User",
    "Vehicle",
    "VehicleAvailability",
]
