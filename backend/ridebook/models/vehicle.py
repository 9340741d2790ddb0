"""Vehicle model — fleet inventory with a single availability state."""

import enum
import uuid
from decimal import Decimal

from sqlalchemy import JSON, Enum, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from ridebook.database import Base, TimestampMixin, UUIDPrimaryKeyMixin
from ridebook.errors import ConflictError


class VehicleAvailability(str, enum.Enum):
    AVAILABLE = "available"
    RESERVED = "reserved"
    MAINTENANCE = "maintenance"


VEHICLE_TYPES = ("sedan", "suv", "bike", "convertible", "truck", "van", "coupe", "wagon", "other")


class Vehicle(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A rentable vehicle.

    ``availability`` is the only booking-state flag. While it is ``reserved``,
    ``current_reservation_id``, ``booked_by_id`` and ``booked_by_name`` point at
    the holder; they are written only through :meth:`mark_reserved` and
    :meth:`release`.
    """

    __tablename__ = "vehicles"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    brand: Mapped[str] = mapped_column(String(255), nullable=False)
    vehicle_type: Mapped[str] = mapped_column(String(50), nullable=False)
    seats: Mapped[int] = mapped_column(Integer, default=4)
    license_plate: Mapped[str | None] = mapped_column(String(32), unique=True, nullable=True)
    base_location: Mapped[str | None] = mapped_column(String(255), default=None)
    description: Mapped[str | None] = mapped_column(Text, default=None)
    features: Mapped[list | None] = mapped_column(JSON, default=list)

    price_per_km: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    price_per_hour: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)

    availability: Mapped[VehicleAvailability] = mapped_column(
        Enum(
            VehicleAvailability,
            native_enum=False,
            length=20,
            values_callable=lambda members: [m.value for m in members],
        ),
        default=VehicleAvailability.AVAILABLE,
        nullable=False,
        index=True,
    )
    current_reservation_id: Mapped[uuid.UUID | None] = mapped_column(nullable=True)
    booked_by_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    booked_by_name: Mapped[str | None] = mapped_column(String(100), nullable=True)

    # Bumped by every transactional writer before it reads booking state.
    lock_version: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    @property
    def is_available(self) -> bool:
        return self.availability == VehicleAvailability.AVAILABLE

    def mark_reserved(self, reservation_id: uuid.UUID, user_id: uuid.UUID, user_name: str) -> None:
        if not self.is_available:
            raise ConflictError(f"Vehicle is {self.availability.value} and cannot be reserved")
        self.availability = VehicleAvailability.RESERVED
        self.current_reservation_id = reservation_id
        self.booked_by_id = user_id
        self.booked_by_name = user_name[:100]

    def release(self) -> None:
        """Return a reserved vehicle to the pool. Maintenance is left untouched."""
        if self.availability == VehicleAvailability.RESERVED:
            self.availability = VehicleAvailability.AVAILABLE
        self.current_reservation_id = None
        self.booked_by_id = None
        self.booked_by_name = None

    def set_maintenance(self, enabled: bool) -> None:
        if enabled:
            if self.availability == VehicleAvailability.RESERVED:
                raise ConflictError("Vehicle is reserved and cannot be moved to maintenance")
            self.availability = VehicleAvailability.MAINTENANCE
        elif self.availability == VehicleAvailability.MAINTENANCE:
            self.availability = VehicleAvailability.AVAILABLE

    def __repr__(self) -> str:
        return f"<Vehicle(id={self.id}, name={self.name!r}, availability={self.availability})>"
