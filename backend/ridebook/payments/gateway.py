"""Payment gateway contract used by the booking services."""

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Protocol


@dataclass(frozen=True)
class ProviderOrder:
    """An order as reported by the payment provider. Amounts are in minor units."""

    id: str
    amount: int
    currency: str
    receipt: str | None = None
    status: str | None = None
    notes: dict[str, str] = field(default_factory=dict)

    @property
    def major_amount(self) -> Decimal:
        return from_minor_units(self.amount)


@dataclass(frozen=True)
class ProviderRefund:
    id: str
    payment_id: str
    amount: int
    status: str  # pending, processed, failed


class PaymentGateway(Protocol):
    """Operations the booking workflow needs from a payment provider."""

    name: str

    async def create_order(
        self, amount: Decimal, currency: str, receipt: str, notes: dict[str, str]
    ) -> ProviderOrder: ...

    async def fetch_order(self, order_id: str) -> ProviderOrder: ...

    async def refund(self, payment_id: str, amount: Decimal, notes: dict[str, str]) -> ProviderRefund: ...

    async def list_refunds(self, payment_id: str) -> list[ProviderRefund]: ...

    def verify_signature(self, order_id: str, payment_id: str, signature: str) -> bool: ...


def to_minor_units(amount: Decimal) -> int:
    """Convert a currency amount to minor units (paise, cents), rounding half up."""
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_minor_units(amount: int) -> Decimal:
    return (Decimal(amount) / 100).quantize(Decimal("0.01"))
