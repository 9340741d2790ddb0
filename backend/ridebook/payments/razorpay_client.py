"""Async Razorpay REST client for RideBook.

Orders carry the whole booking in their ``notes`` so payment verification
does not need a local row. Razorpay limits notes to 15 keys with values of
at most 256 characters each.
"""

import logging
from decimal import Decimal

import httpx

from ridebook.config import settings
from ridebook.errors import OrderNotFound, ProviderError, ProviderTimeout
from ridebook.payments.gateway import ProviderOrder, ProviderRefund, to_minor_units
from ridebook.payments.signature import verify_signature

logger = logging.getLogger(__name__)

NOTES_MAX_KEYS = 15
NOTES_MAX_VALUE_LENGTH = 256


def _order_from_payload(payload: dict) -> ProviderOrder:
    notes = payload.get("notes") or {}
    # Razorpay returns an empty list instead of an object when there are no notes
    if not isinstance(notes, dict):
        notes = {}
    return ProviderOrder(
        id=payload["id"],
        amount=int(payload["amount"]),
        currency=payload.get("currency", settings.currency),
        receipt=payload.get("receipt"),
        status=payload.get("status"),
        notes={key: "" if value is None else str(value) for key, value in notes.items()},
    )


def _refund_from_payload(payload: dict) -> ProviderRefund:
    return ProviderRefund(
        id=payload["id"],
        payment_id=payload.get("payment_id", ""),
        amount=int(payload.get("amount", 0)),
        status=payload.get("status", "pending"),
    )


class RazorpayGateway:
    """Razorpay Orders / Refunds API over httpx."""

    name = "razorpay"

    def __init__(
        self,
        key_id: str,
        key_secret: str,
        base_url: str = "https://api.razorpay.com/v1",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._key_id = key_id
        self._key_secret = key_secret
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    @property
    def key_id(self) -> str:
        return self._key_id

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._base_url,
            auth=(self._key_id, self._key_secret),
            timeout=self._timeout,
            transport=self._transport,
        )

    async def _request(self, method: str, path: str, json: dict | None = None) -> dict:
        try:
            async with self._client() as client:
                response = await client.request(method, path, json=json)
                response.raise_for_status()
                return response.json()
        except httpx.TimeoutException as e:
            logger.error("Razorpay %s %s timed out after %ss", method, path, self._timeout)
            raise ProviderTimeout() from e
        except httpx.HTTPStatusError as e:
            logger.error(
                "Razorpay %s %s failed with HTTP %s: %s",
                method,
                path,
                e.response.status_code,
                e.response.text,
            )
            raise
        except httpx.HTTPError as e:
            logger.error("Razorpay %s %s transport error: %s", method, path, e)
            raise ProviderError() from e

    async def create_order(
        self, amount: Decimal, currency: str, receipt: str, notes: dict[str, str]
    ) -> ProviderOrder:
        """Open an order for ``amount`` (major units) with the booking in ``notes``."""
        if len(notes) > NOTES_MAX_KEYS:
            raise ValueError(f"Razorpay accepts at most {NOTES_MAX_KEYS} note keys")
        logger.info("Creating Razorpay order for receipt %s (%s %s)", receipt, amount, currency)
        try:
            payload = await self._request(
                "POST",
                "/orders",
                json={
                    "amount": to_minor_units(amount),
                    "currency": currency,
                    "receipt": receipt,
                    "notes": notes,
                },
            )
        except httpx.HTTPStatusError as e:
            raise ProviderError() from e
        order = _order_from_payload(payload)
        logger.info("Created Razorpay order %s for receipt %s", order.id, receipt)
        return order

    async def fetch_order(self, order_id: str) -> ProviderOrder:
        """Retrieve an order and its notes by id."""
        try:
            payload = await self._request("GET", f"/orders/{order_id}")
        except httpx.HTTPStatusError as e:
            if e.response.status_code in (400, 404):
                raise OrderNotFound() from e
            raise ProviderError() from e
        return _order_from_payload(payload)

    async def refund(self, payment_id: str, amount: Decimal, notes: dict[str, str]) -> ProviderRefund:
        """Refund ``amount`` (major units) of a captured payment."""
        logger.info("Requesting Razorpay refund of %s for payment %s", amount, payment_id)
        try:
            payload = await self._request(
                "POST",
                f"/payments/{payment_id}/refund",
                json={"amount": to_minor_units(amount), "speed": "normal", "notes": notes},
            )
        except httpx.HTTPStatusError as e:
            raise ProviderError() from e
        refund = _refund_from_payload(payload)
        logger.info("Razorpay refund %s created for payment %s (%s)", refund.id, payment_id, refund.status)
        return refund

    async def list_refunds(self, payment_id: str) -> list[ProviderRefund]:
        """All refunds recorded against a payment."""
        try:
            payload = await self._request("GET", f"/payments/{payment_id}/refunds")
        except httpx.HTTPStatusError as e:
            raise ProviderError() from e
        return [_refund_from_payload(item) for item in payload.get("items", [])]

    def verify_signature(self, order_id: str, payment_id: str, signature: str) -> bool:
        return verify_signature(self._key_secret, order_id, payment_id, signature)


def get_payment_gateway() -> RazorpayGateway:
    """Create the configured gateway (FastAPI dependency)."""
    return RazorpayGateway(
        key_id=settings.razorpay_key_id,
        key_secret=settings.razorpay_key_secret,
        base_url=settings.razorpay_base_url,
        timeout=settings.razorpay_timeout_seconds,
    )
