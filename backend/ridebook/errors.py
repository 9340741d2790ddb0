"""Domain error hierarchy for the booking and payment workflow.

Every error carries the HTTP status it maps to and a user-facing message.
Services raise these; ``ridebook.main`` turns them into
``{"success": false, "message": ..., "data": ...}`` responses.

Families:
- ``ValidationError`` (400): bad input shape or range. ``field`` names the input.
- ``AuthzError`` (403, signature 400): ownership or signature mismatch.
- ``NotFoundError`` (404)
- ``ConflictError`` (409): overlap, unavailable vehicle, illegal transition.
- ``ProviderError`` (500): payment or maps provider failure. The message is
  always generic; provider details only reach the logs.
- ``TransactionError`` (500): database transaction aborted after retries.
"""

from fastapi import status


class BookingError(Exception):
    """Base class for all domain errors."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    default_message: str = "Request could not be processed"

    def __init__(self, message: str | None = None, *, field: str | None = None) -> None:
        self.message = message or self.default_message
        self.field = field
        super().__init__(self.message)

    def to_data(self) -> dict | None:
        """Extra payload for the response envelope."""
        if self.field is None:
            return None
        return {"field": self.field}


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class ValidationError(BookingError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid request"


class InvalidReference(ValidationError):
    default_message = "Invalid vehicle ID"


class InvalidAmount(ValidationError):
    default_message = "Amount must be greater than 0"


class MissingField(ValidationError):
    default_message = "Required field is missing"


class InvalidDate(ValidationError):
    default_message = "Invalid date format"


class InvalidWindow(ValidationError):
    default_message = "Please provide both start and end dates or leave both empty for immediate booking"


class RouteNotFound(ValidationError):
    default_message = "Could not calculate route"


# ---------------------------------------------------------------------------
# Authorization
# ---------------------------------------------------------------------------


class AuthzError(BookingError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Not allowed"


class Unauthorized(AuthzError):
    default_message = "Unauthorized payment verification"


class SignatureInvalid(AuthzError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid payment signature"


# ---------------------------------------------------------------------------
# Not found
# ---------------------------------------------------------------------------


class NotFoundError(BookingError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class NotFound(NotFoundError):
    default_message = "Vehicle not found"


class OrderNotFound(NotFoundError):
    default_message = "Order not found"


class NotFoundOrNotCancellable(NotFoundError):
    default_message = "No active paid booking found for this code"


# ---------------------------------------------------------------------------
# Conflicts
# ---------------------------------------------------------------------------


class ConflictError(BookingError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "Request conflicts with the current state"


class Unavailable(ConflictError):
    default_message = "Vehicle is not available for booking"


class VehicleNoLongerAvailable(ConflictError):
    default_message = "Vehicle is no longer available"


class SchedulingConflict(ConflictError):
    default_message = "Vehicle is already booked for the selected time period"


class AlreadyCancelled(ConflictError):
    default_message = "Booking already cancelled"


class InvalidTransition(ConflictError):
    default_message = "Booking cannot move to the requested state"


# ---------------------------------------------------------------------------
# Providers and transactions
# ---------------------------------------------------------------------------


class ProviderError(BookingError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Payment service is unavailable, please try again"


class ProviderTimeout(ProviderError):
    default_message = "Payment service timed out, please try again"


class RefundFailed(ProviderError):
    default_message = "Refund failed, booking was not cancelled. Please try again"


class RefundStatusUnknown(ProviderError):
    default_message = "Refund status is being confirmed with the payment provider. The booking stays active until then"


class TransactionError(BookingError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Could not complete the request, please try again"
