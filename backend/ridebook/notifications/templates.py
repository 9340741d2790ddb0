"""Plain-text email templates for booking notifications."""

TEMPLATES = {
    "booking_confirmation": {
        "subject": "Booking Confirmed: {booking_code}",
        "body": (
            "Dear {user_name},\n\n"
            "Your payment was successful and your booking has been confirmed.\n\n"
            "Booking Details:\n"
            "- Booking code: {booking_code}\n"
            "- Vehicle: {vehicle_name}\n"
            "- From: {origin}\n"
            "- To: {destination}\n"
            "- Round trip: {round_trip}\n"
            "- Pickup: {start_at}\n"
            "- Return: {end_at}\n"
            "- Amount paid: {currency} {amount}\n\n"
            "{booking_type_note}\n\n"
            "Best regards,\nRideBook"
        ),
    },
    "admin_new_booking": {
        "subject": "New {booking_type} booking: {booking_code}",
        "body": (
            "A new booking has been paid and confirmed.\n\n"
            "- Booking code: {booking_code}\n"
            "- Customer: {user_name} <{user_email}>\n"
            "- Vehicle: {vehicle_name}\n"
            "- From: {origin}\n"
            "- To: {destination}\n"
            "- Pickup: {start_at}\n"
            "- Return: {end_at}\n"
            "- Amount: {currency} {amount}\n"
            "- Payment id: {payment_id}\n\n"
            "Action: {admin_action}"
        ),
    },
    "booking_cancellation": {
        "subject": "Booking Cancelled: {booking_code}",
        "body": (
            "Dear {user_name},\n\n"
            "Your booking {booking_code} for {vehicle_name} has been cancelled.\n\n"
            "{refund_note}\n\n"
            "If you have any questions, please don't hesitate to contact us.\n\n"
            "Best regards,\nRideBook"
        ),
    },
    "refund_processed": {
        "subject": "Refund Successful: {booking_code}",
        "body": (
            "Dear {user_name},\n\n"
            "We have refunded {currency} {amount} for booking {booking_code}.\n"
            "Refund reference: {refund_id}\n\n"
            "The amount usually reaches your account within 5-7 working days.\n\n"
            "Best regards,\nRideBook"
        ),
    },
    "admin_booking_cancelled": {
        "subject": "Booking cancelled: {booking_code}",
        "body": (
            "Booking {booking_code} was cancelled by {user_name} <{user_email}>.\n\n"
            "- Vehicle: {vehicle_name} (released)\n"
            "- Payment status: {payment_status}\n"
            "- Refund id: {refund_id}\n"
        ),
    },
}

VALID_TEMPLATES = set(TEMPLATES.keys())


class _Defaults(dict):
    def __missing__(self, key: str) -> str:
        return "-"


def render(template: str, data: dict) -> tuple[str, str]:
    """Return ``(subject, body)`` for ``template`` filled from ``data``.

    Placeholders without a value render as ``-``.
    """
    if template not in VALID_TEMPLATES:
        raise KeyError(f"Invalid template '{template}'. Must be one of: {', '.join(sorted(VALID_TEMPLATES))}")
    values = _Defaults({key: value for key, value in data.items() if value is not None})
    parts = TEMPLATES[template]
    return parts["subject"].format_map(values), parts["body"].format_map(values)
