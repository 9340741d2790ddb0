"""Razorpay-style payment signatures: HMAC-SHA256 over ``order_id|payment_id``."""

import hashlib
import hmac


def compute_signature(secret: str, order_id: str, payment_id: str) -> str:
    """Return the hex digest the provider sends back after a successful checkout."""
    message = f"{order_id}|{payment_id}".encode("utf-8")
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def verify_signature(secret: str, order_id: str, payment_id: str, signature: str) -> bool:
    """Constant-time comparison of ``signature`` against the expected digest."""
    if not secret or not signature:
        return False
    expected = compute_signature(secret, order_id, payment_id)
    return hmac.compare_digest(expected.encode("utf-8"), signature.encode("utf-8"))
