"""
Razorpay checkout signature verification.

The hosted checkout returns razorpay_order_id, razorpay_payment_id and
razorpay_signature on success. The signature is
HMAC-SHA256(key_secret, "<order_id>|<payment_id>") in hex.
"""

import hmac
import hashlib


def generate_signature(order_id: str, payment_id: str, secret: str) -> str:
    """Compute the hex signature Razorpay issues for an order/payment pair."""
    payload = f"{order_id}|{payment_id}"
    return hmac.new(
        secret.encode(),
        payload.encode(),
        hashlib.sha256
    ).hexdigest()


def verify_signature(order_id: str, payment_id: str, signature: str, secret: str) -> bool:
    """
    Check a checkout signature against the server-held secret.

    Returns:
        True only when the signature matches; False for any mismatch
        or non-string input.
    """
    if not all(isinstance(v, str) for v in (order_id, payment_id, signature, secret)):
        return False

    expected_signature = generate_signature(order_id, payment_id, secret)

    # Constant-time comparison; only ASCII input is comparable as str
    try:
        return hmac.compare_digest(expected_signature, signature)
    except TypeError:
        return False
