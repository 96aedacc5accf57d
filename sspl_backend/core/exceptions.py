"""Error taxonomy for the payment service."""
from typing import Any, Dict, List, Optional


class PaymentError(Exception):
    """Base error carrying the HTTP status the API layer should answer with."""

    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class InvalidArgument(PaymentError):
    """Bad amount, malformed payment id or a missing required field."""

    status_code = 400


class SignatureMismatch(PaymentError):
    """Checkout signature did not match the server-computed HMAC."""

    status_code = 400

    def __init__(self, message: str = "Invalid signature"):
        super().__init__(message)


class GatewayError(PaymentError):
    """Razorpay rejected a request; keeps the provider status and error body."""

    def __init__(self, status_code: int, message: str, body: Optional[Dict[str, Any]] = None):
        self.body = body
        super().__init__(message, status_code)


class StorageError(PaymentError):
    """Registration store write failed."""


class InternalError(PaymentError):
    """Network or parse failure, or anything unexpected."""


class ConfigurationError(Exception):
    """Required configuration is missing at startup."""

    def __init__(self, message: str, missing: Optional[List[str]] = None):
        self.message = message
        self.missing = missing or []
        super().__init__(self.message)
