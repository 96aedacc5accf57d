"""Payment schemas for Razorpay API requests/responses."""
import logging
import math
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

logger = logging.getLogger(__name__)


class CreateOrderRequest(BaseModel):
    """API request to create a Razorpay order."""
    model_config = ConfigDict(populate_by_name=True)

    # Validated by the gateway so bad input maps to "Invalid amount provided"
    amount: Any = Field(None, description="Amount in INR")
    registration_id: Optional[str] = Field(None, alias="registrationId", description="Player registration ID")
    full_name: Optional[str] = Field(None, description="Player name")
    email: Optional[str] = Field(None, description="Player email")
    phone: Optional[str] = Field(None, description="Player phone")

    def order_notes(self) -> Dict[str, str]:
        """Registration details attached to the Razorpay order as notes."""
        notes = {
            "registration_id": self.registration_id,
            "full_name": self.full_name,
            "email": self.email,
            "phone": self.phone,
        }
        return {k: v for k, v in notes.items() if v}


class VerifyPaymentRequest(BaseModel):
    """
    API request to verify a completed checkout.

    Only the signature inputs can reject a request. A registration id or
    amount that cannot be read is dropped so the payment still verifies.
    """
    model_config = ConfigDict(populate_by_name=True)

    payment_id: Optional[str] = Field(None, alias="paymentId", description="Razorpay payment ID")
    order_id: Optional[str] = Field(None, alias="orderId", description="Razorpay order ID")
    signature: Optional[str] = Field(None, description="Razorpay signature for verification")
    registration_id: Optional[str] = Field(None, alias="registrationId", description="Player registration ID")
    amount: Optional[float] = Field(None, description="Amount paid in INR")

    @field_validator("registration_id", mode="before")
    @classmethod
    def coerce_registration_id(cls, v: Any) -> Optional[str]:
        if v is None or isinstance(v, str):
            return v
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        logger.warning(f"Ignoring unreadable registrationId: {v!r}")
        return None

    @field_validator("amount", mode="before")
    @classmethod
    def coerce_amount(cls, v: Any) -> Optional[float]:
        if v is None:
            return None
        if not isinstance(v, bool):
            try:
                amount = float(v)
            except (TypeError, ValueError, OverflowError):
                pass
            else:
                if math.isfinite(amount):
                    return amount
        logger.warning(f"Ignoring unreadable amount: {v!r}")
        return None


class VerifyPaymentResponse(BaseModel):
    """Response after a successful verification."""
    model_config = ConfigDict(populate_by_name=True)

    verified: bool
    registration_id: Optional[str] = Field(None, alias="registrationId")
    payment_id: str = Field(..., alias="paymentId")
    order_id: str = Field(..., alias="orderId")


class CancelPaymentRequest(BaseModel):
    """API request to void an authorized payment."""
    model_config = ConfigDict(populate_by_name=True)

    # Shape is checked by the gateway before any network call
    payment_id: Any = Field(None, alias="paymentId", description="Razorpay payment ID (pay_...)")


class CancelPaymentResponse(BaseModel):
    success: bool
    payment: Dict[str, Any]


class PublicConfigResponse(BaseModel):
    """Non-sensitive runtime config for the frontend."""
    model_config = ConfigDict(populate_by_name=True)

    razorpay_key_id: str = Field(..., alias="razorpayKeyId")
    key: str  # legacy alias used by older frontends
    mode: str
