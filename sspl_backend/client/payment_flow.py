"""
Client payment flow for player registrations.

Drives one payment attempt against the backend the way the registration
page does: create an order, open the hosted Razorpay checkout, then verify
on success or void on failure. The checkout widget itself runs in the
browser; here it is an injected async callable.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional, Union

import httpx

from sspl_backend.core.exceptions import InvalidArgument
from sspl_backend.services.razorpay_gateway import PAYMENT_ID_PREFIX

logger = logging.getLogger(__name__)

KEY_PREFIXES = ("rzp_test_", "rzp_live_")
SUPPORT_MESSAGE = (
    "Payment was successful but verification failed. "
    "Please contact support with your payment ID."
)


class PaymentApiError(Exception):
    """Backend answered with a non-success status, or could not be reached."""

    def __init__(self, status_code: Optional[int], message: str, body: Any = None):
        self.status_code = status_code
        self.message = message
        self.body = body
        super().__init__(f"Payment API error ({status_code}): {message}")


@dataclass
class Registration:
    id: str
    full_name: str
    email: str
    phone: str


@dataclass
class CheckoutRequest:
    """Options handed to the hosted checkout."""
    key: str
    order_id: str
    amount: int  # paise
    currency: str
    name: str
    prefill: Dict[str, str]


@dataclass
class CheckoutSuccess:
    razorpay_payment_id: str
    razorpay_order_id: str
    razorpay_signature: str


@dataclass
class CheckoutFailure:
    code: Optional[str] = None
    description: Optional[str] = None
    reason: Optional[str] = None
    source: Optional[str] = None
    step: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def payment_id(self) -> Optional[str]:
        """Set when the payment was authorized before the checkout failed."""
        return self.metadata.get("payment_id")


CheckoutResult = Union[CheckoutSuccess, CheckoutFailure]
Checkout = Callable[[CheckoutRequest], Awaitable[CheckoutResult]]
FailureHook = Callable[[str, CheckoutFailure], Awaitable[None]]


class FlowState(str, Enum):
    PAID = "paid"
    # Money captured but not confirmed; the payer must contact support
    VERIFICATION_FAILED = "verification_failed"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class FlowResult:
    state: FlowState
    registration_id: str
    order_id: Optional[str] = None
    payment_id: Optional[str] = None
    message: Optional[str] = None


class PaymentApiClient:
    """HTTP client for the backend payment endpoints."""

    def __init__(self, http: httpx.AsyncClient, prefix: str = "/api/razorpay", fallback_key_id: Optional[str] = None):
        self.http = http
        self.prefix = prefix.rstrip("/")
        self.fallback_key_id = fallback_key_id
        self._key_id: Optional[str] = None

    async def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        try:
            response = await self.http.request(method, f"{self.prefix}{path}", **kwargs)
        except httpx.HTTPError as e:
            raise PaymentApiError(None, str(e))

        try:
            body = response.json()
        except ValueError:
            body = {"raw": response.text}

        if not response.is_success:
            message = None
            if isinstance(body, dict):
                razorpay_error = body.get("razorpay") or {}
                message = body.get("error") or razorpay_error.get("description")
            raise PaymentApiError(response.status_code, message or response.text or "Request failed", body)
        return body

    async def get_config(self) -> Dict[str, Any]:
        return await self._request("GET", "/config")

    async def resolve_key_id(self) -> str:
        """
        Public key id for the checkout, from /config with the fallback key
        as a last resort. Cached after the first success.
        """
        if self._key_id:
            return self._key_id

        key_id = None
        try:
            data = await self.get_config()
            key_id = (
                data.get("razorpayKeyId")
                or data.get("key")
                or data.get("publicKey")
                or data.get("razorpay_key_id")
            )
        except PaymentApiError as e:
            logger.warning(f"Could not load /config, using fallback key: {e.message}")

        key_id = key_id or self.fallback_key_id
        if not key_id:
            raise InvalidArgument("Razorpay key not available from /config and no fallback key set")
        if len(key_id) < 20 or not key_id.startswith(KEY_PREFIXES):
            raise InvalidArgument(f"Invalid Razorpay key format: {key_id[:8]}...")

        self._key_id = key_id
        return key_id

    async def create_order(self, amount: float, registration: Optional[Registration] = None) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"amount": amount}
        if registration:
            payload.update({
                "registrationId": registration.id,
                "full_name": registration.full_name,
                "email": registration.email,
                "phone": registration.phone,
            })
        return await self._request("POST", "/create-order", json=payload)

    async def verify_payment(
        self,
        payment_id: str,
        order_id: str,
        signature: str,
        registration_id: Optional[str] = None,
        amount: Optional[float] = None,
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "paymentId": payment_id,
            "orderId": order_id,
            "signature": signature,
        }
        if registration_id:
            payload["registrationId"] = registration_id
        if amount:
            payload["amount"] = amount
        return await self._request("POST", "/verify-payment", json=payload)

    async def cancel_payment(self, payment_id: str) -> Dict[str, Any]:
        if not payment_id or not isinstance(payment_id, str) or not payment_id.startswith(PAYMENT_ID_PREFIX):
            raise InvalidArgument("Invalid paymentId")
        return await self._request("POST", "/cancel", json={"paymentId": payment_id})


class PaymentFlowController:
    """
    One payment attempt for a registration.

    Order: create order -> checkout -> verify (success) or void (failure).
    A verify error after a successful checkout is reported as
    VERIFICATION_FAILED, never as a plain failure.
    """

    def __init__(
        self,
        api: PaymentApiClient,
        checkout: Checkout,
        on_failure: Optional[FailureHook] = None,
        merchant_name: str = "SSPL T10",
    ):
        self.api = api
        self.checkout = checkout
        self.on_failure = on_failure
        self.merchant_name = merchant_name

    async def pay(self, registration: Registration, amount: float) -> FlowResult:
        order = await self.api.create_order(amount, registration)
        key_id = await self.api.resolve_key_id()
        logger.info(f"Order {order['id']} created for registration {registration.id}")

        outcome = await self.checkout(
            CheckoutRequest(
                key=key_id,
                order_id=order["id"],
                amount=order["amount"],
                currency=order.get("currency", "INR"),
                name=self.merchant_name,
                prefill={
                    "name": registration.full_name,
                    "email": registration.email,
                    "contact": registration.phone,
                },
            )
        )

        if isinstance(outcome, CheckoutSuccess):
            return await self._confirm(registration, amount, outcome)
        return await self._abandon(registration, order["id"], outcome)

    async def _confirm(self, registration: Registration, amount: float, success: CheckoutSuccess) -> FlowResult:
        try:
            await self.api.verify_payment(
                success.razorpay_payment_id,
                success.razorpay_order_id,
                success.razorpay_signature,
                registration.id,
                amount,
            )
        except PaymentApiError as e:
            logger.error(
                f"Verification failed for captured payment {success.razorpay_payment_id} "
                f"(registration {registration.id}): {e.message}"
            )
            return FlowResult(
                state=FlowState.VERIFICATION_FAILED,
                registration_id=registration.id,
                order_id=success.razorpay_order_id,
                payment_id=success.razorpay_payment_id,
                message=SUPPORT_MESSAGE,
            )

        return FlowResult(
            state=FlowState.PAID,
            registration_id=registration.id,
            order_id=success.razorpay_order_id,
            payment_id=success.razorpay_payment_id,
        )

    async def _abandon(self, registration: Registration, order_id: str, failure: CheckoutFailure) -> FlowResult:
        logger.warning(
            f"Checkout failed for registration {registration.id}: "
            f"code={failure.code} reason={failure.reason} step={failure.step}"
        )

        cancelled = False
        payment_id = failure.payment_id
        if payment_id:
            try:
                await self.api.cancel_payment(payment_id)
                cancelled = True
                logger.info(f"Voided authorized payment {payment_id}")
            except (PaymentApiError, InvalidArgument) as e:
                logger.warning(f"Could not void payment {payment_id}: {e}")

        if self.on_failure is not None:
            try:
                await self.on_failure(registration.id, failure)
            except Exception as e:
                logger.error(f"Failure hook raised for registration {registration.id}: {e}")

        return FlowResult(
            state=FlowState.CANCELLED if cancelled else FlowState.FAILED,
            registration_id=registration.id,
            order_id=order_id,
            payment_id=payment_id,
            message=failure.description or failure.reason or "Payment failed. Please try again.",
        )
