"""
Razorpay Gateway - order, cancel and payment-fetch calls

Wraps the Razorpay SDK for order creation and payment lookups, and the
REST API directly for voiding an authorized payment (not covered by the SDK).
Provider failures are translated into the service's error taxonomy.
"""

import asyncio
import logging
import math
import time
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx
import razorpay
from razorpay.errors import BadRequestError, GatewayError as SDKGatewayError, ServerError

from sspl_backend.config import Settings
from sspl_backend.core.exceptions import GatewayError, InternalError, InvalidArgument

logger = logging.getLogger(__name__)

CURRENCY = "INR"
PAYMENT_ID_PREFIX = "pay_"
PAISE = Decimal("0.01")


def to_minor_units(amount: Any) -> int:
    """
    Convert a rupee amount to paise, rounding half-up at the paisa.

    10.005 -> 1001, 500 -> 50000.

    Raises:
        InvalidArgument: amount missing, non-numeric, non-finite or not positive
    """
    # bool is an int subclass; a JSON true is not an amount
    if amount is None or isinstance(amount, bool) or not isinstance(amount, (int, float, Decimal)):
        raise InvalidArgument("Invalid amount provided")
    if isinstance(amount, float) and not math.isfinite(amount):
        raise InvalidArgument("Invalid amount provided")
    if isinstance(amount, Decimal) and not amount.is_finite():
        raise InvalidArgument("Invalid amount provided")

    try:
        rupees = Decimal(str(amount)).quantize(PAISE, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise InvalidArgument("Invalid amount provided")

    paise = int(rupees * 100)
    if paise <= 0:
        raise InvalidArgument("Invalid amount provided")
    return paise


def validate_payment_id(payment_id: Any) -> str:
    if not payment_id or not isinstance(payment_id, str) or not payment_id.startswith(PAYMENT_ID_PREFIX):
        raise InvalidArgument("Invalid or missing paymentId")
    return payment_id


def idempotency_key_for(payment_id: str) -> str:
    """Same payment id always maps to the same key, so a cancel can be retried safely."""
    return f"cancel-{payment_id}-v1"


class RazorpayGateway:
    """
    Client for the Razorpay order and payment APIs.

    Both the SDK client and the HTTP client are injected so the gateway
    can be swapped for test doubles; credentials are read-only for the
    process lifetime.
    """

    def __init__(
        self,
        key_id: str,
        key_secret: str,
        client: Optional[razorpay.Client] = None,
        http: Optional[httpx.AsyncClient] = None,
        api_url: str = "https://api.razorpay.com/v1",
        receipt_prefix: str = "sspl",
    ):
        self.key_id = key_id
        self.key_secret = key_secret
        self.client = client or razorpay.Client(auth=(key_id, key_secret))
        self.http = http or httpx.AsyncClient()
        self.api_url = api_url.rstrip("/")
        self.receipt_prefix = receipt_prefix

    @classmethod
    def from_settings(cls, settings: Settings, http: Optional[httpx.AsyncClient] = None) -> "RazorpayGateway":
        return cls(
            key_id=settings.RAZORPAY_KEY_ID,
            key_secret=settings.RAZORPAY_KEY_SECRET,
            http=http,
            api_url=settings.RAZORPAY_API_URL,
            receipt_prefix=settings.RECEIPT_PREFIX,
        )

    async def aclose(self) -> None:
        await self.http.aclose()

    def new_receipt(self) -> str:
        return f"{self.receipt_prefix}_{int(time.time() * 1000)}"

    async def create_order(self, amount: Any, notes: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        """
        Create a Razorpay order for an entry fee.

        Args:
            amount: Amount in rupees
            notes: Optional key/value notes stored on the order

        Returns:
            The Razorpay order object, unchanged
        """
        amount_in_paise = to_minor_units(amount)

        order_data = {
            "amount": amount_in_paise,
            "currency": CURRENCY,
            "receipt": self.new_receipt(),
            "payment_capture": 1,
        }
        if notes:
            order_data["notes"] = notes

        logger.info(f"Creating Razorpay order for {amount_in_paise} paise")

        try:
            # SDK is blocking; keep the event loop free
            order = await asyncio.to_thread(self.client.order.create, data=order_data)
        except (BadRequestError, SDKGatewayError, ServerError) as e:
            logger.error(f"Razorpay order creation failed: {e}")
            raise GatewayError(500, str(e) or "Failed to create order")
        except Exception as e:
            logger.error(f"Unexpected error creating Razorpay order: {e}")
            raise InternalError(str(e) or "Failed to create order")

        logger.info(f"Created Razorpay order {order.get('id')}")
        return order

    async def cancel_payment(self, payment_id: Any) -> Dict[str, Any]:
        """
        Void an authorized payment.

        Args:
            payment_id: Razorpay payment id (pay_...)

        Returns:
            The Razorpay payment object (status "voided")

        Raises:
            InvalidArgument: payment id missing or malformed, before any request
            GatewayError: Razorpay answered with a non-success status
            InternalError: network failure or unreadable success body
        """
        payment_id = validate_payment_id(payment_id)
        url = f"{self.api_url}/payments/{quote(payment_id, safe='')}/cancel"

        try:
            response = await self.http.post(
                url,
                json={},
                auth=(self.key_id, self.key_secret),
                headers={"X-Razorpay-Idempotency-Key": idempotency_key_for(payment_id)},
            )
        except httpx.HTTPError as e:
            logger.error(f"Razorpay cancel request failed for {payment_id}: {e}")
            raise InternalError("Internal server error")

        try:
            data = response.json()
        except ValueError:
            data = None

        if not response.is_success:
            error = data.get("error") if isinstance(data, dict) else None
            error = error if isinstance(error, dict) else None
            details = error or {}
            logger.error(
                f"Razorpay cancel error for {payment_id}: status={response.status_code} "
                f"code={details.get('code')} description={details.get('description')} "
                f"reason={details.get('reason')} field={details.get('field')} "
                f"metadata={details.get('metadata')}"
            )
            raise GatewayError(
                response.status_code,
                details.get("description") or "Cancel failed",
                body=error,
            )

        if data is None:
            logger.error(f"Razorpay cancel for {payment_id} returned an unreadable body")
            raise InternalError("Internal server error")

        logger.info(f"Payment {payment_id} voided: status={data.get('status')}")
        return data

    async def fetch_payment(self, payment_id: Any) -> Dict[str, Any]:
        """Fetch full payment details from Razorpay."""
        payment_id = validate_payment_id(payment_id)
        try:
            return await asyncio.to_thread(self.client.payment.fetch, payment_id)
        except BadRequestError as e:
            logger.error(f"Failed to fetch payment {payment_id}: {e}")
            raise GatewayError(400, str(e) or "Failed to fetch payment")
        except (SDKGatewayError, ServerError) as e:
            logger.error(f"Failed to fetch payment {payment_id}: {e}")
            raise GatewayError(502, str(e) or "Failed to fetch payment")

    async def ping(self) -> None:
        """Read-only connectivity check used by the detailed health endpoint."""
        await asyncio.to_thread(self.client.order.all, {"count": 1})
