"""
Payment API endpoints for Razorpay integration.

Handles:
- Order creation
- Checkout signature verification and registration update
- Voiding authorized payments
- Public runtime config for the checkout widget

The same router is mounted under /api and /api/razorpay.
"""

import logging

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from sspl_backend.api.deps import AppSettings, Gateway, Reconciler
from sspl_backend.core.exceptions import (
    GatewayError,
    InvalidArgument,
    PaymentError,
    SignatureMismatch,
)
from sspl_backend.core.signature import verify_signature
from sspl_backend.schemas.payment import (
    CancelPaymentRequest,
    CancelPaymentResponse,
    CreateOrderRequest,
    PublicConfigResponse,
    VerifyPaymentRequest,
    VerifyPaymentResponse,
)
from sspl_backend.services.registration_service import ReconcileOutcome

logger = logging.getLogger(__name__)


router = APIRouter(tags=["Payments"])


def reports_success(endpoint):
    """Mark an endpoint whose error bodies also carry `success: false`."""
    endpoint.reports_success = True
    return endpoint


@router.post(
    "/create-order",
    summary="Create a Razorpay order",
    description="Create a new Razorpay order for a registration fee. Amount is in rupees."
)
async def create_order(data: CreateOrderRequest, gateway: Gateway):
    """
    Create a Razorpay order.

    The returned order (including its id) is passed to the hosted
    checkout by the frontend. Nothing is persisted here.
    """
    logger.info(f"Creating order for amount: {data.amount}")
    order = await gateway.create_order(data.amount, notes=data.order_notes())
    return order


@router.post(
    "/verify-payment",
    response_model=VerifyPaymentResponse,
    summary="Verify payment after checkout",
    description="Verify the Razorpay checkout signature and mark the registration paid."
)
async def verify_payment(data: VerifyPaymentRequest, gateway: Gateway, reconciler: Reconciler):
    """
    Verify a checkout signature.

    The signature is checked before anything else; a mismatch returns 400
    and the registration is left untouched. Once verified, the registration
    update is best effort and its outcome does not change the response.
    """
    if not (data.payment_id and data.order_id and data.signature):
        raise InvalidArgument("paymentId, orderId and signature are required")

    logger.info(
        f"Verifying payment {data.payment_id} for order {data.order_id} "
        f"(registration {data.registration_id})"
    )

    if not verify_signature(data.order_id, data.payment_id, data.signature, gateway.key_secret):
        logger.warning(f"Invalid signature for payment {data.payment_id}, order {data.order_id}")
        raise SignatureMismatch()

    logger.info(f"Payment {data.payment_id} verified")

    result = await reconciler.reconcile(
        data.registration_id,
        data.payment_id,
        data.order_id,
        data.amount,
    )
    if result.outcome == ReconcileOutcome.RECONCILIATION_FAILED:
        logger.error(
            f"Payment {data.payment_id} verified but registration {data.registration_id} "
            f"was not updated: {result.error}"
        )

    # Verification, not storage, is what the payer is told about
    return VerifyPaymentResponse(
        verified=True,
        registration_id=data.registration_id,
        payment_id=data.payment_id,
        order_id=data.order_id,
    )


@router.post(
    "/cancel",
    response_model=CancelPaymentResponse,
    summary="Void an authorized payment",
    description="Cancel an authorized but unconfirmed payment after a failed checkout."
)
@reports_success
async def cancel_payment(data: CancelPaymentRequest, gateway: Gateway):
    """
    Void a payment with Razorpay.

    Provider rejections are passed through with Razorpay's status code
    and error object so the caller sees the diagnostic detail.
    """
    try:
        payment = await gateway.cancel_payment(data.payment_id)
    except GatewayError as e:
        return JSONResponse(
            status_code=e.status_code,
            content={"success": False, "error": e.message, "razorpay": e.body},
        )
    except PaymentError as e:
        return JSONResponse(
            status_code=e.status_code,
            content={"success": False, "error": e.message},
        )

    return CancelPaymentResponse(success=True, payment=payment)


@router.get(
    "/payment/{payment_id}",
    summary="Get payment details",
    description="Fetch the current state of a payment from Razorpay."
)
async def get_payment(payment_id: str, gateway: Gateway):
    """Get current payment details from Razorpay."""
    return await gateway.fetch_payment(payment_id)


@router.get(
    "/config",
    response_model=PublicConfigResponse,
    status_code=status.HTTP_200_OK,
    summary="Public checkout config",
    description="Expose the public Razorpay key id and current mode. The secret is never returned."
)
async def get_public_config(settings: AppSettings):
    return PublicConfigResponse(
        razorpay_key_id=settings.RAZORPAY_KEY_ID,
        key=settings.RAZORPAY_KEY_ID,
        mode=settings.ENVIRONMENT,
    )
