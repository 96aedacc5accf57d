import base64
import json
from decimal import Decimal

import httpx
import pytest
from razorpay.errors import BadRequestError, ServerError

from sspl_backend.core.exceptions import GatewayError, InternalError, InvalidArgument
from sspl_backend.services.razorpay_gateway import (
    RazorpayGateway,
    idempotency_key_for,
    to_minor_units,
)

from tests.conftest import KEY_ID, KEY_SECRET, CancelRecorder, FakeRazorpayClient


def make_gateway(handler, client=None) -> RazorpayGateway:
    return RazorpayGateway(
        key_id=KEY_ID,
        key_secret=KEY_SECRET,
        client=client or FakeRazorpayClient(),
        http=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )


class TestMinorUnits:
    @pytest.mark.parametrize(
        "amount,expected",
        [
            (500, 50000),
            (10.005, 1001),  # half-up at the paisa boundary
            (10.004, 1000),
            (0.01, 1),
            (1499.99, 149999),
            (Decimal("2.345"), 235),
        ],
    )
    def test_conversion(self, amount, expected):
        assert to_minor_units(amount) == expected

    @pytest.mark.parametrize(
        "amount",
        [None, 0, -1, -0.5, "500", True, float("nan"), float("inf"), 0.004, [], {}],
    )
    def test_rejects_invalid_amounts(self, amount):
        with pytest.raises(InvalidArgument) as exc:
            to_minor_units(amount)
        assert exc.value.message == "Invalid amount provided"
        assert exc.value.status_code == 400


class TestCreateOrder:
    async def test_creates_inr_order_with_capture(self, gateway, razorpay_client):
        order = await gateway.create_order(500)

        sent = razorpay_client.order.created[0]
        assert sent["amount"] == 50000
        assert sent["currency"] == "INR"
        assert sent["payment_capture"] == 1
        assert sent["receipt"].startswith("sspl_")
        assert order["id"] == "order_0001"
        assert order["amount"] == 50000

    async def test_notes_are_forwarded(self, gateway, razorpay_client):
        await gateway.create_order(100, notes={"registration_id": "r1"})
        assert razorpay_client.order.created[0]["notes"] == {"registration_id": "r1"}

    async def test_invalid_amount_never_reaches_gateway(self, gateway, razorpay_client):
        with pytest.raises(InvalidArgument):
            await gateway.create_order(0)
        assert razorpay_client.order.created == []

    async def test_sdk_error_becomes_gateway_error(self, gateway, razorpay_client):
        razorpay_client.order.error = BadRequestError("Authentication failed")
        with pytest.raises(GatewayError) as exc:
            await gateway.create_order(500)
        assert exc.value.status_code == 500
        assert exc.value.message == "Authentication failed"

    async def test_unexpected_error_becomes_internal_error(self, gateway, razorpay_client):
        razorpay_client.order.error = ConnectionError("reset by peer")
        with pytest.raises(InternalError):
            await gateway.create_order(500)


class TestCancelPayment:
    async def test_voids_with_basic_auth_and_idempotency_key(self, gateway, cancel_recorder):
        payment = await gateway.cancel_payment("pay_ABC123")

        assert payment["status"] == "voided"
        request = cancel_recorder.requests[0]
        assert request.method == "POST"
        assert str(request.url) == "https://api.razorpay.com/v1/payments/pay_ABC123/cancel"
        expected_auth = base64.b64encode(f"{KEY_ID}:{KEY_SECRET}".encode()).decode()
        assert request.headers["Authorization"] == f"Basic {expected_auth}"
        assert request.headers["X-Razorpay-Idempotency-Key"] == "cancel-pay_ABC123-v1"
        assert json.loads(request.content) == {}

    async def test_idempotency_key_is_stable_across_calls(self, gateway, cancel_recorder):
        await gateway.cancel_payment("pay_ABC123")
        await gateway.cancel_payment("pay_ABC123")

        keys = [r.headers["X-Razorpay-Idempotency-Key"] for r in cancel_recorder.requests]
        assert keys == [idempotency_key_for("pay_ABC123")] * 2

    @pytest.mark.parametrize("payment_id", ["", None, "abc_123", 123, "PAY_123"])
    async def test_invalid_payment_id_rejected_before_network(self, gateway, cancel_recorder, payment_id):
        with pytest.raises(InvalidArgument) as exc:
            await gateway.cancel_payment(payment_id)
        assert exc.value.message == "Invalid or missing paymentId"
        assert cancel_recorder.requests == []

    async def test_gateway_rejection_keeps_status_and_error_body(self):
        error = {
            "code": "BAD_REQUEST_ERROR",
            "description": "Payment is not voidable",
            "reason": "payment_not_voidable",
            "field": None,
            "metadata": {"payment_id": "pay_123"},
        }
        gateway = make_gateway(CancelRecorder(400, {"error": error}))

        with pytest.raises(GatewayError) as exc:
            await gateway.cancel_payment("pay_123")

        assert exc.value.status_code == 400
        assert exc.value.message == "Payment is not voidable"
        assert exc.value.body == error

    async def test_gateway_rejection_without_json_body(self):
        gateway = make_gateway(CancelRecorder(502, b"<html>Bad gateway</html>"))

        with pytest.raises(GatewayError) as exc:
            await gateway.cancel_payment("pay_123")

        assert exc.value.status_code == 502
        assert exc.value.message == "Cancel failed"
        assert exc.value.body is None

    async def test_unreadable_success_body_is_internal_error(self):
        gateway = make_gateway(CancelRecorder(200, b"not json"))
        with pytest.raises(InternalError):
            await gateway.cancel_payment("pay_123")

    async def test_network_failure_is_internal_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        gateway = make_gateway(handler)
        with pytest.raises(InternalError):
            await gateway.cancel_payment("pay_123")


class TestFetchPayment:
    async def test_fetches_payment(self, gateway):
        payment = await gateway.fetch_payment("pay_123")
        assert payment["id"] == "pay_123"

    async def test_rejects_bad_id(self, gateway):
        with pytest.raises(InvalidArgument):
            await gateway.fetch_payment("order_123")

    async def test_unknown_payment_is_gateway_error(self, gateway, razorpay_client):
        razorpay_client.payment.error = BadRequestError("The id provided does not exist")
        with pytest.raises(GatewayError) as exc:
            await gateway.fetch_payment("pay_missing")
        assert exc.value.status_code == 400

    async def test_server_error_is_bad_gateway(self, gateway, razorpay_client):
        razorpay_client.payment.error = ServerError("upstream down")
        with pytest.raises(GatewayError) as exc:
            await gateway.fetch_payment("pay_123")
        assert exc.value.status_code == 502
