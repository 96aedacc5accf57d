from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest
from fastapi.testclient import TestClient

from sspl_backend.config import Settings
from sspl_backend.core.exceptions import StorageError
from sspl_backend.main import create_app
from sspl_backend.services.razorpay_gateway import RazorpayGateway
from sspl_backend.services.registration_service import RegistrationReconciler

KEY_ID = "rzp_test_1234567890abcdef"
KEY_SECRET = "test_key_secret"


class FakeOrders:
    def __init__(self):
        self.created: List[Dict[str, Any]] = []
        self.error: Optional[Exception] = None

    def create(self, data=None, **kwargs):
        if self.error:
            raise self.error
        self.created.append(data)
        return {
            "id": f"order_{len(self.created):04d}",
            "entity": "order",
            "amount": data["amount"],
            "amount_paid": 0,
            "currency": data["currency"],
            "receipt": data["receipt"],
            "status": "created",
            "notes": data.get("notes", {}),
        }

    def all(self, options=None, **kwargs):
        if self.error:
            raise self.error
        return {"entity": "collection", "count": 0, "items": []}


class FakePayments:
    def __init__(self):
        self.error: Optional[Exception] = None

    def fetch(self, payment_id, data=None, **kwargs):
        if self.error:
            raise self.error
        return {"id": payment_id, "entity": "payment", "status": "captured", "amount": 50000}


class FakeRazorpayClient:
    """Stands in for razorpay.Client; only the resources the gateway touches."""

    def __init__(self):
        self.order = FakeOrders()
        self.payment = FakePayments()


class FakeRegistrationStore:
    """Records updates; fails the first `failures` writes with `error` (a StorageError by default)."""

    def __init__(self, failures: int = 0, error: Optional[Exception] = None):
        self.failures = failures
        self.error = error or StorageError("23514: new row violates check constraint")
        self.calls: List[Dict[str, Any]] = []
        self.ping_error: Optional[Exception] = None

    async def update_registration(self, registration_id, values):
        self.calls.append({"id": registration_id, **values})
        if len(self.calls) <= self.failures:
            raise self.error
        return [{"id": registration_id, **values}]

    async def ping(self):
        if self.ping_error:
            raise self.ping_error


class FakeQuery:
    """Chainable stand-in for a postgrest query builder."""

    def __init__(self, owner, error=None):
        self.owner = owner
        self.error = error

    def update(self, values):
        self.owner.updates.append(values)
        return self

    def select(self, columns):
        return self

    def limit(self, count):
        return self

    def eq(self, column, value):
        self.owner.filters.append((column, value))
        return self

    async def execute(self):
        if self.error:
            raise self.error

        class Response:
            data = [{"id": "r1"}]

        return Response()


class FakeSupabase:
    """Supabase client whose queries all end in `error`, if set."""

    def __init__(self, error=None):
        self.error = error
        self.tables = []
        self.updates = []
        self.filters = []

    def table(self, name):
        self.tables.append(name)
        return FakeQuery(self, self.error)


class CancelRecorder:
    """httpx.MockTransport handler for the Razorpay cancel endpoint."""

    def __init__(self, status_code: int = 200, body: Any = None):
        self.status_code = status_code
        self.body = body if body is not None else {"id": "pay_123", "entity": "payment", "status": "voided"}
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if isinstance(self.body, (bytes, str)):
            return httpx.Response(self.status_code, content=self.body)
        return httpx.Response(self.status_code, json=self.body)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        RAZORPAY_KEY_ID=KEY_ID,
        RAZORPAY_KEY_SECRET=KEY_SECRET,
        ENVIRONMENT="development",
    )


@pytest.fixture
def razorpay_client() -> FakeRazorpayClient:
    return FakeRazorpayClient()


@pytest.fixture
def cancel_recorder() -> CancelRecorder:
    return CancelRecorder()


@pytest.fixture
def gateway(razorpay_client, cancel_recorder) -> RazorpayGateway:
    return RazorpayGateway(
        key_id=KEY_ID,
        key_secret=KEY_SECRET,
        client=razorpay_client,
        http=httpx.AsyncClient(transport=httpx.MockTransport(cancel_recorder)),
    )


@pytest.fixture
def store() -> FakeRegistrationStore:
    return FakeRegistrationStore()


@pytest.fixture
def make_client(settings, gateway, store) -> Callable[..., TestClient]:
    def _make(store_override=None, **client_kwargs) -> TestClient:
        app = create_app(
            settings,
            gateway=gateway,
            reconciler=RegistrationReconciler(store_override or store),
        )
        return TestClient(app, **client_kwargs)

    return _make


@pytest.fixture
def client(make_client) -> TestClient:
    return make_client()
