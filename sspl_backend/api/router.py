from fastapi import APIRouter

from sspl_backend.api.endpoints import (
    health,
    payments,
)


# One payment implementation, two mounts: the /api/* paths and the
# /api/razorpay/* paths used by the checkout frontend.
PAYMENT_PREFIXES = ("/api", "/api/razorpay")

api_router = APIRouter()

for prefix in PAYMENT_PREFIXES:
    api_router.include_router(payments.router, prefix=prefix)

api_router.include_router(health.router)
