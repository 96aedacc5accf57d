# Services module
from sspl_backend.services.razorpay_gateway import RazorpayGateway
from sspl_backend.services.registration_service import (
    RegistrationReconciler,
    RegistrationStore,
    ReconcileOutcome,
    ReconcileResult,
)

__all__ = [
    "RazorpayGateway",
    "RegistrationReconciler",
    "RegistrationStore",
    "ReconcileOutcome",
    "ReconcileResult",
]
