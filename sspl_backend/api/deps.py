from typing import Annotated, Optional

from fastapi import Depends, Request

from sspl_backend.config import Settings
from sspl_backend.services.razorpay_gateway import RazorpayGateway
from sspl_backend.services.registration_service import RegistrationReconciler, RegistrationStore


# Services are built once per process in the application lifespan
# (or injected by create_app) and read from app.state per request.

def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_gateway(request: Request) -> RazorpayGateway:
    return request.app.state.gateway


def get_reconciler(request: Request) -> RegistrationReconciler:
    return request.app.state.reconciler


def get_registration_store(request: Request) -> Optional[RegistrationStore]:
    return request.app.state.reconciler.store


AppSettings = Annotated[Settings, Depends(get_app_settings)]
Gateway = Annotated[RazorpayGateway, Depends(get_gateway)]
Reconciler = Annotated[RegistrationReconciler, Depends(get_reconciler)]
Store = Annotated[Optional[RegistrationStore], Depends(get_registration_store)]
