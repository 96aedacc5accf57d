from contextlib import asynccontextmanager
import logging
import sys
import time
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware

from sspl_backend.config import Settings, get_settings, load_settings
from sspl_backend.api.router import api_router
from sspl_backend.core.exceptions import (
    ConfigurationError,
    GatewayError,
    InternalError,
    PaymentError,
)
from sspl_backend.core.supabase_client import create_supabase_client
from sspl_backend.logging_config import configure_logging
from sspl_backend.services.razorpay_gateway import RazorpayGateway
from sspl_backend.services.registration_service import RegistrationReconciler, RegistrationStore

logger = logging.getLogger(__name__)

CORS_METHODS = ["GET", "POST", "PUT", "DELETE", "OPTIONS"]
CORS_HEADERS = ["Content-Type", "Authorization", "X-Requested-With"]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Build the process-wide clients that were not injected.

    Startup:
    - Razorpay gateway (SDK client + HTTP client for cancel)
    - Supabase-backed registration reconciler

    Shutdown:
    - Close clients created here
    """
    settings: Settings = app.state.settings
    owned_gateway = None

    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION} (env={settings.ENVIRONMENT})")

    if app.state.gateway is None:
        owned_gateway = RazorpayGateway.from_settings(settings)
        app.state.gateway = owned_gateway

    if app.state.reconciler is None:
        client = await create_supabase_client(settings)
        store = RegistrationStore(client, settings.REGISTRATIONS_TABLE) if client else None
        app.state.reconciler = RegistrationReconciler(store)

    yield

    if owned_gateway is not None:
        await owned_gateway.aclose()
    logger.info("Shutting down...")


def _error_body(request: Request, message: str, **extra) -> dict:
    body = {"error": message, **extra}
    endpoint = request.scope.get("endpoint")
    if getattr(endpoint, "reports_success", False):
        body = {"success": False, **body}
    return body


def create_app(
    settings: Optional[Settings] = None,
    gateway: Optional[RazorpayGateway] = None,
    reconciler: Optional[RegistrationReconciler] = None,
) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        settings: Validated settings; loaded from the environment if omitted
        gateway: Razorpay gateway to use instead of building one at startup
        reconciler: Registration reconciler to use instead of building one at startup
    """
    settings = settings or get_settings()

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="Razorpay order, verification and cancel endpoints for SSPL player registrations.",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.gateway = gateway
    app.state.reconciler = reconciler
    app.state.started_at = time.monotonic()

    if settings.is_production:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_origins_list,
            allow_credentials=True,
            allow_methods=CORS_METHODS,
            allow_headers=CORS_HEADERS,
        )
    else:
        # Development and preview: mirror any origin
        app.add_middleware(
            CORSMiddleware,
            allow_origin_regex=".*",
            allow_credentials=True,
            allow_methods=CORS_METHODS,
            allow_headers=CORS_HEADERS,
        )

    app.include_router(api_router)

    @app.exception_handler(PaymentError)
    async def payment_exception_handler(request: Request, exc: PaymentError):
        if isinstance(exc, InternalError):
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
            return JSONResponse(
                status_code=exc.status_code,
                content=_error_body(request, "Internal server error"),
            )

        extra = {}
        if isinstance(exc, GatewayError) and exc.body is not None:
            extra["razorpay"] = exc.body
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(request, exc.message, **extra),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.warning(f"Invalid request body for {request.url.path}: {exc.errors()}")
        return JSONResponse(
            status_code=400,
            content=_error_body(request, "Invalid request body"),
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Log full detail server-side; callers get a generic message."""
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return JSONResponse(
            status_code=500,
            content=_error_body(request, "Internal server error"),
        )

    return app


def run() -> None:
    """Console entry point: validate configuration, then serve."""
    import uvicorn

    try:
        settings = load_settings()
    except ConfigurationError as e:
        configure_logging()
        logger.error(f"{e.message}. Please set these environment variables before starting the server.")
        sys.exit(1)

    configure_logging(settings.LOG_LEVEL)
    logger.info("All required server environment variables are present")

    uvicorn.run(
        create_app(settings),
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    run()
