import logging
import time
from datetime import datetime, timezone

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from sspl_backend.api.deps import AppSettings, Gateway, Store

logger = logging.getLogger(__name__)


router = APIRouter(tags=["Health"])


def _uptime(request: Request) -> float:
    return round(time.monotonic() - request.app.state.started_at, 3)


@router.get("/health")
async def health_check(request: Request, settings: AppSettings):
    """Liveness check."""
    return {
        "status": "ok",
        "message": "Razorpay server is running",
        "environment": settings.ENVIRONMENT,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "uptime": _uptime(request),
        "version": settings.APP_VERSION,
    }


@router.get("/health/detailed")
async def detailed_health_check(request: Request, settings: AppSettings, gateway: Gateway, store: Store):
    """Health check with Razorpay and Supabase connectivity; 206 when degraded."""
    started = time.monotonic()
    health_status = {
        "status": "ok",
        "message": "Backend server health check",
        "environment": settings.ENVIRONMENT,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "uptime": _uptime(request),
        "services": {},
    }

    try:
        await gateway.ping()
        health_status["services"]["razorpay"] = {
            "status": "ok",
            "message": "Razorpay API is accessible",
        }
    except Exception as e:
        logger.warning(f"Razorpay health check failed: {e}")
        health_status["services"]["razorpay"] = {
            "status": "error",
            "message": f"Razorpay API error: {e}",
        }
        health_status["status"] = "degraded"

    if store is not None:
        try:
            await store.ping()
            health_status["services"]["supabase"] = {
                "status": "ok",
                "message": "Supabase connection successful",
            }
        except Exception as e:
            logger.warning(f"Supabase health check failed: {e}")
            health_status["services"]["supabase"] = {
                "status": "error",
                "message": f"Supabase connection failed: {e}",
            }
            health_status["status"] = "degraded"

    health_status["response_time_ms"] = round((time.monotonic() - started) * 1000, 1)

    status_code = 200 if health_status["status"] == "ok" else 206
    return JSONResponse(status_code=status_code, content=health_status)
