"""Health check endpoints."""
from fastapi import APIRouter, Request, Response, status
from prometheus_client import Gauge
from loguru import logger

from src.sentinel.core.config import settings
from src.sentinel.core.circuit_breaker import genai_breaker

router = APIRouter()

SERVICE_READY = Gauge("service_ready", "Service readiness: 1=ready, 0=not ready")


@router.get("/healthz", status_code=status.HTTP_200_OK)
async def healthz():
    """Liveness probe: is the process alive?"""
    return {
        "status": "ok",
        "version": settings.VERSION,
        "service": settings.PROJECT_NAME,
    }


@router.get("/ready", status_code=status.HTTP_200_OK)
async def ready(request: Request, response: Response):
    """
    Readiness probe: can the engine make decisions?

    Checks:
    - Session built with exactly one active deployment
    - Telemetry scheduler running (unless autostart is disabled)
    - Analysis backend circuit not open
    """
    session = getattr(request.app.state, "session", None)
    checks = {
        "session_ready": session is not None and session.registry.active_deployment() is not None,
        "scheduler_running": (
            not settings.SCHEDULER_AUTOSTART
            or (session is not None and session.scheduler.running)
        ),
        "circuit_breaker_closed": genai_breaker.current_state != "open",
    }

    is_ready = all(checks.values())
    SERVICE_READY.set(1 if is_ready else 0)

    if not is_ready:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        logger.warning(f"Service NOT READY: {checks}")
        return {
            "status": "not_ready",
            "checks": checks,
            "circuit_state": genai_breaker.current_state,
        }

    return {
        "status": "ready",
        "checks": checks,
    }
