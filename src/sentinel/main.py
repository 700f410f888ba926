"""Main FastAPI application."""
import signal
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from loguru import logger
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from src.sentinel.core.config import settings
from src.sentinel.core.exceptions import (
    AnalysisInProgressError,
    InvalidRollbackTargetError,
    NoActiveDeploymentError,
    NotFoundError,
    RollbackInProgressError,
    SentinelError,
)
from src.sentinel.core.limiter import limiter
from src.sentinel.core.logging import setup_logging
from src.sentinel.core.middleware import RequestContextMiddleware
from src.sentinel.monitoring.metrics import PrometheusMiddleware, metrics_endpoint
from src.sentinel.monitoring.tracing import setup_tracing
from src.sentinel.api import api_router
from src.sentinel.api.health import router as health_router
from src.sentinel.services.session import DeploymentSession

_ERROR_STATUS = (
    (NotFoundError, 404),
    (InvalidRollbackTargetError, 422),
    (RollbackInProgressError, 409),
    (AnalysisInProgressError, 409),
    (NoActiveDeploymentError, 500),
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifecycle: build the deployment session, run its scheduler, stop it."""
    logger.info("🚀 Starting Sentinel rollback engine v{}", settings.VERSION)

    session = DeploymentSession(settings)
    app.state.session = session
    if settings.SCHEDULER_AUTOSTART:
        await session.start()

    def shutdown_handler(signum, frame):
        logger.warning(f"⚠️  Received signal {signum}, initiating graceful shutdown...")
        app.state.shutting_down = True

    try:
        signal.signal(signal.SIGTERM, shutdown_handler)
    except ValueError:
        # not on the main thread (e.g. TestClient portal)
        pass

    active = session.registry.active_deployment()
    logger.info(f"✅ Engine ready, active deployment {active.version if active else 'none'}")

    yield

    logger.info("🛑 Shutting down gracefully...")
    await session.stop()
    logger.info("✅ Shutdown complete")


async def sentinel_error_handler(request: Request, exc: SentinelError):
    """Map engine errors to HTTP responses; nothing is dropped silently."""
    status_code = 400
    for error_type, code in _ERROR_STATUS:
        if isinstance(exc, error_type):
            status_code = code
            break
    if status_code >= 500:
        logger.error(f"Invariant violation on {request.url.path}: {exc}")
    else:
        logger.warning(f"{request.method} {request.url.path} refused: {exc}")
    return JSONResponse(
        status_code=status_code,
        content={"detail": str(exc), "error": type(exc).__name__},
    )


def create_app() -> FastAPI:
    """Create FastAPI application with all middleware and routes."""
    setup_logging()

    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.VERSION,
        lifespan=lifespan,
    )

    app.state.shutting_down = False

    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_exception_handler(SentinelError, sentinel_error_handler)

    # last added = first executed
    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(PrometheusMiddleware)

    setup_tracing(app)

    app.include_router(health_router, prefix="/api", tags=["health"])
    app.include_router(api_router, prefix=settings.API_V1_STR)

    app.add_route("/metrics", metrics_endpoint)

    logger.info("📦 Application configured successfully")

    return app


app = create_app()
