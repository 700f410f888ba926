"""Request context middleware: correlation ids and access logging."""
import time
import uuid
from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from loguru import logger

from src.sentinel.core.logging import trace_id as trace_id_var
from src.sentinel.monitoring.tracing import record_exception, set_span_attributes
from opentelemetry import trace


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Tags every request with a correlation id and logs its outcome."""

    async def dispatch(self, request: Request, call_next):
        if getattr(request.app.state, "shutting_down", False):
            logger.warning("⚠️  Rejecting request during shutdown")
            return JSONResponse(
                status_code=503,
                content={"detail": "Service is shutting down"},
            )

        start_time = time.time()
        correlation_id = request.headers.get("X-Correlation-ID", str(uuid.uuid4()))
        trace_id_var.set(correlation_id)
        request.state.correlation_id = correlation_id

        span = trace.get_current_span()
        set_span_attributes(span, correlation_id=correlation_id)

        with logger.contextualize(correlation_id=correlation_id):
            try:
                response = await call_next(request)
            except Exception as e:
                logger.error(f"❌ {request.method} {request.url.path} failed: {e}")
                record_exception(span, e)
                raise

            latency_ms = round((time.time() - start_time) * 1000, 2)
            logger.info(
                f"{request.method} {request.url.path} → {response.status_code} ({latency_ms}ms)"
            )

        response.headers["X-Correlation-ID"] = correlation_id
        response.headers["X-Process-Time"] = f"{latency_ms / 1000:.4f}"
        return response
