import time
from prometheus_client import Counter, Gauge, Histogram, generate_latest, CONTENT_TYPE_LATEST
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp
from fastapi import Request, Response

# HTTP surface
REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total number of HTTP requests",
    ["method", "endpoint", "status_code"]
)

REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency in seconds",
    ["method", "endpoint"]
)

# Telemetry simulation
TELEMETRY_TICKS = Counter(
    "telemetry_ticks_total",
    "Number of telemetry samples generated"
)

SIMULATED_ERRORS = Counter(
    "telemetry_simulated_errors_total",
    "Error count reported by generated metric samples"
)

SIMULATED_LATENCY = Gauge(
    "telemetry_latency_ms",
    "Latency of the most recent generated metric sample"
)

# Analysis
ANALYSIS_TOTAL = Counter(
    "health_analysis_total",
    "Completed health analyses",
    ["source", "outcome"]  # source: auto/manual, outcome: success/fallback
)

ANALYSIS_IN_FLIGHT = Gauge(
    "health_analysis_in_flight",
    "1 while a health analysis is running"
)

ANALYSIS_RISK_SCORE = Gauge(
    "health_analysis_risk_score",
    "Risk score of the currently held analysis (0 when none)"
)

# Rollback
ROLLBACK_TOTAL = Counter(
    "rollback_total",
    "Rollback requests",
    ["trigger", "outcome"]  # outcome: completed/rejected/failed
)

ROLLBACK_IN_FLIGHT = Gauge(
    "rollback_in_flight",
    "1 while a rollback is executing"
)

ACTIVE_DEPLOYMENT_HEALTH = Gauge(
    "active_deployment_health_score",
    "Recorded health score of the active deployment"
)

CIRCUIT_STATE = Gauge(
    "circuit_breaker_state",
    "Circuit breaker state: 0=closed, 1=open, 2=half_open",
    ["service"],
)


class PrometheusMiddleware(BaseHTTPMiddleware):
    def __init__(self, app: ASGIApp):
        super().__init__(app)

    async def dispatch(self, request: Request, call_next):
        start_time = time.time()

        try:
            response = await call_next(request)
            status_code = response.status_code
        except Exception:
            status_code = 500
            raise
        finally:
            process_time = time.time() - start_time

            # Skip probes and scrapes
            if "/health" not in request.url.path and "/metrics" not in request.url.path:
                REQUEST_COUNT.labels(
                    method=request.method,
                    endpoint=request.url.path,
                    status_code=status_code
                ).inc()

                REQUEST_LATENCY.labels(
                    method=request.method,
                    endpoint=request.url.path
                ).observe(process_time)

        return response

def metrics_endpoint(request: Request):
    """Endpoint for Prometheus scraping."""
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
