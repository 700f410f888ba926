"""Prometheus metrics and OpenTelemetry tracing for the rollback engine."""

from .metrics import (
    ACTIVE_DEPLOYMENT_HEALTH,
    ANALYSIS_IN_FLIGHT,
    ANALYSIS_RISK_SCORE,
    ANALYSIS_TOTAL,
    CIRCUIT_STATE,
    ROLLBACK_IN_FLIGHT,
    ROLLBACK_TOTAL,
    SIMULATED_ERRORS,
    SIMULATED_LATENCY,
    TELEMETRY_TICKS,
    PrometheusMiddleware,
    metrics_endpoint,
)

__all__ = [
    "ACTIVE_DEPLOYMENT_HEALTH",
    "ANALYSIS_IN_FLIGHT",
    "ANALYSIS_RISK_SCORE",
    "ANALYSIS_TOTAL",
    "CIRCUIT_STATE",
    "ROLLBACK_IN_FLIGHT",
    "ROLLBACK_TOTAL",
    "SIMULATED_ERRORS",
    "SIMULATED_LATENCY",
    "TELEMETRY_TICKS",
    "PrometheusMiddleware",
    "metrics_endpoint",
]
