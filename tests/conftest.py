import asyncio
import os
import random
from typing import List, Optional

import pytest
from fastapi.testclient import TestClient

# Disable OTLP export, the background tick loop and the rollback settle delay
os.environ["OTEL_EXPORTER_OTLP_ENDPOINT"] = "none"
os.environ["SCHEDULER_AUTOSTART"] = "false"
os.environ["ROLLBACK_SETTLE_SECONDS"] = "0"
os.environ["GENAI_API_KEY"] = ""

# Import app AFTER setting the environment variables
from src.sentinel.main import app
from src.sentinel.analysis.base import HealthAnalyzer
from src.sentinel.deployment.registry import DeploymentRegistry
from src.sentinel.models.analysis import AnalysisResult, Recommendation
from src.sentinel.models.domain import LogEntry, LogLevel, MetricPoint, utc_now
from src.sentinel.telemetry.store import TelemetryStore


class StubAnalyzer(HealthAnalyzer):
    """Scripted analyzer recording every call.

    When ``gate`` is set, ``analyze`` blocks until the event is set, which
    keeps the trigger in ANALYZING for as long as a test needs.
    """

    def __init__(
        self,
        result: Optional[AnalysisResult] = None,
        error: Optional[Exception] = None,
        gate: Optional[asyncio.Event] = None,
    ):
        self.result = result or make_analysis()
        self.error = error
        self.gate = gate
        self.calls: List[dict] = []

    async def analyze(self, logs, metrics, current_version, previous_version):
        self.calls.append({
            "logs": list(logs),
            "metrics": list(metrics),
            "current_version": current_version,
            "previous_version": previous_version,
        })
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.result


def make_analysis(**overrides) -> AnalysisResult:
    values = dict(
        risk_score=85,
        recommendation=Recommendation.ROLLBACK,
        reasoning="Upstream auth-v2 timeouts began with v1.2.0.",
        confidence=0.9,
        suggested_version="v1.1.9",
        detected_anomalies=["Error Burst"],
        impact_assessment="Checkout requests failing for a subset of users.",
    )
    values.update(overrides)
    return AnalysisResult(**values)


def make_metric(errors: int = 0, latency: float = 80.0, memory: float = 50.0, cpu: float = 25.0) -> MetricPoint:
    return MetricPoint(
        time="12:00:00",
        cpu=cpu,
        memory=memory,
        latency=latency,
        errors=errors,
        baseline_latency=80.0,
    )


def make_log(message: str = "Request processed successfully", level: LogLevel = LogLevel.INFO) -> LogEntry:
    return LogEntry(timestamp=utc_now(), level=level, message=message, service="core-api")


@pytest.fixture(scope="module")
def client():
    # Context manager triggers the lifespan events (startup/shutdown)
    with TestClient(app) as c:
        yield c


@pytest.fixture
def registry():
    return DeploymentRegistry()


@pytest.fixture
def store():
    return TelemetryStore(metric_capacity=30, log_capacity=50)


@pytest.fixture
def rng():
    return random.Random(1234)
