"""Watchdog that escalates sustained anomalies to the health analyzer.

Two states, IDLE and ANALYZING. The trigger fires when the most recent
``sample_window`` metric samples all breach the error or latency threshold,
no assessment is currently held and no analysis is in flight. Operators
can fire it manually regardless of the thresholds, except while an
analysis is already running. Whatever the analyzer does (answers, raises
or hangs past the timeout), the trigger returns to IDLE. A result is
stored only while the analyzed version is still the active one; an
analysis overtaken by a rollback is discarded.
"""
import asyncio
from enum import Enum
from typing import Awaitable, Callable, List, Optional, Set

from loguru import logger

from src.sentinel.analysis.base import HealthAnalyzer
from src.sentinel.core.config import settings
from src.sentinel.core.exceptions import (
    AnalysisInProgressError,
    AnalysisUnavailableError,
    NoActiveDeploymentError,
)
from src.sentinel.deployment.registry import DeploymentRegistry
from src.sentinel.models.analysis import AnalysisResult
from src.sentinel.models.domain import LogEntry, MetricPoint
from src.sentinel.monitoring.metrics import ANALYSIS_IN_FLIGHT, ANALYSIS_TOTAL
from src.sentinel.monitoring.tracing import record_exception, set_span_attributes, tracer
from src.sentinel.telemetry.store import TelemetryStore

UNKNOWN_VERSION = "unknown"


class TriggerState(str, Enum):
    IDLE = "IDLE"
    ANALYZING = "ANALYZING"


# (result, analyzed version)
ResultCallback = Callable[[AnalysisResult, str], Awaitable[None]]


class AutoAnalysisTrigger:
    """Debounced analysis trigger over the metric stream."""

    def __init__(
        self,
        store: TelemetryStore,
        registry: DeploymentRegistry,
        analyzer: HealthAnalyzer,
        log_window: int = settings.ANALYSIS_LOG_WINDOW,
        sample_window: int = settings.TRIGGER_WINDOW,
        error_threshold: int = settings.TRIGGER_ERROR_THRESHOLD,
        latency_threshold: float = settings.TRIGGER_LATENCY_THRESHOLD_MS,
        timeout_seconds: float = settings.ANALYSIS_TIMEOUT_SECONDS,
        on_result: Optional[ResultCallback] = None,
    ):
        """Initialize trigger.

        Args:
            store: Telemetry buffers and analysis slot
            registry: Source of the active/previous versions
            analyzer: Health analyzer collaborator
            log_window: Most recent log lines submitted for analysis
            sample_window: Consecutive anomalous samples required
            error_threshold: A sample is anomalous above this error count...
            latency_threshold: ...or above this latency in ms
            timeout_seconds: Upper bound on one analyzer call
            on_result: Awaited with every stored result and the analyzed
                version once back in IDLE
        """
        if sample_window < 1:
            raise ValueError("Sample window must be at least 1")
        if timeout_seconds <= 0:
            raise ValueError("Analysis timeout must be positive")
        self.store = store
        self.registry = registry
        self.analyzer = analyzer
        self.log_window = log_window
        self.sample_window = sample_window
        self.error_threshold = error_threshold
        self.latency_threshold = latency_threshold
        self.timeout_seconds = timeout_seconds
        self.on_result = on_result
        self._state = TriggerState.IDLE
        self._tasks: Set[asyncio.Task] = set()
        self.fired_count = 0

    @property
    def state(self) -> TriggerState:
        return self._state

    @property
    def analyzing(self) -> bool:
        return self._state == TriggerState.ANALYZING

    def is_anomalous(self, point: MetricPoint) -> bool:
        return point.errors > self.error_threshold or point.latency > self.latency_threshold

    def condition_met(self) -> bool:
        """True when the last ``sample_window`` samples are all anomalous."""
        recent = self.store.recent_metrics(self.sample_window)
        return len(recent) == self.sample_window and all(self.is_anomalous(p) for p in recent)

    def evaluate(self) -> bool:
        """Check the automatic trigger condition and fire if it holds.

        Returns:
            True if an analysis was started
        """
        if self.analyzing or self.store.analysis is not None:
            return False
        if not self.condition_met():
            return False
        try:
            self._start("auto")
        except NoActiveDeploymentError:
            logger.error("Anomaly detected but no active deployment to analyze")
            return False
        return True

    def trigger_manual(self) -> asyncio.Task:
        """Start an analysis now, bypassing the thresholds.

        Raises:
            AnalysisInProgressError: An analysis is already running
            NoActiveDeploymentError: Registry has no active record
        """
        if self.analyzing:
            raise AnalysisInProgressError()
        return self._start("manual")

    async def wait_idle(self) -> None:
        """Wait for every pending analysis, result handlers included."""
        while True:
            pending = [task for task in self._tasks if not task.done()]
            if not pending:
                return
            await asyncio.shield(asyncio.gather(*pending))

    def _start(self, source: str) -> asyncio.Task:
        active = self.registry.active_deployment()
        if active is None:
            raise NoActiveDeploymentError()
        previous = self.registry.previous_deployment()

        # Inputs are frozen at the moment of the transition
        window = self.store.recent_logs(self.log_window)
        metrics = self.store.metrics()
        current_version = active.version
        previous_version = previous.version if previous else UNKNOWN_VERSION

        self._state = TriggerState.ANALYZING
        self.fired_count += 1
        ANALYSIS_IN_FLIGHT.set(1)
        logger.warning(
            f"🔍 Analysis triggered ({source}): {current_version} vs {previous_version}, "
            f"{len(window)} logs, {len(metrics)} samples"
        )

        task = asyncio.create_task(
            self._run(source, window, metrics, current_version, previous_version)
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(
        self,
        source: str,
        window: List[LogEntry],
        metrics: List[MetricPoint],
        current_version: str,
        previous_version: str,
    ) -> Optional[AnalysisResult]:
        try:
            result = await self._call_analyzer(
                source, window, metrics, current_version, previous_version
            )
            active = self.registry.active_deployment()
            if active is None or active.version != current_version:
                logger.warning(
                    f"Discarding stale analysis of {current_version}, active is now "
                    f"{active.version if active else 'none'}"
                )
                return None
            flagged = await self.store.store_analysis(result, window)
            logger.info(
                f"Analysis stored: {result.recommendation.value} risk={result.risk_score:.0f} "
                f"suspects={flagged}"
            )
        finally:
            self._state = TriggerState.IDLE
            ANALYSIS_IN_FLIGHT.set(0)

        if self.on_result is not None:
            try:
                await self.on_result(result, current_version)
            except Exception:
                logger.exception("Analysis result handler failed")
        return result

    async def _call_analyzer(
        self,
        source: str,
        window: List[LogEntry],
        metrics: List[MetricPoint],
        current_version: str,
        previous_version: str,
    ) -> AnalysisResult:
        with tracer.start_as_current_span("health_analysis") as span:
            set_span_attributes(
                span,
                source=source,
                current_version=current_version,
                previous_version=previous_version,
                log_count=len(window),
                metric_count=len(metrics),
            )
            try:
                result = await asyncio.wait_for(
                    self.analyzer.analyze(window, metrics, current_version, previous_version),
                    timeout=self.timeout_seconds,
                )
                ANALYSIS_TOTAL.labels(source=source, outcome="success").inc()
                set_span_attributes(
                    span,
                    risk_score=result.risk_score,
                    recommendation=result.recommendation.value,
                )
                return result
            except asyncio.TimeoutError as e:
                logger.error(f"Health analysis timed out after {self.timeout_seconds}s")
                record_exception(span, e)
            except AnalysisUnavailableError as e:
                logger.error(f"Health analysis unavailable: {e}")
                record_exception(span, e)
            except Exception as e:
                logger.exception("Health analyzer raised unexpectedly")
                record_exception(span, e)

        ANALYSIS_TOTAL.labels(source=source, outcome="fallback").inc()
        return AnalysisResult.fallback()
