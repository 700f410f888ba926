"""Shared telemetry state of a deployment session.

The tick loop, the analysis trigger and the rollback executor all write
here. Every mutation of the buffers or the analysis slot happens under a
single ``asyncio.Lock`` so concurrent writers never interleave partial
updates.
"""
import asyncio
from collections import deque
from typing import Deque, Iterable, List, Optional, Sequence

from loguru import logger

from src.sentinel.core.config import settings
from src.sentinel.models.analysis import AnalysisResult
from src.sentinel.models.domain import FaultState, LogEntry, MetricPoint
from src.sentinel.monitoring.metrics import ANALYSIS_RISK_SCORE


class TelemetryStore:
    """Bounded metric/log buffers, fault toggles and the held analysis.

    Metrics are kept oldest-first in a ring of ``metric_capacity`` samples.
    Logs are kept most-recent-first; inserting past ``log_capacity``
    evicts the oldest line.
    """

    def __init__(
        self,
        metric_capacity: int = settings.METRIC_BUFFER_SIZE,
        log_capacity: int = settings.LOG_BUFFER_SIZE,
    ):
        if metric_capacity <= 0 or log_capacity <= 0:
            raise ValueError("Buffer capacities must be positive")
        self._lock = asyncio.Lock()
        self._metrics: Deque[MetricPoint] = deque(maxlen=metric_capacity)
        self._logs: Deque[LogEntry] = deque(maxlen=log_capacity)
        self._faults = FaultState()
        self._analysis: Optional[AnalysisResult] = None

    # ------------------------------------------------------------------
    # Telemetry buffers
    # ------------------------------------------------------------------

    async def record(self, point: MetricPoint, logs: Iterable[LogEntry] = ()) -> None:
        """Append one tick worth of telemetry.

        Suspect markers on existing lines are dropped unless a held
        analysis still refers to them.
        """
        async with self._lock:
            if self._analysis is None:
                for entry in self._logs:
                    entry.is_suspect = False
            self._metrics.append(point)
            for entry in logs:
                self._logs.appendleft(entry)

    def metrics(self) -> List[MetricPoint]:
        """Snapshot of the metric buffer, oldest first."""
        return list(self._metrics)

    def logs(self) -> List[LogEntry]:
        """Snapshot of the log buffer, most recent first."""
        return list(self._logs)

    def recent_logs(self, count: int) -> List[LogEntry]:
        return list(self._logs)[:count]

    def recent_metrics(self, count: int) -> List[MetricPoint]:
        if count <= 0:
            return []
        return list(self._metrics)[-count:]

    def latest_metric(self) -> Optional[MetricPoint]:
        return self._metrics[-1] if self._metrics else None

    @property
    def metric_capacity(self) -> int:
        return self._metrics.maxlen

    @property
    def log_capacity(self) -> int:
        return self._logs.maxlen

    # ------------------------------------------------------------------
    # Fault injection
    # ------------------------------------------------------------------

    @property
    def faults(self) -> FaultState:
        return self._faults

    def set_faults(
        self,
        latency_spike: Optional[bool] = None,
        error_burst: Optional[bool] = None,
        memory_leak: Optional[bool] = None,
    ) -> FaultState:
        """Update fault toggles; ``None`` leaves a toggle as it is."""
        self._faults = self._faults.with_changes(
            latency_spike=latency_spike,
            error_burst=error_burst,
            memory_leak=memory_leak,
        )
        logger.info(f"Fault state updated: {self._faults.to_dict()}")
        return self._faults

    def reset_faults(self) -> None:
        self._faults = FaultState()

    # ------------------------------------------------------------------
    # Analysis slot
    # ------------------------------------------------------------------

    @property
    def analysis(self) -> Optional[AnalysisResult]:
        return self._analysis

    async def store_analysis(
        self,
        result: AnalysisResult,
        window: Sequence[LogEntry],
    ) -> int:
        """Hold ``result`` and flag suspect lines of the submitted window.

        ``result.suspect_log_indices`` are positions in ``window`` (the
        lines sent to the analyzer), not in the live buffer, which may have
        shifted since. Lines evicted in the meantime are skipped.

        Returns:
            Number of lines flagged
        """
        async with self._lock:
            self._analysis = result
            ANALYSIS_RISK_SCORE.set(result.risk_score)

            for entry in self._logs:
                entry.is_suspect = False

            live = {id(entry) for entry in self._logs}
            flagged = 0
            for index in sorted(set(result.suspect_log_indices or [])):
                if not 0 <= index < len(window):
                    logger.warning(f"Ignoring out-of-window suspect index {index}")
                    continue
                entry = window[index]
                if id(entry) in live:
                    entry.is_suspect = True
                    flagged += 1
            return flagged

    async def clear_analysis(self) -> bool:
        """Drop the held analysis.

        Safe to call repeatedly.

        Returns:
            True if a result was actually cleared
        """
        async with self._lock:
            return self._clear_analysis_locked()

    def _clear_analysis_locked(self) -> bool:
        if self._analysis is None:
            return False
        self._analysis = None
        ANALYSIS_RISK_SCORE.set(0)
        return True

    async def settle_after_rollback(self) -> None:
        """Consume the held analysis and clear all fault toggles."""
        async with self._lock:
            self._clear_analysis_locked()
            self._faults = FaultState()

    async def clear(self) -> None:
        """Reset buffers, faults and analysis to the empty state."""
        async with self._lock:
            self._metrics.clear()
            self._logs.clear()
            self._faults = FaultState()
            self._clear_analysis_locked()
