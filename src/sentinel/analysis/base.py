from abc import ABC, abstractmethod
from typing import Sequence

from src.sentinel.models.analysis import AnalysisResult
from src.sentinel.models.domain import LogEntry, MetricPoint


class HealthAnalyzer(ABC):
    """Risk assessment of the active deployment from recent telemetry.

    Implementations may be slow, may fail and need not be deterministic;
    callers bound them with a timeout and substitute a fallback result.
    """

    @abstractmethod
    async def analyze(
        self,
        logs: Sequence[LogEntry],
        metrics: Sequence[MetricPoint],
        current_version: str,
        previous_version: str,
    ) -> AnalysisResult:
        """Assess ``current_version`` against ``previous_version``.

        ``suspect_log_indices`` in the result are positions in ``logs``.
        """
        pass
