"""Rule-based health analyzer.

Used when no generative backend is configured. Scores risk from the most
recent metric samples relative to the baseline latency, plus the severity
mix of the submitted log window. Deterministic for a given input.
"""
from dataclasses import dataclass
from statistics import fmean
from typing import List, Optional, Sequence, Tuple

from loguru import logger

from src.sentinel.analysis.base import HealthAnalyzer
from src.sentinel.core.config import settings
from src.sentinel.models.analysis import AnalysisResult, Recommendation
from src.sentinel.models.domain import LogEntry, LogLevel, MetricPoint


@dataclass
class HeuristicThresholds:
    """Limits for risk scoring.

    Latency limits are multipliers of the baseline latency.
    """
    latency_ratio_critical: float = 2.5  # 150% above baseline
    latency_ratio_warning: float = 1.5   # 50% above baseline
    errors_critical: float = 8.0         # mean errors per sample
    errors_warning: float = 2.0
    memory_critical: float = 80.0        # percent
    memory_warning: float = 70.0
    rollback_risk: float = 70.0
    investigate_risk: float = 40.0
    sample_window: int = 5               # most recent samples considered

    def __post_init__(self):
        """Validate thresholds are consistent."""
        if self.latency_ratio_warning <= 1.0:
            raise ValueError("Latency warning ratio must be > 1.0")
        if self.latency_ratio_critical <= self.latency_ratio_warning:
            raise ValueError("Latency critical ratio must exceed the warning ratio")
        if self.errors_critical <= self.errors_warning:
            raise ValueError("Error critical level must exceed the warning level")
        if self.memory_critical <= self.memory_warning:
            raise ValueError("Memory critical level must exceed the warning level")
        if not 0 <= self.investigate_risk < self.rollback_risk <= 100:
            raise ValueError("Risk cut-offs must satisfy 0 <= investigate < rollback <= 100")
        if self.sample_window < 1:
            raise ValueError("Sample window must be at least 1")


class HeuristicHealthAnalyzer(HealthAnalyzer):
    """Scores deployment risk without calling any external service."""

    BASE_RISK = 5.0
    SUSPECT_LEVELS = (LogLevel.WARN, LogLevel.ERROR, LogLevel.CRITICAL)

    def __init__(
        self,
        thresholds: Optional[HeuristicThresholds] = None,
        baseline_latency: float = settings.BASELINE_LATENCY_MS,
    ):
        self.thresholds = thresholds or HeuristicThresholds()
        self.baseline_latency = baseline_latency

    async def analyze(
        self,
        logs: Sequence[LogEntry],
        metrics: Sequence[MetricPoint],
        current_version: str,
        previous_version: str,
    ) -> AnalysisResult:
        return self.assess(logs, metrics, current_version, previous_version)

    def assess(
        self,
        logs: Sequence[LogEntry],
        metrics: Sequence[MetricPoint],
        current_version: str,
        previous_version: str,
    ) -> AnalysisResult:
        """Synchronous scoring, shared by ``analyze``."""
        window = list(metrics)[-self.thresholds.sample_window:]
        risk, findings, anomalies = self._score_metrics(window)

        severe_logs = [e for e in logs if e.level in (LogLevel.ERROR, LogLevel.CRITICAL)]
        if severe_logs:
            risk += min(15.0, 5.0 * len(severe_logs))
            findings.append(f"{len(severe_logs)} ERROR/CRITICAL log lines in the recent window")
            anomalies.append("Critical Log Events")

        risk = min(max(risk, 0.0), 100.0)
        recommendation = self._recommend(risk)
        suspects = [i for i, e in enumerate(logs) if e.level in self.SUSPECT_LEVELS]

        if findings:
            reasoning = (
                f"Version {current_version} deviates from the stable profile of "
                f"{previous_version}: " + "; ".join(findings) + "."
            )
        else:
            reasoning = f"Version {current_version} metrics are within baseline tolerance."

        result = AnalysisResult(
            risk_score=round(risk, 1),
            recommendation=recommendation,
            reasoning=reasoning,
            confidence=self._confidence(len(window)),
            suggested_version=previous_version if recommendation == Recommendation.ROLLBACK else None,
            suspect_log_indices=suspects or None,
            detected_anomalies=anomalies,
            impact_assessment=self._impact(recommendation, anomalies),
        )
        logger.info(
            f"Heuristic analysis for {current_version}: {recommendation.value} (risk={result.risk_score})"
        )
        return result

    def _score_metrics(self, window: List[MetricPoint]) -> Tuple[float, List[str], List[str]]:
        t = self.thresholds
        risk = self.BASE_RISK
        findings: List[str] = []
        anomalies: List[str] = []
        if not window:
            findings.append("no metric samples available yet")
            return risk, findings, anomalies

        latency = fmean(m.latency for m in window)
        baseline = self.baseline_latency or 1.0
        ratio = latency / baseline
        if ratio >= t.latency_ratio_critical:
            risk += 40
            anomalies.append("Latency Spike")
            findings.append(
                f"latency {latency:.0f}ms is {(ratio - 1) * 100:.0f}% above baseline "
                f"(threshold: {(t.latency_ratio_critical - 1) * 100:.0f}%)"
            )
        elif ratio >= t.latency_ratio_warning:
            risk += 20
            anomalies.append("Latency Degradation")
            findings.append(f"latency {latency:.0f}ms is {(ratio - 1) * 100:.0f}% above baseline")

        errors = fmean(m.errors for m in window)
        if errors > t.errors_critical:
            risk += 40
            anomalies.append("Error Burst")
            findings.append(
                f"{errors:.1f} errors per sample (threshold: {t.errors_critical:g})"
            )
        elif errors > t.errors_warning:
            risk += 20
            anomalies.append("Elevated Error Rate")
            findings.append(f"{errors:.1f} errors per sample")

        memory = fmean(m.memory for m in window)
        if memory >= t.memory_critical:
            risk += 25
            anomalies.append("Memory Pressure")
            findings.append(f"memory at {memory:.0f}% (threshold: {t.memory_critical:g}%)")
        elif memory >= t.memory_warning:
            risk += 10
            anomalies.append("Memory Growth")
            findings.append(f"memory at {memory:.0f}%")

        return risk, findings, anomalies

    def _recommend(self, risk: float) -> Recommendation:
        if risk >= self.thresholds.rollback_risk:
            return Recommendation.ROLLBACK
        if risk >= self.thresholds.investigate_risk:
            return Recommendation.INVESTIGATE
        return Recommendation.STAY

    def _confidence(self, samples: int) -> float:
        if samples == 0:
            return 0.3
        return round(min(0.95, 0.5 + 0.1 * samples), 2)

    def _impact(self, recommendation: Recommendation, anomalies: List[str]) -> str:
        if recommendation == Recommendation.ROLLBACK:
            return f"User-facing degradation likely ({', '.join(anomalies)}); restore the previous version."
        if recommendation == Recommendation.INVESTIGATE:
            return f"Partial degradation observed ({', '.join(anomalies) or 'no labelled anomaly'}); monitor closely."
        return "No user-facing impact detected."
