"""Incident report synthesis for completed rollbacks."""
from datetime import datetime
from typing import Optional
from uuid import uuid4

from src.sentinel.models.analysis import AnalysisResult
from src.sentinel.models.domain import IncidentReport, MetricPoint, RollbackTrigger, utc_now

MANUAL_ROOT_CAUSE = "Manual operator intervention - health baseline deviation suspected."
MANUAL_SUMMARY = "Operator triggered manual rollback to restore known stable environment state."


def new_incident_id() -> str:
    return f"INC-{uuid4().hex[:8].upper()}"


def resolution_label(trigger: RollbackTrigger, settle_seconds: float) -> str:
    """Descriptive resolution label, e.g. ``"~2s (Manual)"``."""
    return f"~{settle_seconds:g}s ({trigger.label})"


def build_incident_report(
    failed_version: str,
    restored_version: str,
    metrics_at_failure: Optional[MetricPoint],
    analysis: Optional[AnalysisResult],
    trigger: RollbackTrigger,
    settle_seconds: float,
    timestamp: Optional[datetime] = None,
) -> IncidentReport:
    """Create the report for a rollback about to be applied.

    Root cause and summary come from the held analysis when there is one,
    otherwise from the fixed manual-intervention text.
    """
    if analysis is not None:
        root_cause = analysis.reasoning
        summary = analysis.impact_assessment
        anomalies = tuple(analysis.detected_anomalies)
    else:
        root_cause = MANUAL_ROOT_CAUSE
        summary = MANUAL_SUMMARY
        anomalies = ()

    return IncidentReport(
        incident_id=new_incident_id(),
        timestamp=timestamp or utc_now(),
        failed_version=failed_version,
        restored_version=restored_version,
        root_cause=root_cause,
        summary=summary,
        metrics_at_failure=metrics_at_failure or MetricPoint.empty(),
        resolution_time=resolution_label(trigger, settle_seconds),
        trigger=trigger,
        anomalies=anomalies,
    )
