"""Core records of the simulated production environment.

Serialization uses the camelCase keys of the operator API.
"""
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


class DeploymentStatus(str, Enum):
    ACTIVE = "ACTIVE"
    PREVIOUS = "PREVIOUS"
    ROLLED_BACK = "ROLLED_BACK"
    FAILED = "FAILED"
    PENDING = "PENDING"


class LogLevel(str, Enum):
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class RollbackTrigger(str, Enum):
    """How a rollback was initiated."""
    MANUAL = "MANUAL"  # operator-confirmed
    AI_SUGGESTED = "AI_SUGGESTED"  # operator accepted an analysis recommendation
    AUTOMATIC = "AUTOMATIC"  # executed by the engine without operator action

    @property
    def label(self) -> str:
        return {
            RollbackTrigger.MANUAL: "Manual",
            RollbackTrigger.AI_SUGGESTED: "AI-Suggested",
            RollbackTrigger.AUTOMATIC: "Automatic",
        }[self]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Deployment:
    """A single deployment record held by the registry."""
    id: str
    version: str
    timestamp: datetime
    status: DeploymentStatus
    author: str
    commit_hash: str
    environment: str = "production"
    health_score: int = 100  # 0-100

    def __post_init__(self):
        if not 0 <= self.health_score <= 100:
            raise ValueError("Health score must be between 0 and 100")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "version": self.version,
            "timestamp": self.timestamp.isoformat(),
            "status": self.status.value,
            "author": self.author,
            "commitHash": self.commit_hash,
            "environment": self.environment,
            "healthScore": self.health_score,
        }


@dataclass
class LogEntry:
    """One simulated log line.

    ``is_suspect`` is only ever set from analysis output.
    """
    timestamp: datetime
    level: LogLevel
    message: str
    service: str
    is_suspect: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "level": self.level.value,
            "message": self.message,
            "service": self.service,
            "isSuspect": self.is_suspect,
        }


@dataclass(frozen=True)
class MetricPoint:
    """One telemetry sample."""
    time: str  # wall-clock label, HH:MM:SS
    cpu: float  # percent
    memory: float  # percent
    latency: float  # ms
    errors: int
    baseline_latency: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "time": self.time,
            "cpu": self.cpu,
            "memory": self.memory,
            "latency": round(self.latency, 2),
            "errors": self.errors,
            "baselineLatency": self.baseline_latency,
        }

    @classmethod
    def empty(cls) -> "MetricPoint":
        """Placeholder snapshot used when no sample exists yet."""
        return cls(time="", cpu=0.0, memory=0.0, latency=0.0, errors=0)


@dataclass(frozen=True)
class FaultState:
    """Independent fault-injection toggles."""
    latency_spike: bool = False
    error_burst: bool = False
    memory_leak: bool = False

    @property
    def any_active(self) -> bool:
        return self.latency_spike or self.error_burst or self.memory_leak

    def with_changes(self, **toggles: Optional[bool]) -> "FaultState":
        """Copy with the given toggles applied; ``None`` leaves a toggle unchanged."""
        return replace(self, **{k: v for k, v in toggles.items() if v is not None})

    def to_dict(self) -> Dict[str, bool]:
        return {
            "latencySpike": self.latency_spike,
            "errorBurst": self.error_burst,
            "memoryLeak": self.memory_leak,
        }


@dataclass(frozen=True)
class IncidentReport:
    """Immutable record synthesized once per completed rollback."""
    incident_id: str
    timestamp: datetime
    failed_version: str
    restored_version: str
    root_cause: str
    summary: str
    metrics_at_failure: MetricPoint
    resolution_time: str  # descriptive label, records the initiation path
    trigger: RollbackTrigger = RollbackTrigger.MANUAL
    anomalies: tuple = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "incidentId": self.incident_id,
            "timestamp": self.timestamp.isoformat(),
            "failedVersion": self.failed_version,
            "restoredVersion": self.restored_version,
            "rootCause": self.root_cause,
            "summary": self.summary,
            "metricsAtFailure": self.metrics_at_failure.to_dict(),
            "resolutionTime": self.resolution_time,
            "trigger": self.trigger.value,
            "anomalies": list(self.anomalies),
        }
