"""Telemetry simulation: sampling, bounded buffers and the tick driver."""

from .generator import TelemetryGenerator, MESSAGE_CATALOG
from .store import TelemetryStore
from .scheduler import TelemetryScheduler

__all__ = [
    "TelemetryGenerator",
    "MESSAGE_CATALOG",
    "TelemetryStore",
    "TelemetryScheduler",
]
