"""Simulated telemetry for the active deployment.

Each tick yields one metric sample and one log line whose distribution is
shaped by the current fault-injection toggles. All randomness comes from
the ``random.Random`` instance handed to the generator, so a seeded
generator replays the same stream.

Example:
    >>> import random
    >>> generator = TelemetryGenerator(rng=random.Random(7))
    >>> point, logs = generator.tick(FaultState(error_burst=True))
    >>> 5 <= point.errors < 20
    True
"""
import random
from typing import Callable, List, Optional, Tuple

from src.sentinel.core.config import settings
from src.sentinel.models.domain import FaultState, LogEntry, LogLevel, MetricPoint, utc_now

MESSAGE_CATALOG = (
    "Connection established to gateway",
    "Request processed successfully",
    "Handshake timeout",
    "Internal Server Error 500",
    "Database pool exhausted",
    "Cache hit for key 'user_auth'",
    "Memory threshold exceeded",
    "GC collection took 400ms",
    "Worker pool saturation at 85%",
    "Keep-alive connection closed by peer",
)

UPSTREAM_TIMEOUT_MESSAGE = "Critical failure in upstream service 'auth-v2': SocketTimeout"
LATENCY_THRESHOLD_MESSAGE = "Latency threshold exceeded on /api/v1/checkout - upstream slow"
OOM_IMMINENT_MESSAGE = "OOM Killer imminent: Node heap usage > 92%"

# Override draws must exceed these to replace the catalog line
ERROR_BURST_OVERRIDE = 0.4
LATENCY_SPIKE_OVERRIDE = 0.6
MEMORY_LEAK_OVERRIDE = 0.7

MIN_LATENCY_MS = 10.0


class TelemetryGenerator:
    """Produces one metric sample and its log lines per tick."""

    def __init__(
        self,
        rng: Optional[random.Random] = None,
        baseline_latency: float = settings.BASELINE_LATENCY_MS,
        service: str = settings.SERVICE_NAME_LABEL,
        logs_per_tick: int = 1,
        clock: Callable = utc_now,
    ):
        """Initialize generator.

        Args:
            rng: Pseudo-random source; seeded from settings when omitted
            baseline_latency: Healthy latency in ms
            service: Originating service of generated log lines
            logs_per_tick: Log lines emitted per tick
            clock: Returns the current aware datetime
        """
        if logs_per_tick < 0:
            raise ValueError("logs_per_tick cannot be negative")
        self.rng = rng or random.Random(settings.SIMULATION_SEED)
        self.baseline_latency = baseline_latency
        self.service = service
        self.logs_per_tick = logs_per_tick
        self.clock = clock

    def tick(self, faults: FaultState) -> Tuple[MetricPoint, List[LogEntry]]:
        """Sample the next metric point and log lines under ``faults``."""
        point = self.sample_metric(faults)
        logs = [self.sample_log(faults) for _ in range(self.logs_per_tick)]
        return point, logs

    def sample_metric(self, faults: FaultState) -> MetricPoint:
        rng = self.rng

        spike = rng.uniform(150, 350) if faults.latency_spike else 0.0
        if faults.error_burst:
            errors = rng.randrange(5, 20)
        else:
            # rare background error
            errors = 1 if rng.random() > 0.9 else 0

        cpu = rng.randrange(60, 70) if faults.memory_leak else rng.randrange(20, 30)
        memory = rng.randrange(80, 90) if faults.memory_leak else rng.randrange(45, 55)
        noise = rng.uniform(-10, 10)

        return MetricPoint(
            time=self.clock().strftime("%H:%M:%S"),
            cpu=float(cpu),
            memory=float(memory),
            latency=max(MIN_LATENCY_MS, self.baseline_latency + spike + noise),
            errors=errors,
            baseline_latency=self.baseline_latency,
        )

    def sample_log(self, faults: FaultState) -> LogEntry:
        """Draw one log line.

        At most one fault override applies, checked in the order
        error burst, latency spike, memory leak; a fault only draws when
        it is active.
        """
        rng = self.rng
        level = LogLevel.INFO
        message = rng.choice(MESSAGE_CATALOG)

        if faults.error_burst and rng.random() > ERROR_BURST_OVERRIDE:
            level = LogLevel.ERROR
            message = UPSTREAM_TIMEOUT_MESSAGE
        elif faults.latency_spike and rng.random() > LATENCY_SPIKE_OVERRIDE:
            level = LogLevel.WARN
            message = LATENCY_THRESHOLD_MESSAGE
        elif faults.memory_leak and rng.random() > MEMORY_LEAK_OVERRIDE:
            level = LogLevel.CRITICAL
            message = OOM_IMMINENT_MESSAGE

        return LogEntry(
            timestamp=self.clock(),
            level=level,
            message=message,
            service=self.service,
        )
