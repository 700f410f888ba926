"""Periodic driver for telemetry generation and anomaly checks."""
import asyncio
from typing import TYPE_CHECKING, Optional

from loguru import logger

from src.sentinel.core.config import settings
from src.sentinel.monitoring.metrics import SIMULATED_ERRORS, SIMULATED_LATENCY, TELEMETRY_TICKS
from src.sentinel.telemetry.generator import TelemetryGenerator
from src.sentinel.telemetry.store import TelemetryStore

if TYPE_CHECKING:
    from src.sentinel.analysis.trigger import AutoAnalysisTrigger


class TelemetryScheduler:
    """Runs ``tick()`` on a fixed period.

    ``tick()`` is the whole unit of work and can be driven directly by a
    simulated clock in tests; ``start()``/``stop()`` wrap it in a
    background task for the live service. A slow analysis never blocks a
    tick: the trigger only schedules the analyzer call.
    """

    def __init__(
        self,
        generator: TelemetryGenerator,
        store: TelemetryStore,
        trigger: Optional["AutoAnalysisTrigger"] = None,
        interval_seconds: float = settings.TICK_INTERVAL_SECONDS,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("Tick interval must be positive")
        self.generator = generator
        self.store = store
        self.trigger = trigger
        self.interval_seconds = interval_seconds
        self.tick_count = 0
        self._running = False
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._running

    async def tick(self) -> None:
        """Generate one sample, buffer it and let the trigger look at it."""
        point, logs = self.generator.tick(self.store.faults)
        await self.store.record(point, logs)
        self.tick_count += 1

        TELEMETRY_TICKS.inc()
        SIMULATED_ERRORS.inc(point.errors)
        SIMULATED_LATENCY.set(point.latency)

        if self.trigger is not None:
            self.trigger.evaluate()

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._loop())
        logger.info(f"Telemetry scheduler started: interval={self.interval_seconds}s")

    async def stop(self) -> None:
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Telemetry scheduler stopped")

    async def _loop(self) -> None:
        while self._running:
            try:
                await self.tick()
            except asyncio.CancelledError:
                break
            except Exception:
                logger.exception("Telemetry tick failed, continuing at next period")
            await asyncio.sleep(self.interval_seconds)
