"""Rollback execution against the deployment registry.

A rollback captures the failing state, waits out the settle period of the
simulated version swap, promotes the target and synthesizes exactly one
incident report. Only one rollback runs at a time; a request arriving
while another executes fails immediately with ``RollbackInProgressError``.
"""
import asyncio
from typing import Awaitable, Callable, Optional

from loguru import logger

from src.sentinel.core.config import settings
from src.sentinel.core.exceptions import (
    InvalidRollbackTargetError,
    NoActiveDeploymentError,
    NotFoundError,
    RollbackInProgressError,
)
from src.sentinel.deployment.incident import build_incident_report
from src.sentinel.deployment.registry import DeploymentRegistry
from src.sentinel.models.domain import IncidentReport, RollbackTrigger
from src.sentinel.monitoring.metrics import ROLLBACK_IN_FLIGHT, ROLLBACK_TOTAL
from src.sentinel.monitoring.tracing import record_exception, set_span_attributes, tracer
from src.sentinel.telemetry.store import TelemetryStore


class RollbackExecutor:
    """Executes version swaps and keeps the most recent incident report."""

    def __init__(
        self,
        registry: DeploymentRegistry,
        store: TelemetryStore,
        settle_seconds: float = settings.ROLLBACK_SETTLE_SECONDS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """Initialize executor.

        Args:
            registry: Registry to promote against
            store: Telemetry store holding metrics, analysis and faults
            settle_seconds: Simulated duration of the version swap
            sleep: Awaitable delay, replaceable by a simulated clock
        """
        if settle_seconds < 0:
            raise ValueError("Settle time cannot be negative")
        self.registry = registry
        self.store = store
        self.settle_seconds = settle_seconds
        self._sleep = sleep
        self._in_flight: Optional[str] = None
        self._last_incident: Optional[IncidentReport] = None

    @property
    def in_progress(self) -> bool:
        return self._in_flight is not None

    @property
    def in_flight_target(self) -> Optional[str]:
        return self._in_flight

    @property
    def last_incident(self) -> Optional[IncidentReport]:
        return self._last_incident

    def forget_incident(self) -> None:
        self._last_incident = None

    def _check_preconditions(self, target_version: str) -> str:
        """Validate the request and return the currently active version."""
        active = self.registry.active_deployment()
        if active is None:
            raise NoActiveDeploymentError()
        if target_version not in self.registry:
            raise NotFoundError(target_version)
        if target_version == active.version:
            raise InvalidRollbackTargetError(target_version)
        return active.version

    async def execute(
        self,
        target_version: str,
        trigger: RollbackTrigger = RollbackTrigger.MANUAL,
    ) -> IncidentReport:
        """Roll the active deployment back to ``target_version``.

        Args:
            target_version: Non-active version to restore
            trigger: How the rollback was initiated

        Returns:
            The incident report for this rollback

        Raises:
            RollbackInProgressError: Another rollback is executing
            NotFoundError: Unknown target version
            InvalidRollbackTargetError: Target is already active
            NoActiveDeploymentError: Registry has no active record
        """
        if self._in_flight is not None:
            ROLLBACK_TOTAL.labels(trigger=trigger.value, outcome="rejected").inc()
            logger.warning(
                f"Rollback to {target_version} rejected: rollback to {self._in_flight} in progress"
            )
            raise RollbackInProgressError(self._in_flight)

        try:
            failed_version = self._check_preconditions(target_version)
        except Exception:
            ROLLBACK_TOTAL.labels(trigger=trigger.value, outcome="rejected").inc()
            raise

        # Claimed before the first await so a concurrent request sees it
        self._in_flight = target_version
        ROLLBACK_IN_FLIGHT.set(1)

        with tracer.start_as_current_span("rollback.execute") as span:
            set_span_attributes(
                span,
                failed_version=failed_version,
                target_version=target_version,
                trigger=trigger.value,
            )
            try:
                logger.warning(
                    f"⏪ Rollback started: {failed_version} -> {target_version} ({trigger.label})"
                )
                # Capture failure state before anything is mutated
                report = build_incident_report(
                    failed_version=failed_version,
                    restored_version=target_version,
                    metrics_at_failure=self.store.latest_metric(),
                    analysis=self.store.analysis,
                    trigger=trigger,
                    settle_seconds=self.settle_seconds,
                )

                await self._sleep(self.settle_seconds)

                self.registry.promote(target_version)
                await self.store.settle_after_rollback()
                self._last_incident = report

                ROLLBACK_TOTAL.labels(trigger=trigger.value, outcome="completed").inc()
                set_span_attributes(span, incident_id=report.incident_id)
                logger.info(
                    f"✅ Rollback complete: {report.incident_id} restored {target_version}"
                )
                return report
            except Exception as e:
                ROLLBACK_TOTAL.labels(trigger=trigger.value, outcome="failed").inc()
                record_exception(span, e)
                logger.error(f"❌ Rollback to {target_version} failed: {e}")
                raise
            finally:
                self._in_flight = None
                ROLLBACK_IN_FLIGHT.set(0)
