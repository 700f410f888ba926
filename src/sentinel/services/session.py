"""Deployment session: wires the rollback engine together.

One session simulates one production environment. All state is process
lifetime; ``reset()`` returns to the initial deployment fixture with empty
buffers.
"""
import random
from typing import Optional, Sequence

from loguru import logger

from src.sentinel.analysis.base import HealthAnalyzer
from src.sentinel.analysis.chat import ChatMessage, SREChatAssistant
from src.sentinel.analysis.genai_analyzer import GenerativeHealthAnalyzer
from src.sentinel.analysis.genai_client import GenAIClient
from src.sentinel.analysis.heuristic import HeuristicHealthAnalyzer
from src.sentinel.analysis.trigger import AutoAnalysisTrigger
from src.sentinel.core.config import Settings, settings as default_settings
from src.sentinel.core.exceptions import RollbackInProgressError, SentinelError
from src.sentinel.deployment.registry import DeploymentRegistry
from src.sentinel.deployment.rollback_executor import RollbackExecutor
from src.sentinel.models.analysis import AnalysisResult, Recommendation
from src.sentinel.models.domain import IncidentReport, RollbackTrigger
from src.sentinel.telemetry.generator import TelemetryGenerator
from src.sentinel.telemetry.scheduler import TelemetryScheduler
from src.sentinel.telemetry.store import TelemetryStore


def build_analyzer(config: Settings, client: Optional[GenAIClient] = None) -> HealthAnalyzer:
    """Generative analyzer when a backend key is configured, heuristic otherwise."""
    if config.GENAI_API_KEY:
        logger.info(f"Using generative health analyzer ({config.GENAI_MODEL})")
        return GenerativeHealthAnalyzer(client or GenAIClient(api_key=config.GENAI_API_KEY))
    logger.info("No GenAI key configured, using heuristic health analyzer")
    return HeuristicHealthAnalyzer(baseline_latency=config.BASELINE_LATENCY_MS)


class DeploymentSession:
    """Composition root for registry, telemetry, analysis and rollback."""

    def __init__(
        self,
        config: Optional[Settings] = None,
        analyzer: Optional[HealthAnalyzer] = None,
        rng: Optional[random.Random] = None,
        chat: Optional[SREChatAssistant] = None,
    ):
        self.config = config or default_settings
        cfg = self.config

        self.registry = DeploymentRegistry()
        self.store = TelemetryStore(
            metric_capacity=cfg.METRIC_BUFFER_SIZE,
            log_capacity=cfg.LOG_BUFFER_SIZE,
        )
        self.generator = TelemetryGenerator(
            rng=rng or random.Random(cfg.SIMULATION_SEED),
            baseline_latency=cfg.BASELINE_LATENCY_MS,
            service=cfg.SERVICE_NAME_LABEL,
        )

        client = None
        if analyzer is None or chat is None:
            client = GenAIClient(api_key=cfg.GENAI_API_KEY, model=cfg.GENAI_MODEL,
                                 base_url=cfg.GENAI_BASE_URL, timeout=cfg.GENAI_TIMEOUT_SECONDS)
        self._client = client
        self.analyzer = analyzer or build_analyzer(cfg, client)
        self.chat_assistant = chat or SREChatAssistant(client, cfg.CHAT_FALLBACK_REPLY)

        self.executor = RollbackExecutor(
            self.registry,
            self.store,
            settle_seconds=cfg.ROLLBACK_SETTLE_SECONDS,
        )
        self.trigger = AutoAnalysisTrigger(
            self.store,
            self.registry,
            self.analyzer,
            log_window=cfg.ANALYSIS_LOG_WINDOW,
            sample_window=cfg.TRIGGER_WINDOW,
            error_threshold=cfg.TRIGGER_ERROR_THRESHOLD,
            latency_threshold=cfg.TRIGGER_LATENCY_THRESHOLD_MS,
            timeout_seconds=cfg.ANALYSIS_TIMEOUT_SECONDS,
            on_result=self._on_analysis,
        )
        self.scheduler = TelemetryScheduler(
            self.generator,
            self.store,
            trigger=self.trigger,
            interval_seconds=cfg.TICK_INTERVAL_SECONDS,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        await self.scheduler.start()

    async def stop(self) -> None:
        await self.scheduler.stop()
        await self.trigger.wait_idle()
        if self._client is not None:
            self._client.close()

    async def reset(self) -> None:
        """Back to the initial fixture with empty buffers.

        Raises:
            RollbackInProgressError: A rollback is executing
        """
        if self.executor.in_progress:
            raise RollbackInProgressError(self.executor.in_flight_target)
        await self.trigger.wait_idle()
        self.registry.reset()
        await self.store.clear()
        self.executor.forget_incident()
        logger.info("Deployment session reset")

    # ------------------------------------------------------------------
    # Operator actions
    # ------------------------------------------------------------------

    async def rollback(
        self,
        target_version: Optional[str] = None,
        trigger: RollbackTrigger = RollbackTrigger.MANUAL,
    ) -> IncidentReport:
        """Roll back to ``target_version``.

        Without a target, the held analysis' suggestion is used, then the
        previous version in registry order.
        """
        target = target_version or self.suggested_target()
        if target is None:
            raise SentinelError("No rollback target available")
        return await self.executor.execute(target, trigger)

    def suggested_target(self) -> Optional[str]:
        analysis = self.store.analysis
        if analysis is not None and analysis.suggested_version:
            if analysis.suggested_version in self.registry:
                return analysis.suggested_version
            logger.warning(
                f"Ignoring unknown suggested version {analysis.suggested_version}"
            )
        previous = self.registry.previous_deployment()
        return previous.version if previous else None

    async def chat(self, history: Sequence[ChatMessage]) -> str:
        return await self.chat_assistant.reply(
            history,
            self.store.recent_logs(self.config.CHAT_CONTEXT_LOGS),
            self.store.latest_metric(),
        )

    @property
    def last_incident(self) -> Optional[IncidentReport]:
        return self.executor.last_incident

    # ------------------------------------------------------------------
    # Autonomous rollback
    # ------------------------------------------------------------------

    async def _on_analysis(self, result: AnalysisResult, analyzed_version: str) -> None:
        if not self.config.AUTO_ROLLBACK_ENABLED:
            return
        active = self.registry.active_deployment()
        if active is None or active.version != analyzed_version:
            logger.info(f"Auto-rollback skipped: {analyzed_version} is no longer active")
            return
        if result.recommendation != Recommendation.ROLLBACK:
            return
        if result.confidence < self.config.AUTO_ROLLBACK_MIN_CONFIDENCE:
            logger.info(
                f"Auto-rollback skipped: confidence {result.confidence:.0%} below "
                f"{self.config.AUTO_ROLLBACK_MIN_CONFIDENCE:.0%}"
            )
            return

        try:
            report = await self.rollback(trigger=RollbackTrigger.AUTOMATIC)
        except RollbackInProgressError:
            logger.info("Auto-rollback skipped: rollback already in progress")
            return
        except SentinelError as e:
            logger.error(f"Auto-rollback failed: {e}")
            return
        logger.warning(f"🤖 Auto-rollback executed: {report.incident_id}")
