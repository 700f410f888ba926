"""Integration tests for the deployment session.

The whole engine runs in-process: ticks are driven explicitly, the
analyzer is scripted and the rollback settle time is zero.
"""
import asyncio
import random

import pytest

from conftest import StubAnalyzer, make_analysis
from src.sentinel.analysis.chat import ChatMessage
from src.sentinel.analysis.heuristic import HeuristicHealthAnalyzer
from src.sentinel.analysis.trigger import TriggerState
from src.sentinel.analysis.genai_analyzer import GenerativeHealthAnalyzer
from src.sentinel.core.config import Settings
from src.sentinel.core.exceptions import RollbackInProgressError
from src.sentinel.models.analysis import Recommendation
from src.sentinel.models.domain import DeploymentStatus, RollbackTrigger
from src.sentinel.services.session import DeploymentSession, build_analyzer


def make_config(**overrides):
    values = dict(
        ROLLBACK_SETTLE_SECONDS=0,
        SCHEDULER_AUTOSTART=False,
        GENAI_API_KEY="",
        CHAT_FALLBACK_REPLY="offline",
    )
    values.update(overrides)
    return Settings(**values)


def make_session(analyzer=None, **overrides):
    return DeploymentSession(
        make_config(**overrides),
        analyzer=analyzer or StubAnalyzer(),
        rng=random.Random(99),
    )


async def tick(session, count):
    for _ in range(count):
        await session.scheduler.tick()


class TestAnalyzerSelection:
    def test_heuristic_without_key(self):
        assert isinstance(build_analyzer(make_config()), HeuristicHealthAnalyzer)

    def test_generative_with_key(self):
        assert isinstance(build_analyzer(make_config(GENAI_API_KEY="k")), GenerativeHealthAnalyzer)


class TestEndToEnd:
    """Fault injection through rollback."""

    @pytest.mark.asyncio
    async def test_error_burst_triggers_analysis(self):
        analyzer = StubAnalyzer()
        session = make_session(analyzer)
        session.store.set_faults(error_burst=True, latency_spike=True)

        for _ in range(30):
            await session.scheduler.tick()
            if session.trigger.fired_count:
                break
        await session.trigger.wait_idle()

        assert session.trigger.fired_count == 1
        assert session.store.analysis is not None
        assert analyzer.calls[0]["current_version"] == "v1.2.0"

    @pytest.mark.asyncio
    async def test_manual_rollback_uses_analysis_suggestion(self):
        session = make_session(StubAnalyzer(make_analysis(suggested_version="v1.1.8")))
        await tick(session, 3)
        await session.trigger.trigger_manual()

        report = await session.rollback(trigger=RollbackTrigger.AI_SUGGESTED)

        assert report.restored_version == "v1.1.8"
        assert report.trigger == RollbackTrigger.AI_SUGGESTED
        assert session.registry.active_deployment().version == "v1.1.8"
        assert session.last_incident is report
        assert session.store.analysis is None

    @pytest.mark.asyncio
    async def test_rollback_defaults_to_previous_version(self):
        session = make_session()

        report = await session.rollback()

        assert report.restored_version == "v1.1.9"

    @pytest.mark.asyncio
    async def test_unknown_suggestion_falls_back_to_previous(self):
        session = make_session(StubAnalyzer(make_analysis(suggested_version="v0.0.1")))
        await session.trigger.trigger_manual()

        assert session.suggested_target() == "v1.1.9"


class TestAutoRollback:
    """Autonomous rollback on confident ROLLBACK recommendations."""

    @pytest.mark.asyncio
    async def test_disabled_by_default(self):
        session = make_session()

        await session.trigger.trigger_manual()

        assert session.registry.active_deployment().version == "v1.2.0"
        assert session.last_incident is None

    @pytest.mark.asyncio
    async def test_confident_rollback_executes(self):
        session = make_session(AUTO_ROLLBACK_ENABLED=True)

        await session.trigger.trigger_manual()

        assert session.registry.active_deployment().version == "v1.1.9"
        assert session.registry.get("v1.2.0").status == DeploymentStatus.ROLLED_BACK
        assert session.last_incident.trigger == RollbackTrigger.AUTOMATIC
        assert session.last_incident.resolution_time == "~0s (Automatic)"

    @pytest.mark.asyncio
    async def test_low_confidence_skipped(self):
        analyzer = StubAnalyzer(make_analysis(confidence=0.5))
        session = make_session(analyzer, AUTO_ROLLBACK_ENABLED=True)

        await session.trigger.trigger_manual()

        assert session.registry.active_deployment().version == "v1.2.0"

    @pytest.mark.asyncio
    async def test_non_rollback_recommendation_skipped(self):
        analyzer = StubAnalyzer(make_analysis(recommendation=Recommendation.INVESTIGATE))
        session = make_session(analyzer, AUTO_ROLLBACK_ENABLED=True)

        await session.trigger.trigger_manual()

        assert session.last_incident is None

    @pytest.mark.asyncio
    async def test_fallback_never_rolls_back(self):
        session = make_session(StubAnalyzer(error=RuntimeError("boom")), AUTO_ROLLBACK_ENABLED=True)

        await session.trigger.trigger_manual()

        assert session.store.analysis.is_fallback
        assert session.last_incident is None

    @pytest.mark.asyncio
    async def test_analysis_overtaken_by_rollback_is_ignored(self):
        gate = asyncio.Event()
        analyzer = StubAnalyzer(make_analysis(suggested_version="v1.1.8"), gate=gate)
        session = make_session(analyzer, AUTO_ROLLBACK_ENABLED=True)

        task = session.trigger.trigger_manual()
        await asyncio.sleep(0)
        await session.rollback("v1.1.9")
        gate.set()
        await task

        assert analyzer.calls[0]["current_version"] == "v1.2.0"
        assert session.registry.active_deployment().version == "v1.1.9"
        assert session.store.analysis is None
        assert session.last_incident.trigger == RollbackTrigger.MANUAL
        assert session.trigger.state == TriggerState.IDLE

    @pytest.mark.asyncio
    async def test_result_for_inactive_version_skipped(self):
        session = make_session(AUTO_ROLLBACK_ENABLED=True)

        await session._on_analysis(make_analysis(), "v1.1.8")

        assert session.registry.active_deployment().version == "v1.2.0"
        assert session.last_incident is None


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_stop_closes_backend_client(self):
        session = make_session()

        await session.stop()

        assert session.chat_assistant.client.client.is_closed

    @pytest.mark.asyncio
    async def test_stop_waits_for_analysis(self):
        gate = asyncio.Event()
        session = make_session(StubAnalyzer(gate=gate))
        session.trigger.trigger_manual()

        stopping = asyncio.create_task(session.stop())
        await asyncio.sleep(0)
        assert not stopping.done()

        gate.set()
        await stopping
        assert session.store.analysis is not None


class TestReset:
    @pytest.mark.asyncio
    async def test_reset_restores_initial_state(self):
        session = make_session()
        session.store.set_faults(memory_leak=True)
        await tick(session, 5)
        await session.rollback("v1.1.8")

        await session.reset()

        assert session.registry.active_deployment().version == "v1.2.0"
        assert session.store.metrics() == []
        assert session.store.logs() == []
        assert session.store.faults.any_active is False
        assert session.last_incident is None

    @pytest.mark.asyncio
    async def test_reset_refused_during_rollback(self):
        session = make_session(ROLLBACK_SETTLE_SECONDS=0.05)
        task = asyncio.create_task(session.rollback("v1.1.9"))
        await asyncio.sleep(0)

        with pytest.raises(RollbackInProgressError):
            await session.reset()
        await task


@pytest.mark.asyncio
async def test_chat_falls_back_offline():
    session = make_session()
    await tick(session, 2)

    reply = await session.chat([ChatMessage(role="user", content="status?")])

    assert reply == "offline"
