"""Unit tests for the telemetry store.

Buffer bounds and ordering, the analysis slot and suspect flagging of the
submitted log window.
"""
import pytest

from conftest import make_analysis, make_log, make_metric
from src.sentinel.models.domain import LogLevel
from src.sentinel.telemetry.store import TelemetryStore


async def fill_logs(store, count):
    """Record ``count`` ticks of one numbered log line each."""
    for i in range(count):
        await store.record(make_metric(), [make_log(f"line {i}")])


class TestBuffers:
    """Bounded FIFO buffers."""

    def test_capacities_from_config(self, store):
        assert store.metric_capacity == 30
        assert store.log_capacity == 50

    def test_non_positive_capacity_rejected(self):
        with pytest.raises(ValueError, match="must be positive"):
            TelemetryStore(metric_capacity=0)

    @pytest.mark.asyncio
    async def test_metrics_capped_oldest_evicted(self, store):
        for i in range(35):
            await store.record(make_metric(errors=i))

        metrics = store.metrics()
        assert len(metrics) == 30
        assert metrics[0].errors == 5
        assert metrics[-1].errors == 34
        assert store.latest_metric().errors == 34

    @pytest.mark.asyncio
    async def test_logs_capped_most_recent_first(self, store):
        await fill_logs(store, 55)

        logs = store.logs()
        assert len(logs) == 50
        assert logs[0].message == "line 54"
        assert logs[-1].message == "line 5"

    @pytest.mark.asyncio
    async def test_recent_views(self, store):
        await fill_logs(store, 20)

        assert [e.message for e in store.recent_logs(3)] == ["line 19", "line 18", "line 17"]
        assert len(store.recent_metrics(5)) == 5
        assert store.recent_metrics(0) == []

    def test_empty_store(self, store):
        assert store.latest_metric() is None
        assert store.logs() == []
        assert store.analysis is None


class TestFaults:
    """Fault toggles."""

    def test_partial_update_keeps_other_toggles(self, store):
        store.set_faults(latency_spike=True)
        faults = store.set_faults(error_burst=True)

        assert faults.latency_spike is True
        assert faults.error_burst is True
        assert faults.memory_leak is False

    def test_reset_faults(self, store):
        store.set_faults(memory_leak=True)
        store.reset_faults()
        assert store.faults.any_active is False


class TestAnalysisSlot:
    """Holding, clearing and suspect flagging."""

    @pytest.mark.asyncio
    async def test_suspect_indices_flag_window_positions(self, store):
        await fill_logs(store, 20)
        window = store.recent_logs(15)

        flagged = await store.store_analysis(make_analysis(suspect_log_indices=[0, 2]), window)

        assert flagged == 2
        assert [i for i, entry in enumerate(window) if entry.is_suspect] == [0, 2]
        # nothing outside the window is flagged
        assert sum(entry.is_suspect for entry in store.logs()) == 2

    @pytest.mark.asyncio
    async def test_indices_stay_bound_to_window_after_new_ticks(self, store):
        await fill_logs(store, 20)
        window = store.recent_logs(15)
        # two more lines arrive while the analyzer runs
        await fill_logs(store, 2)

        await store.store_analysis(make_analysis(suspect_log_indices=[0]), window)

        assert window[0].is_suspect is True
        assert store.logs()[0].is_suspect is False

    @pytest.mark.asyncio
    async def test_out_of_window_indices_ignored(self, store):
        await fill_logs(store, 20)
        window = store.recent_logs(15)

        flagged = await store.store_analysis(make_analysis(suspect_log_indices=[1, 15, 99]), window)

        assert flagged == 1
        assert window[1].is_suspect is True

    @pytest.mark.asyncio
    async def test_evicted_entries_skipped(self):
        store = TelemetryStore(metric_capacity=30, log_capacity=5)
        await fill_logs(store, 5)
        window = store.recent_logs(5)
        await fill_logs(store, 3)

        # window[4] has been pushed out of the buffer
        flagged = await store.store_analysis(make_analysis(suspect_log_indices=[0, 4]), window)

        assert flagged == 1
        assert window[4].is_suspect is False

    @pytest.mark.asyncio
    async def test_new_analysis_replaces_previous_flags(self, store):
        await fill_logs(store, 15)
        window = store.recent_logs(15)

        await store.store_analysis(make_analysis(suspect_log_indices=[3]), window)
        await store.store_analysis(make_analysis(suspect_log_indices=[4]), window)

        assert window[3].is_suspect is False
        assert window[4].is_suspect is True

    @pytest.mark.asyncio
    async def test_clear_analysis_is_idempotent(self, store):
        await store.store_analysis(make_analysis(), [])

        assert await store.clear_analysis() is True
        assert await store.clear_analysis() is False
        assert store.analysis is None

    @pytest.mark.asyncio
    async def test_flags_survive_ticks_while_analysis_held(self, store):
        await fill_logs(store, 15)
        window = store.recent_logs(15)
        await store.store_analysis(make_analysis(suspect_log_indices=[0]), window)

        await fill_logs(store, 1)
        assert window[0].is_suspect is True

        await store.clear_analysis()
        await fill_logs(store, 1)
        assert window[0].is_suspect is False

    @pytest.mark.asyncio
    async def test_settle_after_rollback(self, store):
        store.set_faults(latency_spike=True, error_burst=True)
        await store.store_analysis(make_analysis(), [])

        await store.settle_after_rollback()

        assert store.analysis is None
        assert store.faults.any_active is False

    @pytest.mark.asyncio
    async def test_clear_resets_everything(self, store):
        await fill_logs(store, 3)
        store.set_faults(memory_leak=True)
        await store.store_analysis(make_analysis(), store.recent_logs(3))

        await store.clear()

        assert store.metrics() == []
        assert store.logs() == []
        assert store.analysis is None
        assert store.faults.any_active is False

    @pytest.mark.asyncio
    async def test_levels_preserved(self, store):
        await store.record(make_metric(), [make_log("boom", LogLevel.CRITICAL)])
        assert store.logs()[0].level == LogLevel.CRITICAL
