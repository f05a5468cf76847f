"""Tests for blocksworld/orchestrator/metrics.py — per-cycle metrics."""

from datetime import UTC, datetime

import pytest

from blocksworld.orchestrator.metrics import CycleMetric, CycleMetrics


class TestCycleMetric:
    def test_parallel(self):
        metric = CycleMetric(cycle=1, started_at=datetime.now(UTC), applied=2)
        assert metric.parallel is True

    def test_not_parallel(self):
        metric = CycleMetric(cycle=1, started_at=datetime.now(UTC), applied=1)
        assert metric.parallel is False


class TestCycleMetrics:
    @pytest.fixture
    def metrics(self):
        return CycleMetrics()

    def test_start_cycle(self, metrics):
        metric = metrics.start_cycle(4)
        assert metric.cycle == 4
        assert metric.outcome == "pending"
        assert metrics.get_cycles() == [metric]

    def test_complete_cycle(self, metrics):
        metric = metrics.start_cycle(1)
        metrics.complete_cycle(metric, outcome="negotiate", proposals=2, conflicts=1, applied=1)
        assert metric.completed_at is not None
        assert metric.duration_seconds >= 0.0
        assert metric.conflicts == 1

    def test_average_latency_empty(self, metrics):
        assert metrics.average_latency_ms == 0.0

    def test_average_latency(self, metrics):
        for cycle, seconds in ((1, 0.002), (2, 0.004)):
            metric = metrics.start_cycle(cycle)
            metrics.complete_cycle(metric, outcome="auto-approve")
            metric.duration_seconds = seconds
        assert metrics.average_latency_ms == pytest.approx(3.0)
        assert metrics.slowest_cycle == 2

    def test_summary_empty(self, metrics):
        assert metrics.get_summary() == {"total_cycles": 0}

    def test_summary(self, metrics):
        first = metrics.start_cycle(1)
        metrics.complete_cycle(first, outcome="auto-approve", applied=2)
        second = metrics.start_cycle(2)
        metrics.complete_cycle(second, outcome="negotiate", applied=1)
        summary = metrics.get_summary()
        assert summary["total_cycles"] == 2
        assert summary["parallel_cycles"] == 1
        assert summary["outcomes"] == {"auto-approve": 1, "negotiate": 1}

    def test_reset(self, metrics):
        metrics.complete_cycle(metrics.start_cycle(1), outcome="auto-approve")
        metrics.reset()
        assert metrics.get_cycles() == []
        assert metrics.get_summary() == {"total_cycles": 0}
