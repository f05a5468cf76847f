"""Cycle metrics collector.

Records one entry per deliberation or planning cycle:
  {cycle, started_at, completed_at, duration_seconds, proposals, conflicts, applied, outcome}

Feeds average latency into deliberation statistics and the run summary.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Optional

logger = logging.getLogger("blocksworld.orchestrator.metrics")


@dataclass
class CycleMetric:
    """Single cycle record."""
    cycle: int
    started_at: datetime
    completed_at: Optional[datetime] = None
    duration_seconds: float = 0.0
    proposals: int = 0
    conflicts: int = 0
    applied: int = 0
    outcome: str = "pending"  # deliberation mode once completed

    @property
    def parallel(self) -> bool:
        return self.applied >= 2


class CycleMetrics:
    """Collects and aggregates per-cycle timing and counts."""

    def __init__(self):
        self._cycles: list[CycleMetric] = []

    def start_cycle(self, cycle: int) -> CycleMetric:
        metric = CycleMetric(cycle=cycle, started_at=datetime.now(UTC))
        self._cycles.append(metric)
        return metric

    def complete_cycle(
        self,
        metric: CycleMetric,
        outcome: str,
        proposals: int = 0,
        conflicts: int = 0,
        applied: int = 0,
    ) -> None:
        metric.completed_at = datetime.now(UTC)
        metric.outcome = outcome
        metric.proposals = proposals
        metric.conflicts = conflicts
        metric.applied = applied
        metric.duration_seconds = (metric.completed_at - metric.started_at).total_seconds()
        logger.debug(
            "Cycle %d: outcome=%s, proposals=%d, conflicts=%d, applied=%d, duration=%.4fs",
            metric.cycle, outcome, proposals, conflicts, applied, metric.duration_seconds,
        )

    def get_cycles(self) -> list[CycleMetric]:
        return list(self._cycles)

    def reset(self) -> None:
        self._cycles.clear()

    @property
    def average_latency_ms(self) -> float:
        done = [m for m in self._cycles if m.completed_at is not None]
        if not done:
            return 0.0
        return sum(m.duration_seconds for m in done) * 1000.0 / len(done)

    @property
    def slowest_cycle(self) -> Optional[int]:
        if not self._cycles:
            return None
        return max(self._cycles, key=lambda m: m.duration_seconds).cycle

    def get_summary(self) -> dict:
        """Aggregate summary of all recorded cycles."""
        if not self._cycles:
            return {"total_cycles": 0}

        outcomes: dict[str, int] = {}
        for m in self._cycles:
            outcomes[m.outcome] = outcomes.get(m.outcome, 0) + 1

        return {
            "total_cycles": len(self._cycles),
            "parallel_cycles": sum(1 for m in self._cycles if m.parallel),
            "average_latency_ms": round(self.average_latency_ms, 3),
            "slowest_cycle": self.slowest_cycle,
            "outcomes": outcomes,
        }
