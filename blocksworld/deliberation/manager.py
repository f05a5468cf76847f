"""Per-cycle deliberation: validate, detect conflicts, negotiate, decide.

The manager never lets an exception escape a cycle. Anything raised while
negotiating degrades to approving the first valid proposal and is recorded
in the statistics and as an `error` event.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Sequence

from blocksworld.core.config import NegotiationConfig, PlannerConfig
from blocksworld.core.models import (
    Conflict,
    Decision,
    DecisionStatus,
    GoalChain,
    Proposal,
    WorldSnapshot,
)
from blocksworld.core.world import check_move
from blocksworld.deliberation.conflicts import ConflictDetector, detect
from blocksworld.deliberation.negotiation import Negotiation, NegotiationProtocol
from blocksworld.orchestrator.metrics import CycleMetrics

logger = logging.getLogger("blocksworld.deliberation.manager")

EventListener = Callable[[str, dict[str, Any]], None]

EVENT_CYCLE_START = "cycle_start"
EVENT_CONFLICTS_FOUND = "conflicts_found"
EVENT_DECISIONS_RESOLVED = "decisions_resolved"
EVENT_ERROR = "error"


@dataclass
class DeliberationResult:
    """Decisions for one cycle plus the evidence behind them."""

    cycle: int
    decisions: list[Decision] = field(default_factory=list)
    conflicts: list[Conflict] = field(default_factory=list)
    negotiations: list[Negotiation] = field(default_factory=list)
    dropped: list[Proposal] = field(default_factory=list)
    valid: bool = True
    mode: str = "auto-approve"  # "negotiate", "priority-fallback", "error-fallback", "empty"
    duration_ms: float = 0.0

    @property
    def approved(self) -> list[Decision]:
        return [d for d in self.decisions if d.status.applies]

    def to_dict(self) -> dict[str, Any]:
        return {
            "cycle": self.cycle,
            "valid": self.valid,
            "mode": self.mode,
            "decisions": [d.to_dict() for d in self.decisions],
            "conflicts": [c.to_dict() for c in self.conflicts],
            "negotiations": [n.to_dict() for n in self.negotiations],
            "dropped": [p.agent_id for p in self.dropped],
            "duration_ms": round(self.duration_ms, 3),
        }


class DeliberationManager:
    """Runs the collect, validate, detect, negotiate and decide phases."""

    def __init__(
        self,
        enable_negotiation: bool = True,
        deliberation_timeout_ms: int = 5000,
        protocol: Optional[NegotiationProtocol] = None,
        detector: Optional[ConflictDetector] = None,
        metrics: Optional[CycleMetrics] = None,
    ):
        self.enable_negotiation = enable_negotiation
        # Reported in statistics only; cycles are not interrupted.
        self.deliberation_timeout_ms = deliberation_timeout_ms
        self.protocol = protocol or NegotiationProtocol()
        self.detector = detector or ConflictDetector()
        self.metrics = metrics or CycleMetrics()
        self._listeners: list[EventListener] = []
        self._stats: dict[str, Any] = self._empty_stats()

    @staticmethod
    def _empty_stats() -> dict[str, Any]:
        return {
            "deliberations": 0,
            "errors": 0,
            "dropped_proposals": 0,
            "priority_fallbacks": 0,
            "conflicts_by_type": {},
            "resolutions_by_type": {},
            "decisions_by_status": {s.value: 0 for s in DecisionStatus},
        }

    @classmethod
    def from_config(
        cls,
        planner: PlannerConfig,
        negotiation: NegotiationConfig,
        enable_negotiation: Optional[bool] = None,
        random_seed: Optional[int] = None,
        deliberation_timeout_ms: Optional[int] = None,
    ) -> DeliberationManager:
        seed = random_seed if random_seed is not None else negotiation.random_seed
        protocol = NegotiationProtocol(
            utility_threshold=negotiation.utility_threshold,
            enable_cooperative_sequencing=negotiation.enable_cooperative_sequencing,
            enable_cooperative_alternative=negotiation.enable_cooperative_alternative,
            seed=seed,
        )
        return cls(
            enable_negotiation=planner.enable_negotiation if enable_negotiation is None else enable_negotiation,
            deliberation_timeout_ms=(
                planner.deliberation_timeout_ms if deliberation_timeout_ms is None else deliberation_timeout_ms
            ),
            protocol=protocol,
        )

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def subscribe(self, callback: EventListener) -> None:
        self._listeners.append(callback)

    def unsubscribe(self, callback: EventListener) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    def _emit(self, event_type: str, payload: dict[str, Any]) -> None:
        level = logging.WARNING if event_type == EVENT_ERROR else logging.DEBUG
        logger.log(level, "Deliberation event %s: %s", event_type, payload)
        for listener in list(self._listeners):
            try:
                listener(event_type, payload)
            except Exception as e:
                logger.warning("Deliberation listener failed on %s: %s", event_type, e)

    # ------------------------------------------------------------------
    # Cycle
    # ------------------------------------------------------------------

    def deliberate(
        self,
        proposals: Sequence[Proposal],
        snapshot: WorldSnapshot,
        goal_chain: GoalChain,
        cycle: int,
    ) -> DeliberationResult:
        started = time.monotonic()
        metric = self.metrics.start_cycle(cycle)
        self._stats["deliberations"] += 1
        self._emit(EVENT_CYCLE_START, {
            "cycle": cycle,
            "proposals": [{"agent_id": p.agent_id, **p.move.to_dict()} for p in proposals],
        })

        valid, dropped = self._validate(proposals, snapshot)
        result = DeliberationResult(cycle=cycle, dropped=dropped)

        if not valid:
            result.valid = False
            result.mode = "empty"
        else:
            conflicts = self.detector.detect_all(valid, cycle)
            result.conflicts = conflicts
            if conflicts:
                for conflict in conflicts:
                    self._bump("conflicts_by_type", conflict.type.value)
                self._emit(EVENT_CONFLICTS_FOUND, {
                    "cycle": cycle,
                    "conflicts": [c.to_dict() for c in conflicts],
                })
                if self.enable_negotiation:
                    self._negotiate(result, valid, conflicts, snapshot, goal_chain)
                else:
                    result.mode = "priority-fallback"
                    result.decisions = self._priority_fallback(valid)
                    self._stats["priority_fallbacks"] += 1
            else:
                result.decisions = [
                    Decision(p.agent_id, p.move, DecisionStatus.APPROVED, "no-conflict")
                    for p in sorted(valid, key=lambda p: p.order)
                ]

        for decision in result.decisions:
            self._stats["decisions_by_status"][decision.status.value] += 1

        result.duration_ms = (time.monotonic() - started) * 1000.0
        self.metrics.complete_cycle(
            metric,
            outcome=result.mode,
            proposals=len(proposals),
            conflicts=len(result.conflicts),
            applied=len(result.approved),
        )
        self._emit(EVENT_DECISIONS_RESOLVED, {
            "cycle": cycle,
            "mode": result.mode,
            "decisions": [d.to_dict() for d in result.decisions],
        })
        return result

    def _validate(
        self,
        proposals: Sequence[Proposal],
        snapshot: WorldSnapshot,
    ) -> tuple[list[Proposal], list[Proposal]]:
        valid: list[Proposal] = []
        dropped: list[Proposal] = []
        for proposal in proposals:
            violation = check_move(snapshot, proposal.move)
            if violation is None:
                valid.append(proposal)
            else:
                logger.debug("Dropping proposal from %s: %s", proposal.agent_id, violation)
                dropped.append(proposal)
        self._stats["dropped_proposals"] += len(dropped)
        return valid, dropped

    def _negotiate(
        self,
        result: DeliberationResult,
        valid: list[Proposal],
        conflicts: list[Conflict],
        snapshot: WorldSnapshot,
        goal_chain: GoalChain,
    ) -> None:
        result.mode = "negotiate"
        try:
            decisions, negotiations = self.protocol.negotiate(valid, conflicts, snapshot, goal_chain)
        except Exception as e:
            self._stats["errors"] += 1
            result.mode = "error-fallback"
            result.decisions = self._error_fallback(valid)
            self._emit(EVENT_ERROR, {"cycle": result.cycle, "error": str(e)})
            return

        result.decisions = decisions
        result.negotiations = negotiations
        for negotiation in negotiations:
            self._bump("resolutions_by_type", negotiation.resolution.value)

    @staticmethod
    def _error_fallback(valid: list[Proposal]) -> list[Decision]:
        ordered = sorted(valid, key=lambda p: p.order)
        first, rest = ordered[0], ordered[1:]
        decisions = [Decision(first.agent_id, first.move, DecisionStatus.APPROVED, "error-fallback")]
        decisions.extend(
            Decision(p.agent_id, p.move, DecisionStatus.BLOCKED, "error-fallback") for p in rest
        )
        return decisions

    @staticmethod
    def _priority_fallback(valid: list[Proposal]) -> list[Decision]:
        """Submission order wins; later proposals clashing with an approved one are blocked."""
        approved: list[Proposal] = []
        decisions: list[Decision] = []
        for proposal in sorted(valid, key=lambda p: p.order):
            if any(detect(proposal, other) is not None for other in approved):
                decisions.append(Decision(
                    proposal.agent_id, proposal.move, DecisionStatus.BLOCKED, "priority-blocked",
                ))
                continue
            approved.append(proposal)
            decisions.append(Decision(
                proposal.agent_id, proposal.move, DecisionStatus.APPROVED, "priority-first",
            ))
        return decisions

    def _bump(self, key: str, name: str) -> None:
        bucket = self._stats[key]
        bucket[name] = bucket.get(name, 0) + 1

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    def get_statistics(self) -> dict[str, Any]:
        return {
            "deliberations": self._stats["deliberations"],
            "errors": self._stats["errors"],
            "dropped_proposals": self._stats["dropped_proposals"],
            "priority_fallbacks": self._stats["priority_fallbacks"],
            "conflicts_by_type": dict(self._stats["conflicts_by_type"]),
            "resolutions_by_type": dict(self._stats["resolutions_by_type"]),
            "decisions_by_status": dict(self._stats["decisions_by_status"]),
            "total_conflicts": sum(self._stats["conflicts_by_type"].values()),
            "total_negotiations": sum(self._stats["resolutions_by_type"].values()),
            "average_latency_ms": round(self.metrics.average_latency_ms, 3),
            "negotiation_enabled": self.enable_negotiation,
            "deliberation_timeout_ms": self.deliberation_timeout_ms,
            "cycles": self.metrics.get_summary(),
        }

    def reset(self) -> None:
        """Clear counters, histories and cycle metrics; listeners stay subscribed."""
        self._stats = self._empty_stats()
        self.detector.reset()
        self.protocol.reset()
        self.metrics.reset()
