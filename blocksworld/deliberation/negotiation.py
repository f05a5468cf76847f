"""Utility-based negotiation between two conflicting proposals."""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from typing import Any, Optional, Sequence

from blocksworld.core.exceptions import NegotiationError
from blocksworld.core.models import (
    TABLE,
    Conflict,
    ConflictType,
    Decision,
    DecisionStatus,
    GoalChain,
    Move,
    MoveReason,
    Proposal,
    ResolutionType,
    WorldSnapshot,
)
from blocksworld.core.world import build_on_map, clear_blocks, pending_relations, relations
from blocksworld.deliberation.conflicts import detect

logger = logging.getLogger("blocksworld.deliberation.negotiation")

DEFAULT_UTILITY_THRESHOLD = 0.1


@dataclass
class UtilityScore:
    """Utility breakdown for one proposal."""

    agent_id: str
    total: float
    goal_signal: float
    unblocking_signal: float
    clearing_signal: float
    chain_signal: float
    table_penalty: float
    notes: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "agent_id": self.agent_id,
            "total": round(self.total, 3),
            "goal_signal": round(self.goal_signal, 3),
            "unblocking_signal": round(self.unblocking_signal, 3),
            "clearing_signal": round(self.clearing_signal, 3),
            "chain_signal": round(self.chain_signal, 3),
            "table_penalty": round(self.table_penalty, 3),
            "notes": list(self.notes),
        }


@dataclass
class Negotiation:
    """Outcome of negotiating a single conflict."""

    negotiation_id: str
    conflict: Conflict
    resolution: ResolutionType
    winner: Proposal
    loser: Proposal
    winner_reason: str
    loser_status: DecisionStatus
    loser_reason: str
    scores: list[UtilityScore] = field(default_factory=list)
    phases: list[str] = field(default_factory=list)
    alternative_move: Optional[Move] = None

    def decisions(self) -> tuple[Decision, Decision]:
        """Return (winner decision, loser decision)."""
        winner = Decision(
            agent_id=self.winner.agent_id,
            move=self.winner.move,
            status=DecisionStatus.APPROVED,
            reason=self.winner_reason,
            negotiation_id=self.negotiation_id,
        )
        loser_move = self.alternative_move or self.loser.move
        loser = Decision(
            agent_id=self.loser.agent_id,
            move=loser_move,
            status=self.loser_status,
            reason=self.loser_reason,
            negotiation_id=self.negotiation_id,
            original_move=self.loser.move if self.alternative_move else None,
        )
        return winner, loser

    def to_dict(self) -> dict[str, Any]:
        return {
            "negotiation_id": self.negotiation_id,
            "conflict": self.conflict.to_dict(),
            "resolution": self.resolution.value,
            "winner": self.winner.agent_id,
            "loser": self.loser.agent_id,
            "loser_status": self.loser_status.value,
            "scores": [s.to_dict() for s in self.scores],
            "phases": list(self.phases),
            "alternative_move": self.alternative_move.to_dict() if self.alternative_move else None,
        }


class NegotiationProtocol:
    """Resolves conflicts into approve/block/defer decisions.

    Resolution order:
    1) dependency conflict with exactly one clearing side: it wins
    2) utility gap above the threshold: higher utility wins
    3) cooperative sequencing (dependency) or, if enabled, an alternative
       move for the resource loser
    4) seeded random tie-break
    """

    def __init__(
        self,
        utility_threshold: float = DEFAULT_UTILITY_THRESHOLD,
        enable_cooperative_sequencing: bool = True,
        enable_cooperative_alternative: bool = False,
        rng: Optional[random.Random] = None,
        seed: Optional[int] = None,
    ):
        self.utility_threshold = utility_threshold
        self.enable_cooperative_sequencing = enable_cooperative_sequencing
        self.enable_cooperative_alternative = enable_cooperative_alternative
        self.rng = rng if rng is not None else random.Random(seed)
        self.history: list[Negotiation] = []
        self._counter = 0
        self._by_conflict: dict[str, int] = {t.value: 0 for t in ConflictType}
        self._by_resolution: dict[str, int] = {r.value: 0 for r in ResolutionType}

    # ------------------------------------------------------------------
    # Utility
    # ------------------------------------------------------------------

    def score(self, proposal: Proposal, snapshot: WorldSnapshot, goal_chain: GoalChain) -> UtilityScore:
        move = proposal.move
        notes: list[str] = []

        satisfied = sum(
            1 for rel in relations(goal_chain)
            if rel.block == move.block and rel.destination == move.to
        )
        goal_signal = 0.5 * satisfied
        if satisfied:
            notes.append(f"satisfies={satisfied}")

        unblocking_signal = 0.0
        if self._sits_above_pending(move.block, snapshot, goal_chain):
            unblocking_signal = 0.3
            notes.append("unblocks_pending_relation")

        clearing_signal = 0.4 if move.reason.is_clearing else 0.0
        if clearing_signal:
            notes.append(f"clearing={move.reason.value}")

        chain_signal = 0.2 if move.to in goal_chain else 0.0

        table_penalty = 0.0
        if move.to == TABLE and not move.reason.is_clearing:
            table_penalty = 0.1
            notes.append("table_drop")

        raw = goal_signal + unblocking_signal + clearing_signal + chain_signal - table_penalty
        return UtilityScore(
            agent_id=proposal.agent_id,
            total=round(max(0.0, min(1.0, raw)), 6),
            goal_signal=goal_signal,
            unblocking_signal=unblocking_signal,
            clearing_signal=clearing_signal,
            chain_signal=chain_signal,
            table_penalty=table_penalty,
            notes=notes,
        )

    @staticmethod
    def _sits_above_pending(block: str, snapshot: WorldSnapshot, goal_chain: GoalChain) -> bool:
        stack = next((s for s in snapshot if block in s), None)
        if stack is None:
            return False
        below = set(stack[:stack.index(block)])
        for rel in pending_relations(snapshot, goal_chain):
            if rel.block == block:
                continue
            if rel.block in below or (rel.destination != TABLE and rel.destination in below):
                return True
        return False

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def negotiate_conflict(
        self,
        conflict: Conflict,
        snapshot: WorldSnapshot,
        goal_chain: GoalChain,
    ) -> Negotiation:
        a, b = conflict.proposal_a, conflict.proposal_b
        if a.agent_id == b.agent_id:
            raise NegotiationError(f"Conflict between two proposals of {a.agent_id} cannot be negotiated")

        self._counter += 1
        negotiation_id = f"neg-{a.cycle}-{self._counter}"
        score_a = self.score(a, snapshot, goal_chain)
        score_b = self.score(b, snapshot, goal_chain)
        phases = ["evaluate"]

        negotiation = (
            self._clear_priority(negotiation_id, conflict, phases)
            or self._utility_winner(negotiation_id, conflict, score_a, score_b, phases)
            or self._cooperative(negotiation_id, conflict, snapshot, goal_chain, phases)
            or self._random_tiebreak(negotiation_id, conflict, phases)
        )
        negotiation.scores = [score_a, score_b]

        self.history.append(negotiation)
        self._by_conflict[conflict.type.value] += 1
        self._by_resolution[negotiation.resolution.value] += 1
        logger.debug(
            "%s: %s conflict on %s resolved by %s (winner=%s, utilities %.2f/%.2f)",
            negotiation_id, conflict.type.value, conflict.subject, negotiation.resolution.value,
            negotiation.winner.agent_id, score_a.total, score_b.total,
        )
        return negotiation

    def _clear_priority(self, negotiation_id: str, conflict: Conflict, phases: list[str]) -> Optional[Negotiation]:
        if conflict.type is not ConflictType.DEPENDENCY:
            return None
        phases.append("clear-priority")
        a, b = conflict.proposal_a, conflict.proposal_b
        a_clears, b_clears = a.move.reason.is_clearing, b.move.reason.is_clearing
        if a_clears == b_clears:
            return None
        winner, loser = (a, b) if a_clears else (b, a)
        return Negotiation(
            negotiation_id=negotiation_id,
            conflict=conflict,
            resolution=ResolutionType.CLEAR_PRIORITY,
            winner=winner,
            loser=loser,
            winner_reason="clear-priority",
            loser_status=DecisionStatus.DEFERRED,
            loser_reason="clear-priority",
            phases=phases,
        )

    def _utility_winner(
        self,
        negotiation_id: str,
        conflict: Conflict,
        score_a: UtilityScore,
        score_b: UtilityScore,
        phases: list[str],
    ) -> Optional[Negotiation]:
        phases.append("utility")
        if round(abs(score_a.total - score_b.total), 6) <= self.utility_threshold:
            return None
        a, b = conflict.proposal_a, conflict.proposal_b
        winner, loser = (a, b) if score_a.total > score_b.total else (b, a)
        return Negotiation(
            negotiation_id=negotiation_id,
            conflict=conflict,
            resolution=ResolutionType.UTILITY_WINNER,
            winner=winner,
            loser=loser,
            winner_reason="utility-winner",
            loser_status=DecisionStatus.BLOCKED,
            loser_reason="utility-loser",
            phases=phases,
        )

    def _cooperative(
        self,
        negotiation_id: str,
        conflict: Conflict,
        snapshot: WorldSnapshot,
        goal_chain: GoalChain,
        phases: list[str],
    ) -> Optional[Negotiation]:
        a, b = conflict.proposal_a, conflict.proposal_b

        if conflict.type is ConflictType.DEPENDENCY and self.enable_cooperative_sequencing:
            phases.append("cooperative-sequencing")
            a_waits = a.move.to == b.move.block
            b_waits = b.move.to == a.move.block
            if a_waits and b_waits:
                winner, loser = (a, b) if a.order <= b.order else (b, a)
            elif a_waits:
                winner, loser = b, a
            else:
                winner, loser = a, b
            return Negotiation(
                negotiation_id=negotiation_id,
                conflict=conflict,
                resolution=ResolutionType.COOPERATIVE_SEQUENTIAL,
                winner=winner,
                loser=loser,
                winner_reason="cooperative-first",
                loser_status=DecisionStatus.DEFERRED,
                loser_reason="cooperative-wait",
                phases=phases,
            )

        if conflict.type is ConflictType.RESOURCE and self.enable_cooperative_alternative:
            phases.append("cooperative-alternative")
            winner, loser = (a, b) if a.order <= b.order else (b, a)
            alternative = self._find_alternative(winner.move, snapshot, goal_chain)
            if alternative is None:
                return None
            return Negotiation(
                negotiation_id=negotiation_id,
                conflict=conflict,
                resolution=ResolutionType.COOPERATIVE_ALTERNATIVE,
                winner=winner,
                loser=loser,
                winner_reason="cooperative-first",
                loser_status=DecisionStatus.APPROVED_ALTERNATIVE,
                loser_reason="cooperative-alternative",
                phases=phases,
                alternative_move=alternative,
            )
        return None

    @staticmethod
    def _find_alternative(winner_move: Move, snapshot: WorldSnapshot, goal_chain: GoalChain) -> Optional[Move]:
        """Pick a clear, misplaced block to set on the Table instead."""
        on_map = build_on_map(snapshot)
        satisfied = {
            rel.block for rel in relations(goal_chain)
            if on_map.get(rel.block) == rel.destination
        }
        for block in sorted(clear_blocks(snapshot)):
            if on_map.get(block) == TABLE or block in satisfied:
                continue
            candidate = Move(block, TABLE, MoveReason.ALTERNATIVE)
            if detect(candidate, winner_move) is None:
                return candidate
        return None

    def _random_tiebreak(self, negotiation_id: str, conflict: Conflict, phases: list[str]) -> Negotiation:
        phases.append("random-tiebreak")
        a, b = conflict.proposal_a, conflict.proposal_b
        winner = self.rng.choice([a, b])
        loser = b if winner is a else a
        return Negotiation(
            negotiation_id=negotiation_id,
            conflict=conflict,
            resolution=ResolutionType.RANDOM_TIEBREAK,
            winner=winner,
            loser=loser,
            winner_reason="random-tiebreak",
            loser_status=DecisionStatus.BLOCKED,
            loser_reason="random-tiebreak",
            phases=phases,
        )

    # ------------------------------------------------------------------
    # Cycle-level negotiation
    # ------------------------------------------------------------------

    def negotiate(
        self,
        proposals: Sequence[Proposal],
        conflicts: Sequence[Conflict],
        snapshot: WorldSnapshot,
        goal_chain: GoalChain,
    ) -> tuple[list[Decision], list[Negotiation]]:
        """Negotiate every conflict and auto-approve untouched proposals.

        A proposal that loses any negotiation stays lost for the cycle.
        Decisions come back in submission order.
        """
        outcome: dict[str, Decision] = {}
        lost: set[str] = set()
        negotiations: list[Negotiation] = []

        for conflict in conflicts:
            negotiation = self.negotiate_conflict(conflict, snapshot, goal_chain)
            negotiations.append(negotiation)
            winner_decision, loser_decision = negotiation.decisions()
            if winner_decision.agent_id not in lost:
                outcome[winner_decision.agent_id] = winner_decision
            if loser_decision.agent_id not in lost:
                outcome[loser_decision.agent_id] = loser_decision
                if loser_decision.status is not DecisionStatus.APPROVED_ALTERNATIVE:
                    lost.add(loser_decision.agent_id)

        decisions: list[Decision] = []
        for proposal in sorted(proposals, key=lambda p: p.order):
            decision = outcome.get(proposal.agent_id)
            if decision is None:
                decision = Decision(
                    agent_id=proposal.agent_id,
                    move=proposal.move,
                    status=DecisionStatus.APPROVED,
                    reason="no-conflict",
                )
            decisions.append(decision)
        return decisions, negotiations

    def get_statistics(self) -> dict[str, Any]:
        return {
            "total_negotiations": len(self.history),
            "by_conflict_type": dict(self._by_conflict),
            "by_resolution": dict(self._by_resolution),
        }

    def reset(self) -> None:
        """Clear history and counters. The random source keeps its state."""
        self.history.clear()
        self._counter = 0
        self._by_conflict = {t.value: 0 for t in ConflictType}
        self._by_resolution = {r.value: 0 for r in ResolutionType}
