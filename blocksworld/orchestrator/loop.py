"""Planning loop for the blocks-world planner.

Each cycle every agent whose assigned chain is unmet proposes against the
same snapshot, the deliberation manager decides, approved moves are applied
to the shared world after a precondition re-check, and staging advances:

  snapshot → proposals → deliberate → apply → beliefs → stage

The loop owns the World. It terminates on success, on a stall (a cycle that
applied nothing) or at the iteration ceiling.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Optional, Sequence

from blocksworld.agents.planner import PlannerAgent
from blocksworld.core.config import resolve_max_iterations
from blocksworld.core.exceptions import IterationLimitError, PlanningStallError
from blocksworld.core.models import (
    AGENT_A,
    AGENT_B,
    AppliedMove,
    CycleMoves,
    Decision,
    DecompositionStrategy,
    GoalChain,
    IntentionLogEntry,
    Move,
    PlanningResult,
    PlanningStatistics,
    expand_claw_steps,
)
from blocksworld.core.world import World, compute_beliefs, goal_satisfied
from blocksworld.deliberation.manager import DeliberationManager, DeliberationResult
from blocksworld.orchestrator.staging import StageRouter
from blocksworld.planning.decomposer import decompose

logger = logging.getLogger("blocksworld.orchestrator.loop")


class PlanningLoop:
    """Drives one planning run to a verified terminal state."""

    def __init__(
        self,
        world: World,
        goal_chain: GoalChain,
        strategy: DecompositionStrategy = DecompositionStrategy.STAGED_SPLIT,
        manager: Optional[DeliberationManager] = None,
        max_iterations: Optional[int] = None,
        include_claw_steps: bool = False,
        agents: Optional[Sequence[PlannerAgent]] = None,
    ):
        self.world = world
        self.goal_chain = goal_chain
        self.strategy = strategy
        self.manager = manager or DeliberationManager()
        self.max_iterations = resolve_max_iterations(max_iterations)
        self.include_claw_steps = include_claw_steps
        self.agents = list(agents) if agents is not None else [PlannerAgent(AGENT_A), PlannerAgent(AGENT_B)]

        self.router: Optional[StageRouter] = None
        if strategy is DecompositionStrategy.STAGED_SPLIT:
            self.router = StageRouter(goal_chain, decompose(goal_chain))

        self._moves_by_cycle: list[CycleMoves] = []
        self._intention_log: list[IntentionLogEntry] = []
        self._stats = PlanningStatistics()

    # ------------------------------------------------------------------
    # Negotiated planning
    # ------------------------------------------------------------------

    def run(self) -> PlanningResult:
        """Plan until the goal chain holds.

        Raises:
            PlanningStallError: A cycle applied zero moves while the goal was unmet.
            IterationLimitError: The iteration ceiling was reached first.
            InternalInvariantError: An approved move failed its apply-time check.
        """
        started = time.monotonic()
        logger.info(
            "Planning %s with strategy=%s, max_iterations=%d",
            "→".join(self.goal_chain), self.strategy.value, self.max_iterations,
        )
        if self.router is not None:
            self.router.advance(self.world.snapshot(), 0)

        cycle = 0
        while not self.world.satisfies(self.goal_chain):
            if cycle >= self.max_iterations:
                logger.warning("Iteration limit %d reached", self.max_iterations)
                raise IterationLimitError(self.max_iterations)
            cycle += 1
            self._run_cycle(cycle)

        return self._finish(cycle, started)

    def _run_cycle(self, cycle: int) -> None:
        snapshot = self.world.snapshot()
        assignments = self._assignments()

        proposals = []
        for order, agent in enumerate(self.agents):
            chain = assignments[agent.agent_id]
            if goal_satisfied(snapshot, chain):
                continue
            proposal = agent.propose(snapshot, chain, cycle, order)
            if proposal is not None:
                proposals.append(proposal)

        result = self.manager.deliberate(proposals, snapshot, self.goal_chain, cycle)
        approved = result.approved
        if not approved:
            detail = "no valid proposals" if not result.valid else "every proposal was blocked or deferred"
            logger.error("Cycle %d applied no moves: %s", cycle, detail)
            raise PlanningStallError(cycle, detail)

        applied = [self._apply(decision.agent_id, decision.move, decision) for decision in approved]

        stage = None
        if self.router is not None:
            stage = self.router.advance(self.world.snapshot(), cycle).value

        self._stats.total_deliberations += 1
        self._stats.total_conflicts += len(result.conflicts)
        self._stats.total_negotiations += len(result.negotiations)
        self._record(cycle, applied, stage, _summarize(result))

    def _assignments(self) -> dict[str, GoalChain]:
        if self.router is not None:
            return self.router.assignments()
        return {agent.agent_id: self.goal_chain for agent in self.agents}

    # ------------------------------------------------------------------
    # Merged replay (independent towers)
    # ------------------------------------------------------------------

    def replay(self, cycles: Sequence[Sequence[tuple[str, Move]]]) -> PlanningResult:
        """Apply a pre-merged schedule cycle by cycle, without deliberation."""
        started = time.monotonic()
        if len(cycles) > self.max_iterations:
            raise IterationLimitError(self.max_iterations)

        cycle = 0
        for cycle, scheduled in enumerate(cycles, start=1):
            applied = [self._apply(agent_id, move) for agent_id, move in scheduled]
            self._record(cycle, applied, None, None)
        return self._finish(cycle, started)

    # ------------------------------------------------------------------
    # Bookkeeping
    # ------------------------------------------------------------------

    def _apply(self, agent_id: str, move: Move, decision: Optional[Decision] = None) -> AppliedMove:
        self.world.apply_move(move)
        if agent_id == AGENT_A:
            self._stats.agent_a_moves += 1
        elif agent_id == AGENT_B:
            self._stats.agent_b_moves += 1
        return AppliedMove(
            block=move.block,
            to=move.to,
            reason=move.reason.value,
            actor=agent_id,
            decision=decision.status.value if decision is not None else None,
            claw_steps=expand_claw_steps(move) if self.include_claw_steps else None,
        )

    def _record(
        self,
        cycle: int,
        applied: list[AppliedMove],
        stage: Optional[str],
        deliberation: Optional[dict[str, Any]],
    ) -> None:
        if len(applied) >= 2:
            self._stats.total_parallel_executions += 1
        snapshot = self.world.snapshot()
        self._moves_by_cycle.append(CycleMoves(cycle=cycle, moves=applied))
        self._intention_log.append(IntentionLogEntry(
            cycle=cycle,
            moves=applied,
            resulting_world=[list(stack) for stack in snapshot],
            beliefs=compute_beliefs(snapshot, self.goal_chain).to_dict(),
            stage=stage,
            deliberation=deliberation,
        ))
        logger.debug(
            "Cycle %d: %s",
            cycle, ", ".join(f"{m.actor}:{m.block}->{m.to}" for m in applied),
        )

    def _finish(self, iterations: int, started: float) -> PlanningResult:
        self._stats.elapsed_ms = round((time.monotonic() - started) * 1000.0, 3)
        self._stats.deliberation = self.manager.get_statistics()

        decomposition: dict[str, Any] = {}
        if self.router is not None:
            state = self.router.state
            decomposition = {
                "assembly_chain": list(state.assembly_chain),
                "foundation_chain": list(state.foundation_chain),
                "pivot": state.pivot_block,
                "final_stage": state.current_stage.value,
                "transitions": list(state.transitions),
            }

        logger.info(
            "Goal achieved in %d iteration(s), %d move(s), %d parallel cycle(s)",
            iterations,
            self._stats.agent_a_moves + self._stats.agent_b_moves,
            self._stats.total_parallel_executions,
        )
        return PlanningResult(
            moves_by_cycle=self._moves_by_cycle,
            iterations=iterations,
            goal_achieved=True,
            intention_log=self._intention_log,
            statistics=self._stats,
            goal_decomposition=decomposition,
            strategy=self.strategy,
            agent_count=len(self.agents),
            goal_chain=list(self.goal_chain),
            final_world=self.world.to_lists(),
            final_on_map=self.world.on_map(),
        )


def _summarize(result: DeliberationResult) -> dict[str, Any]:
    """Compact deliberation summary for the intention log."""
    return {
        "mode": result.mode,
        "conflicts": [c.type.value for c in result.conflicts],
        "resolutions": [n.resolution.value for n in result.negotiations],
        "decisions": {d.agent_id: d.status.value for d in result.decisions},
    }
