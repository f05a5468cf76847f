"""Staging state machine for two agents sharing one goal tower.

Stages flow: FOUNDATION → ASSEMBLY → COMPLETE, with FOUNDATION → COMPLETE
allowed when the whole chain is met before the assembly stage starts.
"""

from __future__ import annotations

import logging
from typing import Optional

from blocksworld.core.exceptions import InternalInvariantError
from blocksworld.core.models import (
    AGENT_A,
    AGENT_B,
    GoalChain,
    GoalDecomposition,
    Stage,
    StagingState,
    WorldSnapshot,
)
from blocksworld.core.world import goal_satisfied

logger = logging.getLogger("blocksworld.orchestrator.staging")

VALID_TRANSITIONS: dict[Stage, set[Stage]] = {
    Stage.FOUNDATION: {Stage.ASSEMBLY, Stage.COMPLETE},
    Stage.ASSEMBLY: {Stage.COMPLETE},
    Stage.COMPLETE: set(),  # Terminal
}


class StageRouter:
    """Tracks the current stage and which chain each agent pursues."""

    def __init__(self, goal_chain: GoalChain, decomposition: GoalDecomposition):
        self.goal_chain = goal_chain
        self.state = StagingState(
            current_stage=Stage.FOUNDATION,
            foundation_chain=decomposition.foundation_chain,
            assembly_chain=decomposition.assembly_chain,
            pivot_block=decomposition.pivot,
        )

    @property
    def stage(self) -> Stage:
        return self.state.current_stage

    def can_transition(self, from_stage: Stage, to_stage: Stage) -> bool:
        return to_stage in VALID_TRANSITIONS.get(from_stage, set())

    def transition(self, new_stage: Stage, cycle: int, reason: Optional[str] = None) -> StagingState:
        """Move to a new stage.

        Raises:
            InternalInvariantError: If the transition is not allowed.
        """
        old_stage = self.state.current_stage
        if not self.can_transition(old_stage, new_stage):
            raise InternalInvariantError(
                f"Invalid stage transition: {old_stage.value} → {new_stage.value}"
            )
        self.state.current_stage = new_stage
        self.state.transitions.append({
            "cycle": cycle,
            "from": old_stage.value,
            "to": new_stage.value,
            "reason": reason,
        })
        log_msg = f"Stage {old_stage.value} → {new_stage.value} at cycle {cycle}"
        if reason:
            log_msg += f" ({reason})"
        logger.info(log_msg)
        return self.state

    def advance(self, snapshot: WorldSnapshot, cycle: int) -> Stage:
        """Apply whichever transitions the world now justifies."""
        if self.stage is Stage.COMPLETE:
            return self.stage
        if goal_satisfied(snapshot, self.goal_chain):
            self.transition(Stage.COMPLETE, cycle, reason="goal chain satisfied")
        elif self.stage is Stage.FOUNDATION and goal_satisfied(snapshot, self.state.foundation_chain):
            self.transition(Stage.ASSEMBLY, cycle, reason="foundation satisfied")
        return self.stage

    def assignments(self) -> dict[str, GoalChain]:
        """Goal chain per agent for the current stage."""
        if self.stage is Stage.FOUNDATION:
            return {AGENT_A: self.state.foundation_chain, AGENT_B: self.state.foundation_chain}
        if self.stage is Stage.ASSEMBLY:
            return {AGENT_A: self.goal_chain, AGENT_B: self.state.assembly_chain}
        return {AGENT_A: self.goal_chain, AGENT_B: self.goal_chain}
