"""Greedy single-agent planner.

`propose` scans a goal chain from its tail (the relation nearest the Table)
toward its head and acts on the first unmet relation, so towers are always
built bottom-up and never rebuilt in circles.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from blocksworld.agents.base_agent import BaseAgent
from blocksworld.core.exceptions import UnknownBlockError
from blocksworld.core.models import TABLE, GoalChain, Move, MoveReason, Proposal, WorldSnapshot
from blocksworld.core.world import (
    build_on_map,
    contains,
    is_clear,
    next_pending_relation,
    top_most_above,
)


def propose(
    snapshot: WorldSnapshot,
    goal_chain: GoalChain,
    agent_id: Optional[str] = None,
) -> Optional[Move]:
    """Return the next move towards `goal_chain`, or None when it holds.

    Raises:
        UnknownBlockError: If the chain names a block absent from the world.
    """
    for token in goal_chain:
        if token != TABLE and not contains(snapshot, token):
            raise UnknownBlockError(token, agent_id)

    relation = next_pending_relation(snapshot, goal_chain)
    if relation is None:
        return None

    occluder = top_most_above(snapshot, relation.block)
    if occluder is not None:
        return Move(occluder, TABLE, MoveReason.CLEAR_BLOCK)

    if relation.destination != TABLE and not is_clear(snapshot, relation.destination):
        occluder = top_most_above(snapshot, relation.destination)
        if occluder is not None:
            return Move(occluder, TABLE, MoveReason.CLEAR_TARGET)

    if build_on_map(snapshot).get(relation.block) == relation.destination:
        return None

    return Move(relation.block, relation.destination, MoveReason.STACK)


@dataclass(frozen=True)
class CycleContext:
    """What an agent sees when asked for a proposal."""
    snapshot: WorldSnapshot
    goal_chain: GoalChain
    cycle: int
    order: int = 0


class PlannerAgent(BaseAgent):
    """Agent wrapper around `propose` that emits cycle-tagged proposals."""

    def process(self, input_data: CycleContext) -> Optional[Proposal]:
        move = propose(input_data.snapshot, input_data.goal_chain, self.agent_id)
        if move is None:
            return None
        return Proposal(
            agent_id=self.agent_id,
            move=move,
            cycle=input_data.cycle,
            order=input_data.order,
        )

    def propose(
        self,
        snapshot: WorldSnapshot,
        goal_chain: GoalChain,
        cycle: int,
        order: int = 0,
    ) -> Optional[Proposal]:
        return self.run(CycleContext(snapshot, goal_chain, cycle, order))
