"""Independent-tower analysis and merged planning.

Two disjoint towers whose bases already rest on the Table and whose blocks
never share a stack can be planned separately, one agent per tower, and the
two move sequences interleaved without negotiation.
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from blocksworld.agents.planner import propose
from blocksworld.core.config import DEFAULT_MAX_ITERATIONS
from blocksworld.core.exceptions import InternalInvariantError, IterationLimitError
from blocksworld.core.models import AGENT_A, AGENT_B, TABLE, GoalChain, Move, WorldSnapshot
from blocksworld.core.validation import validate_towers
from blocksworld.core.world import World, build_on_map, goal_satisfied
from blocksworld.deliberation.conflicts import detect

logger = logging.getLogger("blocksworld.planning.towers")

# One planned cycle: (agent_id, move) pairs applied together.
MergedCycle = list[tuple[str, Move]]


def tower_base(chain: GoalChain) -> Optional[str]:
    """The block that must rest directly on the Table."""
    if len(chain) >= 2 and chain[-1] == TABLE:
        return chain[-2]
    return None


def is_independent(snapshot: WorldSnapshot, chains: Sequence[GoalChain]) -> bool:
    """True when every tower can be planned without touching the others."""
    on_map = build_on_map(snapshot)
    for chain in chains:
        base = tower_base(chain)
        if base is None or on_map.get(base) != TABLE:
            logger.debug("Tower %s is dependent: base %s is not on the Table", chain, base)
            return False

    owner: dict[str, int] = {}
    for index, chain in enumerate(chains):
        for token in chain:
            if token != TABLE:
                owner[token] = index

    for stack in snapshot:
        towers_in_stack = {owner[block] for block in stack if block in owner}
        if len(towers_in_stack) > 1:
            logger.debug("Stack %s mixes blocks of different towers", stack)
            return False
    return True


def solve_in_isolation(
    snapshot: WorldSnapshot,
    goal_chain: GoalChain,
    agent_id: str,
    max_iterations: int = DEFAULT_MAX_ITERATIONS,
) -> list[Move]:
    """Run the planner to completion on a private copy of the world."""
    world = World.from_snapshot(snapshot)
    moves: list[Move] = []
    while not world.satisfies(goal_chain):
        if len(moves) >= max_iterations:
            raise IterationLimitError(max_iterations)
        move = propose(world.snapshot(), goal_chain, agent_id)
        if move is None:
            break
        world.apply_move(move)
        moves.append(move)
    return moves


def merge_round_robin(seq_a: Sequence[Move], seq_b: Sequence[Move]) -> list[MergedCycle]:
    """Interleave two move sequences, pairing moves while both have one left.

    A pair that would conflict is split across two consecutive cycles.
    """
    cycles: list[MergedCycle] = []
    for index in range(max(len(seq_a), len(seq_b))):
        move_a = seq_a[index] if index < len(seq_a) else None
        move_b = seq_b[index] if index < len(seq_b) else None
        if move_a is not None and move_b is not None:
            if detect(move_a, move_b) is None:
                cycles.append([(AGENT_A, move_a), (AGENT_B, move_b)])
            else:
                cycles.append([(AGENT_A, move_a)])
                cycles.append([(AGENT_B, move_b)])
        elif move_a is not None:
            cycles.append([(AGENT_A, move_a)])
        elif move_b is not None:
            cycles.append([(AGENT_B, move_b)])
    return cycles


def plan_independent(
    snapshot: WorldSnapshot,
    chains: Sequence[GoalChain],
    max_iterations: int = DEFAULT_MAX_ITERATIONS,
) -> Optional[list[MergedCycle]]:
    """Plan each tower separately and return the merged, verified schedule.

    Returns None when the merged schedule does not replay cleanly on the
    shared world; the caller then falls back to negotiated planning.
    """
    validate_towers(chains)
    agents = (AGENT_A, AGENT_B)
    sequences = [
        solve_in_isolation(snapshot, chain, agents[index], max_iterations)
        for index, chain in enumerate(chains)
    ]
    while len(sequences) < 2:
        sequences.append([])

    cycles = merge_round_robin(sequences[0], sequences[1])
    if len(cycles) > max_iterations:
        raise IterationLimitError(max_iterations)

    world = World.from_snapshot(snapshot)
    try:
        for cycle in cycles:
            for _agent, move in cycle:
                world.apply_move(move)
    except InternalInvariantError as exc:
        logger.warning("Merged tower plan failed to replay: %s", exc)
        return None

    final = world.snapshot()
    if not all(goal_satisfied(final, chain) for chain in chains):
        logger.warning("Merged tower plan left a tower unfinished")
        return None

    logger.info(
        "Planned %d independent towers in %d cycles (%d moves)",
        len(chains), len(cycles), sum(len(c) for c in cycles),
    )
    return cycles
