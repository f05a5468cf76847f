"""Shared world state and the pure queries every component runs against it.

The World instance is owned by the planning loop. Everything else receives
an immutable WorldSnapshot and uses the module-level helpers below.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from blocksworld.core.exceptions import InternalInvariantError
from blocksworld.core.models import (
    TABLE,
    Beliefs,
    GoalChain,
    Move,
    Relation,
    WorldSnapshot,
)

logger = logging.getLogger("blocksworld.core.world")


# ---------------------------------------------------------------------------
# Snapshot queries
# ---------------------------------------------------------------------------

def build_on_map(snapshot: WorldSnapshot) -> dict[str, str]:
    """Map every block to whatever it rests on (a block or Table)."""
    on_map: dict[str, str] = {}
    for stack in snapshot:
        for index, block in enumerate(stack):
            on_map[block] = TABLE if index == 0 else stack[index - 1]
    return on_map


def clear_blocks(snapshot: WorldSnapshot) -> list[str]:
    return [stack[-1] for stack in snapshot if stack]


def is_clear(snapshot: WorldSnapshot, block: str) -> bool:
    return any(stack and stack[-1] == block for stack in snapshot)


def contains(snapshot: WorldSnapshot, block: str) -> bool:
    return any(block in stack for stack in snapshot)


def top_most_above(snapshot: WorldSnapshot, block: str) -> Optional[str]:
    """Return the top block of the stack holding `block`, or None if clear."""
    for stack in snapshot:
        if block in stack:
            top = stack[-1]
            return None if top == block else top
    return None


def relations(goal_chain: GoalChain) -> list[Relation]:
    """Relations encoded by a chain, bottom (closest to Table) first.

    Pairs whose block is Table only appear in flattened multi-tower chains
    and carry no requirement.
    """
    found = [
        Relation(goal_chain[i], goal_chain[i + 1])
        for i in range(len(goal_chain) - 1)
        if goal_chain[i] != TABLE
    ]
    found.reverse()
    return found


def pending_relations(snapshot: WorldSnapshot, goal_chain: GoalChain) -> list[Relation]:
    on_map = build_on_map(snapshot)
    return [rel for rel in relations(goal_chain) if on_map.get(rel.block) != rel.destination]


def next_pending_relation(snapshot: WorldSnapshot, goal_chain: GoalChain) -> Optional[Relation]:
    """First unmet relation scanning from the chain's tail toward its head."""
    pending = pending_relations(snapshot, goal_chain)
    return pending[0] if pending else None


def goal_satisfied(snapshot: WorldSnapshot, goal_chain: GoalChain) -> bool:
    return next_pending_relation(snapshot, goal_chain) is None


def compute_beliefs(snapshot: WorldSnapshot, goal_chain: GoalChain) -> Beliefs:
    on_map = build_on_map(snapshot)
    return Beliefs(
        on_map=on_map,
        clear_blocks=clear_blocks(snapshot),
        pending_relation=next_pending_relation(snapshot, goal_chain),
        on_table_blocks=[stack[0] for stack in snapshot if stack],
    )


def check_move(snapshot: WorldSnapshot, move: Move) -> Optional[str]:
    """Return a description of the first violated precondition, or None."""
    if not contains(snapshot, move.block):
        return f"block {move.block} is not in the world"
    if not is_clear(snapshot, move.block):
        return f"block {move.block} is not clear"
    if move.to == move.block:
        return f"block {move.block} cannot be placed on itself"
    if move.to != TABLE:
        if not contains(snapshot, move.to):
            return f"destination {move.to} is not in the world"
        if not is_clear(snapshot, move.to):
            return f"destination {move.to} is not clear"
    return None


# ---------------------------------------------------------------------------
# Mutable world
# ---------------------------------------------------------------------------

class World:
    """Mutable set of stacks. Index 0 of each stack rests on the Table."""

    def __init__(self, stacks: Iterable[Iterable[str]] = ()):
        self._stacks: list[list[str]] = [list(stack) for stack in stacks]
        self._stacks = [stack for stack in self._stacks if stack]

    @classmethod
    def from_snapshot(cls, snapshot: WorldSnapshot) -> World:
        return cls(snapshot)

    def snapshot(self) -> WorldSnapshot:
        return tuple(tuple(stack) for stack in self._stacks)

    def copy(self) -> World:
        return World(self._stacks)

    def to_lists(self) -> list[list[str]]:
        return [list(stack) for stack in self._stacks]

    def on_map(self) -> dict[str, str]:
        return build_on_map(self.snapshot())

    def is_clear(self, block: str) -> bool:
        return is_clear(self.snapshot(), block)

    def satisfies(self, goal_chain: GoalChain) -> bool:
        return goal_satisfied(self.snapshot(), goal_chain)

    def apply_move(self, move: Move) -> None:
        """Apply a move after re-checking its preconditions.

        Raises:
            InternalInvariantError: If the move is not legal on this world.
        """
        violation = check_move(self.snapshot(), move)
        if violation is not None:
            raise InternalInvariantError(f"Cannot apply {move}: {violation}")

        source = next(stack for stack in self._stacks if stack and stack[-1] == move.block)
        source.pop()
        if move.to == TABLE:
            self._stacks.append([move.block])
        else:
            target = next(stack for stack in self._stacks if stack and stack[-1] == move.to)
            target.append(move.block)
        self._stacks = [stack for stack in self._stacks if stack]
        logger.debug("Applied %s", move)

    def __len__(self) -> int:
        return len(self._stacks)

    def __repr__(self) -> str:
        return f"World({self.to_lists()!r})"
