"""Input normalisation and validation for worlds and goal chains.

Everything here raises ValidationError before planning starts; nothing
downstream re-validates caller input.
"""

from __future__ import annotations

import re
from typing import Any, Sequence

from blocksworld.core.exceptions import ValidationError
from blocksworld.core.models import TABLE, GoalChain

MAX_TOWERS = 2

_BLOCK_RE = re.compile(r"^[A-Z]$")


def normalize_token(token: Any) -> str:
    """Trim and upper-case a block token; any casing of 'table' maps to Table."""
    if not isinstance(token, str):
        raise ValidationError(f"Block identifiers must be strings, got {token!r}")
    cleaned = token.strip()
    if cleaned.lower() == TABLE.lower():
        return TABLE
    return cleaned.upper()


def normalize_world(raw: Any) -> list[list[str]]:
    """Validate a raw world (list of stacks, bottom first) and drop empty stacks."""
    if not isinstance(raw, (list, tuple)):
        raise ValidationError("World must be a list of stacks")

    seen: set[str] = set()
    stacks: list[list[str]] = []
    for index, raw_stack in enumerate(raw):
        if not isinstance(raw_stack, (list, tuple)):
            raise ValidationError(f"Stack {index} must be a list of blocks")
        stack: list[str] = []
        for token in raw_stack:
            block = normalize_token(token)
            if not _BLOCK_RE.match(block):
                raise ValidationError(f"Invalid block identifier {token!r}: expected a single letter A-Z")
            if block in seen:
                raise ValidationError(f"Duplicate block {block} in world")
            seen.add(block)
            stack.append(block)
        if stack:
            stacks.append(stack)
    return stacks


def split_goal_towers(raw: Any) -> list[list[Any]]:
    """Return the raw goal as a list of tower chains.

    A flat list is one tower; a list of lists is one chain per tower. The
    tower limit is checked before any chain is inspected.
    """
    if not isinstance(raw, (list, tuple)) or not raw:
        raise ValidationError("Goal must be a non-empty list of blocks or a list of goal chains")

    nested = [isinstance(item, (list, tuple)) for item in raw]
    if all(nested):
        _check_tower_count(len(raw))
        return [list(chain) for chain in raw]
    if any(nested):
        raise ValidationError("Goal mixes blocks and nested goal chains")
    return [list(raw)]


def normalize_goal_chain(
    raw: Any,
    known_blocks: set[str],
    allow_interior_table: bool = False,
) -> GoalChain:
    """Normalise one goal chain and append the Table terminator if missing."""
    if not isinstance(raw, (list, tuple)):
        raise ValidationError("Goal chain must be a list of blocks")
    if len(raw) < 2:
        raise ValidationError("Goal chain must contain at least two elements")

    chain = [normalize_token(token) for token in raw]
    if chain[-1] != TABLE:
        chain.append(TABLE)

    seen: set[str] = set()
    for index, token in enumerate(chain):
        if token == TABLE:
            is_last = index == len(chain) - 1
            if not is_last and not allow_interior_table:
                raise ValidationError("Table may only appear at the end of a goal chain")
            continue
        if not _BLOCK_RE.match(token):
            raise ValidationError(f"Invalid block identifier {token!r} in goal chain")
        if token in seen:
            raise ValidationError(f"Goal chain repeats block {token}; cyclic goals are not allowed")
        if token not in known_blocks:
            raise ValidationError(f"Goal references unknown block {token}")
        seen.add(token)
    return tuple(chain)


def validate_request(raw_world: Any, raw_goal: Any) -> tuple[list[list[str]], list[GoalChain]]:
    """Validate a full planning request, returning stacks and 1-2 goal chains."""
    towers = split_goal_towers(raw_goal)
    stacks = normalize_world(raw_world)
    known = {block for stack in stacks for block in stack}

    chains = [normalize_goal_chain(tower, known) for tower in towers]
    validate_towers(chains)
    return stacks, chains


def _check_tower_count(count: int) -> None:
    if count > MAX_TOWERS:
        raise ValidationError(
            f"Planner supports up to two towers; {count} goal towers were requested"
        )
    if count < 1:
        raise ValidationError("At least one goal tower is required")


def validate_towers(chains: Sequence[GoalChain]) -> None:
    """Reject more than two towers, or towers that share a block."""
    _check_tower_count(len(chains))
    if len(chains) == 2:
        overlap = (set(chains[0]) & set(chains[1])) - {TABLE}
        if overlap:
            raise ValidationError(
                f"Goal towers must be disjoint; shared blocks: {', '.join(sorted(overlap))}"
            )
