"""Goal decomposition for two agents sharing one tower.

The foundation chain holds the relations closest to the Table; the assembly
chain holds the rest plus the pivot relation, which both chains cover.
Assembly chains may be open (not ending in Table).
"""

from __future__ import annotations

import logging
import math
from typing import Sequence

from blocksworld.core.exceptions import ValidationError
from blocksworld.core.models import TABLE, GoalChain, GoalDecomposition

logger = logging.getLogger("blocksworld.planning.decomposer")


def decompose(goal_chain: Sequence[str]) -> GoalDecomposition:
    """Split a goal chain into foundation and assembly chains sharing a pivot."""
    chain = tuple(goal_chain)
    if len(chain) < 2:
        raise ValidationError("Goal chain must contain at least two elements")

    if len(chain) <= 2:
        return GoalDecomposition(assembly_chain=chain, foundation_chain=chain, pivot=chain[0])

    if len(chain) == 3:
        return GoalDecomposition(
            assembly_chain=chain[:2],
            foundation_chain=chain[1:],
            pivot=chain[1],
        )

    relation_count = len(chain) - 1
    k = relation_count - math.ceil(relation_count / 2)
    result = GoalDecomposition(
        assembly_chain=chain[:k + 2],
        foundation_chain=chain[k:],
        pivot=chain[k],
    )
    logger.debug(
        "Decomposed %s into foundation=%s assembly=%s pivot=%s",
        chain, result.foundation_chain, result.assembly_chain, result.pivot,
    )
    return result


def chain_relations(chain: Sequence[str]) -> set[tuple[str, str]]:
    """Set of (block, destination) pairs a chain encodes."""
    return {
        (chain[i], chain[i + 1])
        for i in range(len(chain) - 1)
        if chain[i] != TABLE
    }


def flatten_towers(chains: Sequence[GoalChain]) -> GoalChain:
    """Join disjoint tower chains into one chain with interior Table tokens."""
    flat: list[str] = []
    for chain in chains:
        flat.extend(chain)
        if not chain or chain[-1] != TABLE:
            flat.append(TABLE)
    return tuple(flat)
