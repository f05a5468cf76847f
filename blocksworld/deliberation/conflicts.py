"""Pairwise conflict detection between simultaneous proposals.

Precedence when a pair qualifies for more than one type:
resource > destination > dependency.
"""

from __future__ import annotations

import logging
from itertools import combinations
from typing import Any, Optional, Sequence, Union

from blocksworld.core.models import TABLE, Conflict, ConflictType, Move, Proposal

logger = logging.getLogger("blocksworld.deliberation.conflicts")


def _as_move(item: Union[Move, Proposal]) -> Move:
    return item.move if isinstance(item, Proposal) else item


def detect(a: Union[Move, Proposal], b: Union[Move, Proposal]) -> Optional[ConflictType]:
    """Classify a pair of moves or proposals; None when they do not interact."""
    move_a, move_b = _as_move(a), _as_move(b)
    if move_a.block == move_b.block:
        return ConflictType.RESOURCE
    if move_a.to == move_b.to and move_a.to != TABLE:
        return ConflictType.DESTINATION
    if move_a.to == move_b.block or move_b.to == move_a.block:
        return ConflictType.DEPENDENCY
    return None


def describe(conflict_type: ConflictType, a: Proposal, b: Proposal) -> tuple[str, str]:
    """Return (subject, description) for a classified pair."""
    if conflict_type is ConflictType.RESOURCE:
        subject = a.move.block
        text = f"{a.agent_id} and {b.agent_id} both want to move block {subject}"
    elif conflict_type is ConflictType.DESTINATION:
        subject = a.move.to
        text = f"{a.agent_id} and {b.agent_id} both want to place a block on {subject}"
    elif a.move.to == b.move.block:
        subject = b.move.block
        text = f"{a.agent_id} targets {subject}, which {b.agent_id} is moving"
    else:
        subject = a.move.block
        text = f"{b.agent_id} targets {subject}, which {a.agent_id} is moving"
    return subject, text


class ConflictDetector:
    """Evaluates every proposal pair of a cycle and keeps a conflict history."""

    def __init__(self) -> None:
        self.history: list[Conflict] = []
        self._counts: dict[str, int] = {t.value: 0 for t in ConflictType}

    def detect_all(self, proposals: Sequence[Proposal], cycle: Optional[int] = None) -> list[Conflict]:
        conflicts: list[Conflict] = []
        for a, b in combinations(proposals, 2):
            conflict_type = detect(a, b)
            if conflict_type is None:
                continue
            subject, text = describe(conflict_type, a, b)
            conflicts.append(Conflict(
                type=conflict_type,
                proposal_a=a,
                proposal_b=b,
                subject=subject,
                description=text,
            ))
            self._counts[conflict_type.value] += 1

        if conflicts:
            logger.debug(
                "Cycle %s: %d conflict(s): %s",
                cycle, len(conflicts), "; ".join(c.description for c in conflicts),
            )
        self.history.extend(conflicts)
        return conflicts

    def get_statistics(self) -> dict[str, Any]:
        return {
            "total": len(self.history),
            "by_type": dict(self._counts),
        }

    def reset(self) -> None:
        self.history.clear()
        self._counts = {t.value: 0 for t in ConflictType}
