"""Data models for the blocks-world planner.

Defines the data contracts used across the planner, the deliberation layer
and orchestration. In-core records are dataclasses; the external request and
response contracts are Pydantic models.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

TABLE = "Table"

AGENT_A = "Agent-A"
AGENT_B = "Agent-B"

GoalChain = tuple[str, ...]
WorldSnapshot = tuple[tuple[str, ...], ...]


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class MoveReason(str, enum.Enum):
    CLEAR_BLOCK = "clear-block"
    CLEAR_TARGET = "clear-target"
    STACK = "stack"
    ALTERNATIVE = "alternative"

    @property
    def is_clearing(self) -> bool:
        return self in (MoveReason.CLEAR_BLOCK, MoveReason.CLEAR_TARGET)


class ConflictType(str, enum.Enum):
    RESOURCE = "resource"
    DESTINATION = "destination"
    DEPENDENCY = "dependency"


class DecisionStatus(str, enum.Enum):
    APPROVED = "approved"
    APPROVED_ALTERNATIVE = "approved-alternative"
    BLOCKED = "blocked"
    DEFERRED = "deferred"

    @property
    def applies(self) -> bool:
        return self in (DecisionStatus.APPROVED, DecisionStatus.APPROVED_ALTERNATIVE)


class ResolutionType(str, enum.Enum):
    CLEAR_PRIORITY = "clear-priority"
    UTILITY_WINNER = "utility-winner"
    COOPERATIVE_SEQUENTIAL = "cooperative-sequential"
    COOPERATIVE_ALTERNATIVE = "cooperative-alternative"
    RANDOM_TIEBREAK = "random-tiebreak"


class Stage(str, enum.Enum):
    FOUNDATION = "foundation"
    ASSEMBLY = "assembly"
    COMPLETE = "complete"


class DecompositionStrategy(str, enum.Enum):
    STAGED_SPLIT = "staged-split"
    INDEPENDENT_TOWERS = "independent-towers"
    SINGLE_SHARED_GOAL = "single-shared-goal"


class PlanningApproach(str, enum.Enum):
    MULTI_TOWER_INDEPENDENT = "multi-tower-independent"
    NEGOTIATED_MULTI_AGENT = "negotiated-multi-agent"


# ---------------------------------------------------------------------------
# Planning records
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Relation:
    """A single `block is on destination` requirement."""
    block: str
    destination: str

    def to_dict(self) -> dict[str, str]:
        return {"block": self.block, "destination": self.destination}


@dataclass(frozen=True)
class Move:
    """Relocation of a clear block onto the Table or another clear block."""
    block: str
    to: str
    reason: MoveReason

    def to_dict(self) -> dict[str, str]:
        return {"block": self.block, "to": self.to, "reason": self.reason.value}

    def __str__(self) -> str:
        return f"{self.block} -> {self.to} ({self.reason.value})"


@dataclass(frozen=True)
class Proposal:
    """One agent's candidate move for a cycle."""
    agent_id: str
    move: Move
    cycle: int
    order: int = 0  # submission order within the cycle


@dataclass
class Conflict:
    """Incompatibility between two proposals of the same cycle."""
    type: ConflictType
    proposal_a: Proposal
    proposal_b: Proposal
    subject: str
    description: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "subject": self.subject,
            "description": self.description,
            "agents": [self.proposal_a.agent_id, self.proposal_b.agent_id],
            "cycle": self.proposal_a.cycle,
        }


@dataclass
class Decision:
    """Resolved status of one proposal for the current cycle."""
    agent_id: str
    move: Move
    status: DecisionStatus
    reason: str
    negotiation_id: Optional[str] = None
    original_move: Optional[Move] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "agent_id": self.agent_id,
            "move": self.move.to_dict(),
            "status": self.status.value,
            "reason": self.reason,
            "negotiation_id": self.negotiation_id,
        }
        if self.original_move is not None:
            data["original_move"] = self.original_move.to_dict()
        return data


@dataclass
class Beliefs:
    """Facts derived from a world snapshot and a goal chain."""
    on_map: dict[str, str]
    clear_blocks: list[str]
    pending_relation: Optional[Relation]
    on_table_blocks: list[str]

    def to_dict(self) -> dict[str, Any]:
        return {
            "on_map": dict(self.on_map),
            "clear_blocks": list(self.clear_blocks),
            "pending_relation": self.pending_relation.to_dict() if self.pending_relation else None,
            "on_table_blocks": list(self.on_table_blocks),
        }


@dataclass(frozen=True)
class GoalDecomposition:
    """Split of one goal chain into foundation and assembly sub-chains."""
    assembly_chain: GoalChain
    foundation_chain: GoalChain
    pivot: Optional[str]

    def to_dict(self) -> dict[str, Any]:
        return {
            "assembly_chain": list(self.assembly_chain),
            "foundation_chain": list(self.foundation_chain),
            "pivot": self.pivot,
        }


@dataclass
class StagingState:
    """Which goal chain each agent pursues this cycle."""
    current_stage: Stage
    foundation_chain: GoalChain
    assembly_chain: GoalChain
    pivot_block: Optional[str]
    transitions: list[dict[str, Any]] = field(default_factory=list)


def expand_claw_steps(move: Move) -> list[dict[str, str]]:
    """Expand one logical move into the four claw steps used by visualisers."""
    return [
        {"type": "MOVE_CLAW", "to": move.block, "description": f"Move claw to {move.block}"},
        {"type": "PICK_UP", "block": move.block, "description": f"Pick up {move.block}"},
        {
            "type": "MOVE_CLAW",
            "to": move.to,
            "carrying": move.block,
            "description": f"Move {move.block} to {move.to}",
        },
        {"type": "DROP", "block": move.block, "at": move.to, "description": f"Drop {move.block} on {move.to}"},
    ]


# ---------------------------------------------------------------------------
# Request / response contracts
# ---------------------------------------------------------------------------

class PlanningOptions(BaseModel):
    """Caller-tunable options. camelCase keys are accepted for HTTP clients."""
    model_config = ConfigDict(populate_by_name=True)

    max_iterations: Optional[int] = Field(default=None, alias="maxIterations")
    enable_negotiation: Optional[bool] = Field(default=None, alias="enableNegotiation")
    deliberation_timeout_ms: Optional[int] = Field(default=None, alias="deliberationTimeout")
    random_seed: Optional[int] = Field(default=None, alias="randomSeed")
    include_claw_steps: bool = Field(default=False, alias="includeClawSteps")


class PlanningRequest(BaseModel):
    """Planning input: raw world and goal, validated by the planner itself."""
    model_config = ConfigDict(populate_by_name=True)

    initial_world: Any = Field(alias="initialWorld")
    goal: Any
    options: PlanningOptions = Field(default_factory=PlanningOptions)


class AppliedMove(BaseModel):
    block: str
    to: str
    reason: str
    actor: str
    decision: Optional[str] = None
    claw_steps: Optional[list[dict[str, str]]] = None


class CycleMoves(BaseModel):
    cycle: int
    moves: list[AppliedMove] = Field(default_factory=list)


class IntentionLogEntry(BaseModel):
    """Replay snapshot recorded at the end of each cycle."""
    cycle: int
    moves: list[AppliedMove] = Field(default_factory=list)
    resulting_world: list[list[str]] = Field(default_factory=list)
    beliefs: dict[str, Any] = Field(default_factory=dict)
    stage: Optional[str] = None
    deliberation: Optional[dict[str, Any]] = None


class PlanningStatistics(BaseModel):
    agent_a_moves: int = 0
    agent_b_moves: int = 0
    total_conflicts: int = 0
    total_negotiations: int = 0
    total_parallel_executions: int = 0
    total_deliberations: int = 0
    elapsed_ms: float = 0.0
    deliberation: dict[str, Any] = Field(default_factory=dict)


class PlanningResult(BaseModel):
    """Fully achieved plan. Failures are raised, never returned."""
    moves_by_cycle: list[CycleMoves] = Field(default_factory=list)
    iterations: int = 0
    goal_achieved: bool = False
    intention_log: list[IntentionLogEntry] = Field(default_factory=list)
    statistics: PlanningStatistics = Field(default_factory=PlanningStatistics)
    goal_decomposition: dict[str, Any] = Field(default_factory=dict)
    planning_approach: PlanningApproach = PlanningApproach.NEGOTIATED_MULTI_AGENT
    strategy: DecompositionStrategy = DecompositionStrategy.STAGED_SPLIT
    agent_count: int = 2
    goal_chain: list[str] = Field(default_factory=list)
    final_world: list[list[str]] = Field(default_factory=list)
    final_on_map: dict[str, str] = Field(default_factory=dict)

    @property
    def total_moves(self) -> int:
        return sum(len(group.moves) for group in self.moves_by_cycle)
