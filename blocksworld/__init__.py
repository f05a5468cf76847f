"""Two-agent blocks-world planner with negotiated deliberation."""

from blocksworld.core.exceptions import (
    BlocksWorldError,
    IterationLimitError,
    PlanningStallError,
    ValidationError,
)
from blocksworld.core.models import PlanningRequest, PlanningResult
from blocksworld.orchestrator.service import PlanningService, plan

__version__ = "0.1.0"

__all__ = [
    "BlocksWorldError",
    "IterationLimitError",
    "PlanningRequest",
    "PlanningResult",
    "PlanningService",
    "PlanningStallError",
    "ValidationError",
    "plan",
]
