"""Custom exception hierarchy for the blocks-world planner.

All exceptions inherit from BlocksWorldError so callers can catch broadly
or narrowly as needed.
"""

from __future__ import annotations

from typing import Optional


class BlocksWorldError(Exception):
    """Base exception for all planner errors."""


# ---------------------------------------------------------------------------
# Input
# ---------------------------------------------------------------------------

class ValidationError(BlocksWorldError):
    """Malformed world or goal input. Raised before planning starts."""


class ConfigError(BlocksWorldError):
    """Invalid or missing configuration."""


# ---------------------------------------------------------------------------
# Planner
# ---------------------------------------------------------------------------

class UnknownBlockError(BlocksWorldError):
    """A goal chain references a block that is absent from the world."""

    def __init__(self, block: str, agent_id: Optional[str] = None):
        self.block = block
        self.agent_id = agent_id
        owner = f"Agent {agent_id}" if agent_id else "Planner"
        super().__init__(f"{owner} cannot find block '{block}' in the world")


class PlanningError(BlocksWorldError):
    """Planning terminated without satisfying the goal."""

    def __init__(self, message: str, iterations: int = 0):
        self.iterations = iterations
        super().__init__(message)


class PlanningStallError(PlanningError):
    """A cycle applied zero moves while the goal was still unmet."""

    def __init__(self, cycle: int, detail: str = ""):
        self.cycle = cycle
        message = f"Planner stalled at cycle {cycle} before achieving the goal"
        if detail:
            message += f" ({detail})"
        super().__init__(message, iterations=cycle)


class IterationLimitError(PlanningError):
    """The iteration ceiling was reached before the goal was satisfied."""

    def __init__(self, max_iterations: int):
        self.max_iterations = max_iterations
        super().__init__(
            f"Unable to achieve goal within {max_iterations} iterations",
            iterations=max_iterations,
        )


# ---------------------------------------------------------------------------
# Coordination
# ---------------------------------------------------------------------------

class InternalInvariantError(BlocksWorldError):
    """A world invariant was violated at apply time. Signals a defect."""


class NegotiationError(BlocksWorldError):
    """Negotiation produced no usable resolution."""
