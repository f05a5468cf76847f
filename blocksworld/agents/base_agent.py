"""Abstract base agent for the blocks-world planner.

Agents are stateless with respect to the world: they receive a snapshot and
a goal chain each cycle and return at most one proposal. The base class only
carries identity, logging and runtime counters.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from typing import Any


class BaseAgent(ABC):
    """Base class for all planning agents.

    Every agent follows the same lifecycle:
    1. Receive a cycle context (world snapshot, goal chain, cycle number)
    2. Process it into a proposal, or None when it has nothing to do
    3. Log metrics and errors throughout

    Subclasses must implement `process()`. Unlike a degrading service, a
    failing agent is a defect, so `run()` logs and re-raises.
    """

    def __init__(self, agent_id: str):
        self.agent_id = agent_id
        self.logger = logging.getLogger(f"blocksworld.agent.{agent_id.lower()}")
        self._metrics: dict[str, Any] = {
            "total_proposals": 0,
            "idle_cycles": 0,
            "total_errors": 0,
            "last_duration_seconds": 0.0,
        }

    @abstractmethod
    def process(self, input_data: Any) -> Any:
        """Turn a cycle context into a proposal, or None when idle."""

    def run(self, input_data: Any) -> Any:
        """Execute the agent with lifecycle logging and metrics.

        Agents should override process(), not run().
        """
        start = time.monotonic()
        try:
            result = self.process(input_data)
        except Exception as e:
            self._metrics["total_errors"] += 1
            self._metrics["last_duration_seconds"] = time.monotonic() - start
            self.logger.error("[%s] Error: %s", self.agent_id, e)
            raise

        duration = time.monotonic() - start
        self._metrics["last_duration_seconds"] = duration
        if result is None:
            self._metrics["idle_cycles"] += 1
        else:
            self._metrics["total_proposals"] += 1
        self.logger.debug("[%s] Proposed %s (%.4fs)", self.agent_id, result, duration)
        return result

    def get_metrics(self) -> dict[str, Any]:
        """Return a copy of the agent's runtime metrics."""
        return self._metrics.copy()
