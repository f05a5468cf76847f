"""Planning entry point: validate a request, pick a strategy and run it.

Strategy selection:
  one tower                    → staged-split (foundation/assembly)
  two independent towers       → independent-towers (merged replay)
  two dependent towers         → single-shared-goal over the flattened chain
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Sequence, Union

import pydantic

from blocksworld.core.config import AppConfig, resolve_max_iterations
from blocksworld.core.exceptions import ValidationError
from blocksworld.core.models import (
    DecompositionStrategy,
    GoalChain,
    PlanningApproach,
    PlanningRequest,
    PlanningResult,
)
from blocksworld.core.validation import validate_request
from blocksworld.core.world import World
from blocksworld.deliberation.manager import DeliberationManager, EventListener
from blocksworld.orchestrator.loop import PlanningLoop
from blocksworld.planning.decomposer import flatten_towers
from blocksworld.planning.towers import is_independent, plan_independent

logger = logging.getLogger("blocksworld.orchestrator.service")


class PlanningService:
    """Runs planning requests against a loaded AppConfig."""

    def __init__(
        self,
        config: Optional[AppConfig] = None,
        listeners: Sequence[EventListener] = (),
    ):
        self.config = config or AppConfig()
        self.listeners = list(listeners)

    def plan(self, request: Union[PlanningRequest, dict[str, Any]]) -> PlanningResult:
        """Plan a request to completion.

        Raises:
            ValidationError: Malformed request, world or goal.
            PlanningStallError, IterationLimitError: Planning failed.
        """
        if not isinstance(request, PlanningRequest):
            try:
                request = PlanningRequest.model_validate(request)
            except pydantic.ValidationError as exc:
                raise ValidationError(f"Malformed planning request: {exc}") from exc

        stacks, chains = validate_request(request.initial_world, request.goal)
        options = request.options
        max_iterations = resolve_max_iterations(options.max_iterations, self.config.planner.max_iterations)
        world = World(stacks)

        if len(chains) == 2:
            return self._plan_towers(world, chains, request, max_iterations)

        manager = self._build_manager(request)
        loop = PlanningLoop(
            world,
            chains[0],
            strategy=DecompositionStrategy.STAGED_SPLIT,
            manager=manager,
            max_iterations=max_iterations,
            include_claw_steps=options.include_claw_steps,
        )
        result = loop.run()
        result.planning_approach = PlanningApproach.NEGOTIATED_MULTI_AGENT
        return result

    def _plan_towers(
        self,
        world: World,
        chains: list[GoalChain],
        request: PlanningRequest,
        max_iterations: int,
    ) -> PlanningResult:
        snapshot = world.snapshot()
        flat = flatten_towers(chains)
        towers_meta: dict[str, Any] = {"towers": [list(chain) for chain in chains]}

        if is_independent(snapshot, chains):
            cycles = plan_independent(snapshot, chains, max_iterations)
            if cycles is not None:
                loop = PlanningLoop(
                    world,
                    flat,
                    strategy=DecompositionStrategy.INDEPENDENT_TOWERS,
                    manager=self._build_manager(request),
                    max_iterations=max_iterations,
                    include_claw_steps=request.options.include_claw_steps,
                )
                result = loop.replay(cycles)
                result.planning_approach = PlanningApproach.MULTI_TOWER_INDEPENDENT
                result.goal_decomposition = {**towers_meta, "independent": True}
                return result
            logger.info("Independent schedule rejected on replay; negotiating over the flattened goal")
        else:
            logger.info("Towers %s interact; negotiating over the flattened goal", towers_meta["towers"])

        loop = PlanningLoop(
            world,
            flat,
            strategy=DecompositionStrategy.SINGLE_SHARED_GOAL,
            manager=self._build_manager(request),
            max_iterations=max_iterations,
            include_claw_steps=request.options.include_claw_steps,
        )
        result = loop.run()
        result.planning_approach = PlanningApproach.NEGOTIATED_MULTI_AGENT
        result.goal_decomposition = {**towers_meta, "independent": False, "flattened_chain": list(flat)}
        return result

    def _build_manager(self, request: PlanningRequest) -> DeliberationManager:
        options = request.options
        manager = DeliberationManager.from_config(
            self.config.planner,
            self.config.negotiation,
            enable_negotiation=options.enable_negotiation,
            random_seed=options.random_seed,
            deliberation_timeout_ms=options.deliberation_timeout_ms,
        )
        for listener in self.listeners:
            manager.subscribe(listener)
        return manager


def plan(initial_world: Any, goal: Any, config: Optional[AppConfig] = None, **options: Any) -> PlanningResult:
    """Convenience wrapper: plan(world, goal, max_iterations=..., random_seed=...)."""
    request = {"initial_world": initial_world, "goal": goal, "options": options}
    return PlanningService(config).plan(request)
