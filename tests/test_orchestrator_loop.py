"""Tests for blocksworld/orchestrator/loop.py — planning loop and failure handling."""

import pytest

from blocksworld.core.exceptions import (
    InternalInvariantError,
    IterationLimitError,
    PlanningStallError,
)
from blocksworld.core.models import (
    AGENT_A,
    TABLE,
    Decision,
    DecisionStatus,
    DecompositionStrategy,
    Move,
    MoveReason,
)
from blocksworld.core.world import World
from blocksworld.deliberation.manager import DeliberationManager, DeliberationResult
from blocksworld.deliberation.negotiation import NegotiationProtocol
from blocksworld.orchestrator.loop import PlanningLoop

CHAIN_A = ("A", "B", TABLE)


def _all_blocks_once(stacks):
    flat = [block for stack in stacks for block in stack]
    return len(flat) == len(set(flat))


def _loop(world, chain, **kwargs):
    kwargs.setdefault("manager", DeliberationManager(protocol=NegotiationProtocol(seed=11)))
    return PlanningLoop(World(world), chain, **kwargs)


class TestStagedSplit:
    def test_scenario_a(self):
        result = _loop([["A", "B"]], CHAIN_A).run()
        assert result.goal_achieved is True
        assert result.iterations == 2
        moves = [(m.block, m.to) for group in result.moves_by_cycle for m in group.moves]
        assert moves == [("B", TABLE), ("A", "B")]
        assert result.final_on_map == {"A": "B", "B": TABLE}
        assert result.statistics.total_parallel_executions == 0
        assert result.statistics.agent_a_moves + result.statistics.agent_b_moves == 2

    def test_scenario_a_stages(self):
        result = _loop([["A", "B"]], CHAIN_A).run()
        assert [entry.stage for entry in result.intention_log] == ["assembly", "complete"]
        assert result.goal_decomposition["foundation_chain"] == ["B", TABLE]
        assert result.goal_decomposition["assembly_chain"] == ["A", "B"]
        assert result.goal_decomposition["pivot"] == "B"
        assert result.goal_decomposition["final_stage"] == "complete"

    def test_already_satisfied(self):
        result = _loop([["B", "A"]], CHAIN_A).run()
        assert result.goal_achieved is True
        assert result.iterations == 0
        assert result.moves_by_cycle == []
        assert result.intention_log == []

    def test_longer_tower(self):
        world = [["C", "A"], ["E", "B"], ["D"]]
        chain = ("A", "B", "C", "D", "E", TABLE)
        result = _loop(world, chain).run()
        assert result.goal_achieved is True
        assert result.final_world == [["E", "D", "C", "B", "A"]]
        for entry in result.intention_log:
            assert _all_blocks_once(entry.resulting_world)
            assert all(entry.resulting_world)

    def test_intention_log_matches_moves(self):
        result = _loop([["A", "B"], ["C"]], ("C", "A", "B", TABLE)).run()
        assert len(result.intention_log) == result.iterations
        assert result.intention_log[-1].resulting_world == result.final_world
        for entry, group in zip(result.intention_log, result.moves_by_cycle):
            assert entry.cycle == group.cycle
            assert entry.moves == group.moves
            assert entry.deliberation is not None
            assert "on_map" in entry.beliefs

    def test_negotiation_disabled_prefers_first_agent(self):
        manager = DeliberationManager(enable_negotiation=False)
        result = _loop([["A", "B"]], CHAIN_A, manager=manager).run()
        assert result.statistics.agent_a_moves == 2
        assert result.statistics.agent_b_moves == 0
        assert result.statistics.deliberation["priority_fallbacks"] == 2

    def test_claw_steps(self):
        result = _loop([["A", "B"]], CHAIN_A, include_claw_steps=True).run()
        for group in result.moves_by_cycle:
            for move in group.moves:
                assert len(move.claw_steps) == 4

    def test_statistics_counts(self):
        result = _loop([["A", "B"]], CHAIN_A).run()
        stats = result.statistics
        # both agents pursue the same relation each cycle
        assert stats.total_conflicts == 2
        assert stats.total_negotiations == 2
        assert stats.total_deliberations == 2
        assert stats.deliberation["deliberations"] == 2


class TestSharedGoal:
    def test_flattened_goal(self):
        chain = ("A", "B", TABLE, "C", "D", TABLE)
        result = _loop(
            [["C", "D"], ["A", "B"]], chain, strategy=DecompositionStrategy.SINGLE_SHARED_GOAL,
        ).run()
        assert result.goal_achieved is True
        assert result.iterations == 4
        assert result.statistics.total_parallel_executions == 0
        assert result.final_on_map == {"A": "B", "B": TABLE, "C": "D", "D": TABLE}
        assert result.goal_decomposition == {}


class TestReplay:
    def test_replay_parallel_cycle(self):
        loop = _loop(
            [["C"], ["B"], ["A"], ["D"]],
            ("C", "B", TABLE, "A", "D", TABLE),
            strategy=DecompositionStrategy.INDEPENDENT_TOWERS,
        )
        result = loop.replay([[
            (AGENT_A, Move("C", "B", MoveReason.STACK)),
            ("Agent-B", Move("A", "D", MoveReason.STACK)),
        ]])
        assert result.iterations == 1
        assert result.statistics.total_parallel_executions == 1
        assert result.statistics.agent_a_moves == 1
        assert result.statistics.agent_b_moves == 1

    def test_replay_over_limit(self):
        loop = _loop([["A"], ["B"]], ("A", "B", TABLE), max_iterations=1,
                     strategy=DecompositionStrategy.INDEPENDENT_TOWERS)
        cycles = [[(AGENT_A, Move("A", "B", MoveReason.STACK))], [(AGENT_A, Move("A", TABLE, MoveReason.STACK))]]
        with pytest.raises(IterationLimitError):
            loop.replay(cycles)


class TestFailureHandling:
    def test_iteration_limit(self):
        with pytest.raises(IterationLimitError) as exc_info:
            _loop([["A", "B"]], CHAIN_A, max_iterations=1).run()
        assert exc_info.value.max_iterations == 1
        assert "within 1 iterations" in str(exc_info.value)

    def test_max_iterations_clamped(self):
        loop = _loop([["A"]], ("A", TABLE), max_iterations=99_999)
        assert loop.max_iterations == 5000

    def test_stall(self, monkeypatch):
        manager = DeliberationManager()
        monkeypatch.setattr(
            manager, "deliberate",
            lambda proposals, snapshot, chain, cycle: DeliberationResult(cycle=cycle, valid=False, mode="empty"),
        )
        with pytest.raises(PlanningStallError) as exc_info:
            _loop([["A", "B"]], CHAIN_A, manager=manager).run()
        assert exc_info.value.cycle == 1

    def test_stall_when_everything_blocked(self, monkeypatch):
        manager = DeliberationManager()

        def _all_blocked(proposals, snapshot, chain, cycle):
            return DeliberationResult(
                cycle=cycle,
                decisions=[Decision(p.agent_id, p.move, DecisionStatus.BLOCKED, "test") for p in proposals],
            )

        monkeypatch.setattr(manager, "deliberate", _all_blocked)
        with pytest.raises(PlanningStallError, match="blocked or deferred"):
            _loop([["A", "B"]], CHAIN_A, manager=manager).run()

    def test_apply_time_precondition(self, monkeypatch):
        manager = DeliberationManager()
        illegal = Move("A", TABLE, MoveReason.STACK)
        monkeypatch.setattr(
            manager, "deliberate",
            lambda proposals, snapshot, chain, cycle: DeliberationResult(
                cycle=cycle,
                decisions=[Decision(AGENT_A, illegal, DecisionStatus.APPROVED, "test")],
            ),
        )
        with pytest.raises(InternalInvariantError):
            _loop([["A", "B"]], CHAIN_A, manager=manager).run()
