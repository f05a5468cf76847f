"""Tests for blocksworld/agents/planner.py — greedy single-agent planner."""

import pytest

from blocksworld.agents.planner import PlannerAgent, propose
from blocksworld.core.exceptions import UnknownBlockError
from blocksworld.core.models import TABLE, Move, MoveReason
from blocksworld.core.world import World


class TestPropose:
    def test_satisfied_chain_returns_none(self):
        assert propose((("B", "A"),), ("A", "B", TABLE)) is None

    def test_bottom_relation_first(self):
        # B must go to the Table before A can be stacked on it
        assert propose((("A", "B"),), ("A", "B", TABLE)) == Move("B", TABLE, MoveReason.STACK)

    def test_clear_block(self):
        snapshot = (("B", "C"), ("A",))
        assert propose(snapshot, ("B", "A", TABLE)) == Move("C", TABLE, MoveReason.CLEAR_BLOCK)

    def test_clear_block_moves_top_most(self):
        snapshot = (("B", "C", "D"), ("A",))
        assert propose(snapshot, ("B", "A", TABLE)) == Move("D", TABLE, MoveReason.CLEAR_BLOCK)

    def test_clear_target(self):
        snapshot = (("A", "C"), ("B",))
        assert propose(snapshot, ("B", "A", TABLE)) == Move("C", TABLE, MoveReason.CLEAR_TARGET)

    def test_stack(self):
        snapshot = (("A",), ("B",))
        assert propose(snapshot, ("B", "A", TABLE)) == Move("B", "A", MoveReason.STACK)

    def test_open_chain(self):
        snapshot = (("B",), ("A",))
        assert propose(snapshot, ("A", "B")) == Move("A", "B", MoveReason.STACK)

    def test_unknown_block(self):
        with pytest.raises(UnknownBlockError) as exc_info:
            propose((("A",),), ("A", "Q", TABLE), agent_id="Agent-B")
        assert exc_info.value.block == "Q"
        assert exc_info.value.agent_id == "Agent-B"

    def test_side_effect_free(self):
        world = World([["A", "B"]])
        snap = world.snapshot()
        propose(snap, ("A", "B", TABLE))
        assert world.snapshot() == snap

    def test_repeated_application_reaches_goal(self):
        world = World([["C", "A"], ["B"]])
        chain = ("A", "B", "C", TABLE)
        for _ in range(10):
            move = propose(world.snapshot(), chain)
            if move is None:
                break
            world.apply_move(move)
        assert world.satisfies(chain)


class TestPlannerAgent:
    def test_proposal_fields(self):
        agent = PlannerAgent("Agent-A")
        proposal = agent.propose((("A",), ("B",)), ("B", "A", TABLE), cycle=3, order=1)
        assert proposal.agent_id == "Agent-A"
        assert proposal.cycle == 3
        assert proposal.order == 1
        assert proposal.move == Move("B", "A", MoveReason.STACK)

    def test_metrics(self):
        agent = PlannerAgent("Agent-B")
        agent.propose((("A",), ("B",)), ("B", "A", TABLE), cycle=1)
        agent.propose((("A", "B"),), ("B", "A", TABLE), cycle=2)
        metrics = agent.get_metrics()
        assert metrics["total_proposals"] == 1
        assert metrics["idle_cycles"] == 1
        assert metrics["total_errors"] == 0

    def test_errors_are_reraised_and_counted(self):
        agent = PlannerAgent("Agent-A")
        with pytest.raises(UnknownBlockError):
            agent.propose((("A",),), ("A", "Z", TABLE), cycle=1)
        assert agent.get_metrics()["total_errors"] == 1

    def test_logger_name(self):
        assert PlannerAgent("Agent-A").logger.name == "blocksworld.agent.agent-a"
