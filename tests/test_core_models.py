"""Tests for blocksworld/core/models.py — enums, records and request contracts."""

from blocksworld.core.models import (
    TABLE,
    DecisionStatus,
    GoalDecomposition,
    Move,
    MoveReason,
    PlanningRequest,
    PlanningResult,
    CycleMoves,
    AppliedMove,
    expand_claw_steps,
)


class TestEnums:
    def test_clearing_reasons(self):
        assert MoveReason.CLEAR_BLOCK.is_clearing
        assert MoveReason.CLEAR_TARGET.is_clearing
        assert not MoveReason.STACK.is_clearing
        assert not MoveReason.ALTERNATIVE.is_clearing

    def test_applying_statuses(self):
        assert DecisionStatus.APPROVED.applies
        assert DecisionStatus.APPROVED_ALTERNATIVE.applies
        assert not DecisionStatus.BLOCKED.applies
        assert not DecisionStatus.DEFERRED.applies

    def test_string_values(self):
        assert MoveReason("clear-target") is MoveReason.CLEAR_TARGET
        assert DecisionStatus.APPROVED_ALTERNATIVE.value == "approved-alternative"


class TestRecords:
    def test_move_to_dict(self):
        assert Move("A", TABLE, MoveReason.CLEAR_BLOCK).to_dict() == {
            "block": "A", "to": TABLE, "reason": "clear-block",
        }

    def test_decomposition_to_dict(self):
        d = GoalDecomposition(("A", "B"), ("B", TABLE), "B").to_dict()
        assert d == {"assembly_chain": ["A", "B"], "foundation_chain": ["B", TABLE], "pivot": "B"}


class TestClawSteps:
    def test_four_steps(self):
        steps = expand_claw_steps(Move("A", "B", MoveReason.STACK))
        assert [s["type"] for s in steps] == ["MOVE_CLAW", "PICK_UP", "MOVE_CLAW", "DROP"]
        assert steps[0]["to"] == "A"
        assert steps[2]["carrying"] == "A"
        assert steps[3]["at"] == "B"


class TestPlanningRequest:
    def test_camel_case_aliases(self):
        request = PlanningRequest.model_validate({
            "initialWorld": [["A"]],
            "goal": ["A", "Table"],
            "options": {"maxIterations": 10, "enableNegotiation": False, "deliberationTimeout": 50},
        })
        assert request.initial_world == [["A"]]
        assert request.options.max_iterations == 10
        assert request.options.enable_negotiation is False
        assert request.options.deliberation_timeout_ms == 50

    def test_snake_case_names(self):
        request = PlanningRequest.model_validate({
            "initial_world": [["A"]],
            "goal": ["A", "Table"],
            "options": {"random_seed": 4, "include_claw_steps": True},
        })
        assert request.options.random_seed == 4
        assert request.options.include_claw_steps is True

    def test_options_default(self):
        request = PlanningRequest(initial_world=[["A"]], goal=["A"])
        assert request.options.max_iterations is None


class TestPlanningResult:
    def test_total_moves(self):
        result = PlanningResult(moves_by_cycle=[
            CycleMoves(cycle=1, moves=[
                AppliedMove(block="A", to=TABLE, reason="stack", actor="Agent-A"),
                AppliedMove(block="B", to="C", reason="stack", actor="Agent-B"),
            ]),
            CycleMoves(cycle=2, moves=[AppliedMove(block="C", to=TABLE, reason="stack", actor="Agent-A")]),
        ])
        assert result.total_moves == 3
