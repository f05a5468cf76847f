"""Tests for blocksworld/core/validation.py — world and goal normalisation."""

import pytest

from blocksworld.core.exceptions import ValidationError
from blocksworld.core.models import TABLE
from blocksworld.core.validation import (
    normalize_goal_chain,
    normalize_token,
    normalize_world,
    split_goal_towers,
    validate_request,
    validate_towers,
)


class TestNormalizeToken:
    def test_trims_and_uppercases(self):
        assert normalize_token("  a ") == "A"

    def test_table_any_case(self):
        assert normalize_token("TABLE") == TABLE
        assert normalize_token(" table ") == TABLE

    def test_non_string_rejected(self):
        with pytest.raises(ValidationError):
            normalize_token(3)


class TestNormalizeWorld:
    def test_valid(self):
        assert normalize_world([["a", "B"], ["c"]]) == [["A", "B"], ["C"]]

    def test_empty_stacks_dropped(self):
        assert normalize_world([["A"], []]) == [["A"]]

    def test_non_list_rejected(self):
        with pytest.raises(ValidationError):
            normalize_world("AB")

    def test_non_list_stack_rejected(self):
        with pytest.raises(ValidationError):
            normalize_world(["A"])

    def test_duplicate_rejected(self):
        with pytest.raises(ValidationError, match="Duplicate"):
            normalize_world([["A"], ["A"]])

    def test_invalid_identifier_rejected(self):
        with pytest.raises(ValidationError):
            normalize_world([["AB"]])
        with pytest.raises(ValidationError):
            normalize_world([["1"]])


class TestNormalizeGoalChain:
    KNOWN = {"A", "B", "C"}

    def test_appends_table(self):
        assert normalize_goal_chain(["a", "b"], self.KNOWN) == ("A", "B", TABLE)

    def test_keeps_existing_table(self):
        assert normalize_goal_chain(["A", "B", "table"], self.KNOWN) == ("A", "B", TABLE)

    def test_too_short(self):
        with pytest.raises(ValidationError, match="at least two"):
            normalize_goal_chain(["A"], self.KNOWN)

    def test_repeat_rejected(self):
        with pytest.raises(ValidationError, match="repeats"):
            normalize_goal_chain(["A", "B", "A", TABLE], self.KNOWN)

    def test_unknown_block_rejected(self):
        with pytest.raises(ValidationError, match="unknown block Q"):
            normalize_goal_chain(["A", "Q", TABLE], self.KNOWN)

    def test_interior_table_rejected_by_default(self):
        with pytest.raises(ValidationError, match="Table"):
            normalize_goal_chain(["A", TABLE, "B", TABLE], self.KNOWN)

    def test_interior_table_allowed_when_requested(self):
        chain = normalize_goal_chain(["A", TABLE, "B", TABLE], self.KNOWN, allow_interior_table=True)
        assert chain == ("A", TABLE, "B", TABLE)


class TestTowers:
    def test_flat_goal_is_one_tower(self):
        assert split_goal_towers(["A", "B"]) == [["A", "B"]]

    def test_nested_goal(self):
        assert split_goal_towers([["A", "B"], ["C", "D"]]) == [["A", "B"], ["C", "D"]]

    def test_three_towers_rejected_first(self):
        # single-block towers would also fail the length check; the tower limit wins
        with pytest.raises(ValidationError, match="supports up to two towers"):
            split_goal_towers([["A"], ["B"], ["C"]])

    def test_mixed_goal_rejected(self):
        with pytest.raises(ValidationError):
            split_goal_towers(["A", ["B", "C"]])

    def test_empty_goal_rejected(self):
        with pytest.raises(ValidationError):
            split_goal_towers([])

    def test_overlapping_towers_rejected(self):
        with pytest.raises(ValidationError, match="disjoint"):
            validate_towers([("A", "B", TABLE), ("B", "C", TABLE)])


class TestValidateRequest:
    def test_single_tower(self):
        stacks, chains = validate_request([["A", "B"]], ["A", "B", "Table"])
        assert stacks == [["A", "B"]]
        assert chains == [("A", "B", TABLE)]

    def test_two_towers(self):
        _stacks, chains = validate_request(
            [["C"], ["B"], ["A"], ["D"]],
            [["C", "B", "Table"], ["A", "D", "Table"]],
        )
        assert chains == [("C", "B", TABLE), ("A", "D", TABLE)]

    def test_goal_block_missing_from_world(self):
        with pytest.raises(ValidationError):
            validate_request([["A"]], ["A", "B"])
