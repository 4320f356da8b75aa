"""
Tests for $inarray, $any and $all.
"""

import pytest

from ..engine_core import evaluate
from ..engine_core.array_logic import split_array_operand


@pytest.fixture
def targets_context():
    return {
        "Targets": ["Guard", "Chef", "Butler"],
        "Kills": [
            {"Name": "Guard", "Weapon": "Pistol"},
            {"Name": "Chef", "Weapon": "Knife"},
        ],
        "Wanted": "Chef",
    }


class TestOperandShapes:
    """Both operand shapes select the same parts."""

    def test_list_form(self):
        assert split_array_operand(["$Targets", True]) == ("$Targets", True)

    def test_object_form(self):
        assert split_array_operand({"in": "$Targets", "?": True}) == ("$Targets", True)

    @pytest.mark.parametrize("operand", [["$Targets"], {"in": "$Targets"}, "$Targets", None])
    def test_malformed(self, operand):
        assert split_array_operand(operand) is None

    def test_malformed_operand_is_false(self, options, log_entries):
        assert evaluate({"$any": ["$Targets"]}, {"Targets": [1]}, options) is False
        assert any(category == "validation" for category, _ in log_entries)


class TestAny:
    """$any and $inarray."""

    def test_element_match(self, targets_context, options):
        node = {"$any": ["$Targets", {"$eq": ["$.#", "Chef"]}]}
        assert evaluate(node, targets_context, options) is True

    def test_no_match(self, targets_context, options):
        node = {"$any": ["$Targets", {"$eq": ["$.#", "Maid"]}]}
        assert evaluate(node, targets_context, options) is False

    def test_element_property(self, targets_context, options):
        node = {"$any": {"in": "$Kills", "?": {"$eq": ["$.Weapon", "Knife"]}}}
        assert evaluate(node, targets_context, options) is True

    def test_compares_with_context(self, targets_context, options):
        node = {"$inarray": ["$Targets", {"$eq": ["$.#", "$Wanted"]}]}
        assert evaluate(node, targets_context, options) is True

    def test_empty_array_is_false(self, options):
        assert evaluate({"$any": ["$List", True]}, {"List": []}, options) is False

    def test_non_array_is_false(self, options):
        assert evaluate({"$inarray": ["$List", True]}, {"List": "Guard"}, options) is False
        assert evaluate({"$inarray": ["$Missing", True]}, {}, options) is False

    def test_literal_array(self, options):
        node = {"$any": [[1, 2, 3], {"$gt": ["$.#", 2]}]}
        assert evaluate(node, {}, options) is True


class TestAll:
    """$all."""

    def test_all_match(self, targets_context, options):
        node = {"$all": ["$Kills", {"$contains": ["$.Weapon", "i"]}]}
        assert evaluate(node, targets_context, options) is True

    def test_one_fails(self, targets_context, options):
        node = {"$all": ["$Kills", {"$eq": ["$.Weapon", "Pistol"]}]}
        assert evaluate(node, targets_context, options) is False

    def test_empty_array_is_true(self, options):
        assert evaluate({"$all": ["$List", False]}, {"List": []}, options) is True

    def test_non_array_is_false(self, options):
        assert evaluate({"$all": ["$List", True]}, {"List": 3}, options) is False


class TestNesting:
    """Loop levels and the element scope."""

    def test_outer_element_from_inner_loop(self, options):
        context = {
            "Rooms": [
                {"Name": "Kitchen", "Allowed": ["Chef"]},
                {"Name": "Vault", "Allowed": ["Guard", "Banker"]},
            ],
        }
        # Any allowed person, checked against the enclosing room.
        node = {
            "$any": ["$Rooms", {
                "$any": ["$.Allowed", {"$eq": ["$..Name", "Vault"]}],
            }],
        }
        assert evaluate(node, context, options) is True

    def test_inner_element_shadows(self, options):
        context = {"Outer": [[1, 2], [3, 4]]}
        node = {"$any": ["$Outer", {"$any": ["$.#", {"$eq": ["$.#", 4]}]}]}
        assert evaluate(node, context, options) is True

    def test_element_reference_outside_loop_is_none(self, options):
        assert evaluate("$.#", {"A": 1}, options) is None

    def test_context_not_modified(self, targets_context, options):
        before = dict(targets_context)
        evaluate({"$any": ["$Targets", {"$eq": ["$.#", "Butler"]}]}, targets_context, options)
        assert targets_context == before

    def test_loop_depth_restored(self, options):
        """Sibling nodes after a loop see the outer depth again."""
        context = {"List": [1], "X": 1}
        node = {"$and": [
            {"$any": ["$List", {"$eq": ["$.#", 1]}]},
            {"$not": "$.#"},
            {"$eq": ["$X", 1]},
        ]}
        assert evaluate(node, context, options) is True
        assert options.loop_depth == 0

    def test_trace_labels(self, options, log_entries):
        evaluate({"$any": ["$L", {"$eq": ["$.#", 1]}]}, {"L": [1]}, options)
        visits = [m for c, m in log_entries if c == "visit"]
        assert "Visiting $any[0]" in visits
        assert "Visiting $any[1]" in visits
        assert "Visiting $any[1].$eq[0]" in visits
