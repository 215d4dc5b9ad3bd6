"""Tests for branch enumeration and branch geometry."""

from flowedit.workflow import BinaryBranches, MultiValueBranches, NodeConfig, Position
from flowedit.workflow.branch_layout import (
    ELSE_COLOR,
    FALSE_COLOR,
    TRUE_COLOR,
    branch_child_position,
    branch_color,
    branch_mode_of,
    branches_of,
    compute_branch_layout,
    default_offsets,
    find_branch,
    find_branch_ancestry,
)

from tests.factories import action, conditional, edge


def _ids(config):
    return [b.id for b in branches_of(config)]


class TestBranchesOf:
    """Branch derivation from a decision node's config."""

    def test_simple_mode_is_binary(self):
        assert _ids(NodeConfig()) == ["true", "false"]
        assert isinstance(branch_mode_of(NodeConfig()), BinaryBranches)

    def test_boolean_return_type_stays_binary(self):
        config = conditional("c", values=["x", "y"], return_type="boolean").config
        assert _ids(config) == ["true", "false"]

    def test_duplicates_collapse_and_else_is_last(self):
        config = conditional("c", values=["x", "y", "x"]).config
        assert _ids(config) == ["x", "y", "else"]

    def test_explicit_else_and_empty_values_are_skipped(self):
        config = NodeConfig(
            multiple_conditions=True,
            return_type="string",
            cases=[
                {"return_value": "else"},
                {"return_value": ""},
                {"return_value": None},
                {"return_value": "a"},
            ],
        )
        assert _ids(config) == ["a", "else"]

    def test_integer_values_become_string_handles(self):
        config = NodeConfig(
            multiple_conditions=True,
            return_type="integer",
            cases=[{"return_value": 1}, {"return_value": 2}],
        )
        mode = branch_mode_of(config)
        assert isinstance(mode, MultiValueBranches)
        assert _ids(config) == ["1", "2", "else"]

    def test_derivation_is_stable(self):
        config = conditional("c", values=["b", "a"]).config
        assert branches_of(config) == branches_of(config)

    def test_colors(self):
        binary = branches_of(NodeConfig())
        assert [b.color for b in binary] == [TRUE_COLOR, FALSE_COLOR]
        multi = branches_of(conditional("c", values=["x"]).config)
        assert multi[-1].color == ELSE_COLOR

    def test_find_branch(self):
        config = conditional("c", values=["x", "y"]).config
        index, branch = find_branch(config, "y")
        assert index == 1 and branch.id == "y"
        assert find_branch(config, "true") is None


class TestGeometry:
    """Branch offsets and child placement."""

    def test_default_offsets_are_centered(self):
        assert default_offsets(2, 220) == [-110, 110]
        assert default_offsets(3, 220) == [-220, 0, 220]
        assert default_offsets(1, 220) == [0]

    def test_unconnected_branches_use_defaults(self, config):
        parent = conditional("c", x=400, y=100)
        placements = compute_branch_layout(parent, [parent], [], config)
        assert [p.offset for p in placements] == [-110, 110]
        assert all(not p.is_connected for p in placements)
        assert all(p.drop_distance == config.unconnected_branch_height for p in placements)

    def test_connected_branch_follows_child(self, config):
        parent = conditional("c", x=400, y=100)
        child = action("t", x=250, y=500)
        placements = compute_branch_layout(parent, [parent, child], [edge("c", "t", "true")], config)
        true_branch = placements[0]
        assert true_branch.is_connected and true_branch.child_id == "t"
        assert true_branch.offset == -150
        assert true_branch.drop_distance == 500 - 100 - config.node_height
        assert placements[1].offset == 110

    def test_close_child_keeps_minimum_gap(self, config):
        parent = conditional("c", x=0, y=0)
        child = action("t", x=0, y=60)
        placements = compute_branch_layout(parent, [parent, child], [edge("c", "t", "true")], config)
        assert placements[0].drop_distance == config.min_vertical_gap

    def test_child_position_for_branch(self, config):
        parent = conditional("c", x=400, y=300)
        assert branch_child_position(parent, "true", config) == Position(x=290, y=650)
        assert branch_child_position(parent, "false", config) == Position(x=510, y=650)
        assert branch_child_position(parent, "nope", config) is None

    def test_multi_value_positions_follow_declaration_order(self, config):
        parent = conditional("c", x=0, y=0, values=["x", "y"])
        xs = [branch_child_position(parent, h, config).x for h in ("x", "y", "else")]
        assert xs == [-220, 0, 220]


class TestAncestry:
    """Nearest enclosing branch of a node."""

    def test_finds_branch_through_chain(self):
        nodes = [conditional("c"), action("t"), action("t2")]
        edges = [edge("c", "t", "false"), edge("t", "t2")]
        assert find_branch_ancestry("t2", nodes, edges) == ("c", "false")

    def test_none_outside_branches(self):
        nodes = [action("a"), action("b")]
        assert find_branch_ancestry("b", nodes, [edge("a", "b")]) is None

    def test_cycle_terminates(self):
        nodes = [action("a"), action("b")]
        edges = [edge("a", "b"), edge("b", "a")]
        assert find_branch_ancestry("a", nodes, edges) is None

    def test_branch_color(self):
        cond = conditional("c")
        assert branch_color(cond, "true") == TRUE_COLOR
        assert branch_color(cond, None) is None
        assert branch_color(action("a"), "true") is None
