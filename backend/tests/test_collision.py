"""Tests for the branch overlap resolver."""

from flowedit.workflow import Position, resolve_branch_overlaps
from flowedit.workflow.collision import subtree_footprint

from tests.factories import action, conditional, edge


def _apply(nodes, moves):
    return [n.with_position(moves[n.id]) if n.id in moves else n for n in nodes]


class TestFootprint:
    def test_span_includes_node_width(self):
        positions = {"a": Position(x=10), "b": Position(x=300)}
        assert subtree_footprint({"a", "b"}, positions, 200) == (10, 500)

    def test_empty_set(self):
        assert subtree_footprint(set(), {}, 200) is None


class TestResolveBranchOverlaps:
    """Separation of true / false subtrees."""

    def _overlapping(self):
        # true subtree spans 290..600, false subtree 510..710
        nodes = [
            conditional("c", x=400, y=0),
            action("t", x=290, y=350),
            action("t2", x=400, y=550),
            action("f", x=510, y=350),
        ]
        edges = [edge("c", "t", "true"), edge("t", "t2"), edge("c", "f", "false")]
        return nodes, edges

    def test_separated_branches_are_left_alone(self, config):
        nodes = [
            conditional("c", x=400, y=0),
            action("t", x=290, y=350),
            action("f", x=510, y=350),
        ]
        edges = [edge("c", "t", "true"), edge("c", "f", "false")]
        assert resolve_branch_overlaps(nodes, edges, config) == {}

    def test_narrower_side_is_pushed_out(self, config):
        nodes, edges = self._overlapping()
        moves = resolve_branch_overlaps(nodes, edges, config)
        # overlap 90 + margin 40; false side is narrower and moves right
        assert moves == {"f": Position(x=640, y=350)}

    def test_narrower_true_side_moves_left(self, config):
        nodes = [
            conditional("c", x=400, y=0),
            action("t", x=450, y=350),
            action("f", x=400, y=350),
            action("f2", x=700, y=550),
        ]
        edges = [edge("c", "t", "true"), edge("c", "f", "false"), edge("f", "f2")]
        moves = resolve_branch_overlaps(nodes, edges, config)
        # true 450..650 vs false 400..900: overlap 250 + 40
        assert moves == {"t": Position(x=160, y=350)}

    def test_whole_subtree_moves_together(self, config):
        nodes = [
            conditional("c", x=400, y=0),
            action("t", x=300, y=350),
            action("f", x=350, y=350),
            action("f2", x=350, y=550),
        ]
        edges = [edge("c", "t", "true"), edge("c", "f", "false"), edge("f", "f2")]
        moves = resolve_branch_overlaps(nodes, edges, config)
        # equal widths: the false side moves
        assert set(moves) == {"f", "f2"}
        assert moves["f"].x - 350 == moves["f2"].x - 350

    def test_resolution_is_idempotent(self, config):
        nodes, edges = self._overlapping()
        first = _apply(nodes, resolve_branch_overlaps(nodes, edges, config))
        assert resolve_branch_overlaps(first, edges, config) == {}

    def test_shared_descendants_do_not_count(self, config):
        nodes = [
            conditional("c", x=400, y=0),
            action("t", x=290, y=350),
            action("f", x=510, y=350),
            action("join", x=400, y=600),
        ]
        edges = [
            edge("c", "t", "true"),
            edge("c", "f", "false"),
            edge("t", "join"),
            edge("f", "join"),
        ]
        assert resolve_branch_overlaps(nodes, edges, config) == {}

    def test_multi_value_nodes_are_skipped(self, config):
        nodes = [
            conditional("c", x=400, y=0, values=["x", "y"]),
            action("a", x=400, y=350),
            action("b", x=400, y=350),
        ]
        edges = [edge("c", "a", "x"), edge("c", "b", "y")]
        assert resolve_branch_overlaps(nodes, edges, config) == {}

    def test_single_connected_branch_is_skipped(self, config):
        nodes = [conditional("c", x=400, y=0), action("t", x=400, y=350)]
        assert resolve_branch_overlaps(nodes, [edge("c", "t", "true")], config) == {}
