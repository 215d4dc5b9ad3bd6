"""Tests for the graph document store and its deletion policy."""

import pytest

from flowedit.workflow import (
    DanglingReferenceError,
    DuplicateIdError,
    EdgeKind,
    GraphDocumentStore,
    Position,
    WorkflowDocument,
)

from tests.factories import action, conditional, edge, edge_pairs, loop


def _store(nodes, edges=()):
    s = GraphDocumentStore()
    s.replace_document(nodes, list(edges))
    return s


class TestMutations:
    """Atomic mutations and the change signal."""

    def test_add_node_rejects_duplicate_id(self, store):
        store.add_node(action("a"))
        with pytest.raises(DuplicateIdError):
            store.add_node(action("a"))

    def test_returned_nodes_are_copies(self, store):
        store.add_node(action("a"))
        node = store.get_node("a")
        node.config.label = "changed"
        assert store.get_node("a").config.label == "a"

    def test_connect_unknown_endpoint_raises(self, store):
        store.add_node(action("a"))
        with pytest.raises(DanglingReferenceError):
            store.connect("a", "ghost")
        with pytest.raises(DanglingReferenceError):
            store.connect("ghost", "a")

    def test_connect_from_branch_uses_step_edges(self, store):
        store.add_node(conditional("c"))
        store.add_node(action("t"))
        created = store.connect("c", "t", "true")
        assert created.kind is EdgeKind.STEP
        assert created.id == "c-true-t"

    def test_update_node_merges_config(self, store):
        store.add_node(action("a"))
        assert store.update_node("a", {"label": "Fetch user"}) is True
        assert store.get_node("a").config.label == "Fetch user"
        assert store.get_node("a").config.node_type_ref == "http-request"

    def test_update_unknown_node_is_noop(self, store):
        assert store.update_node("ghost", {"label": "x"}) is False

    def test_toggle_node_enabled(self, store):
        store.add_node(action("a"))
        store.toggle_node_enabled("a")
        assert store.get_node("a").config.disabled is True
        store.toggle_node_enabled("a")
        assert store.get_node("a").config.disabled is False

    def test_move_nodes_emits_only_on_change(self, store):
        store.add_node(action("a", x=10, y=20))
        generation = store.generation
        assert store.move_nodes({"a": Position(x=10, y=20)}) is False
        assert store.generation == generation
        assert store.move_nodes({"a": Position(x=50, y=20)}) is True
        assert store.get_node("a").position.x == 50

    def test_remove_node_drops_touching_edges(self):
        s = _store([action("a"), action("b"), action("c")], [edge("a", "b"), edge("b", "c")])
        assert s.remove_node("b") is True
        assert s.edges == []
        assert s.remove_node("b") is False

    def test_select_node_ignores_unknown_ids(self, store):
        store.add_node(action("a"))
        store.select_node("a")
        assert store.selected_node_id == "a"
        store.select_node("ghost")
        assert store.selected_node_id is None


class TestSingleOutputInvariant:
    """At most one edge per (source, source_handle)."""

    def test_second_connect_on_same_output_is_noop(self, store):
        for nid in ("a", "b", "c"):
            store.add_node(action(nid))
        first = store.connect("a", "b")
        second = store.connect("a", "c")
        assert second.id == first.id
        assert edge_pairs(store.edges) == {("a", None, "b")}

    def test_distinct_handles_are_distinct_outputs(self, store):
        store.add_node(conditional("c"))
        store.add_node(action("t"))
        store.add_node(action("f"))
        store.add_node(action("x"))
        store.connect("c", "t", "true")
        store.connect("c", "f", "false")
        store.connect("c", "x", "true")
        assert edge_pairs(store.edges) == {("c", "true", "t"), ("c", "false", "f")}
        assert store.has_connection("c", "true")
        assert not store.has_connection("c", None)


class TestObservation:
    """Change notifications, batching and suppression."""

    def test_each_mutation_emits_once(self, store):
        changes = []
        store.subscribe(changes.append)
        store.add_node(action("a"))
        store.add_node(action("b"))
        store.connect("a", "b")
        assert [c.reason for c in changes] == ["add_node", "add_node", "connect"]
        assert [c.generation for c in changes] == [1, 2, 3]
        assert not any(c.suppressed for c in changes)

    def test_batch_coalesces(self, store):
        changes = []
        store.subscribe(changes.append)
        with store.batch():
            store.add_node(action("a"))
            store.add_node(action("b"))
            store.connect("a", "b")
        assert len(changes) == 1
        assert changes[0].reason == "add_node+connect"

    def test_suppressed_changes_are_flagged(self, store):
        changes = []
        store.subscribe(changes.append)
        with store.suppress():
            assert store.is_restoring
            store.add_node(action("a"))
        assert not store.is_restoring
        assert changes[0].suppressed is True

    def test_unsubscribe(self, store):
        changes = []
        unsubscribe = store.subscribe(changes.append)
        unsubscribe()
        store.add_node(action("a"))
        assert changes == []

    def test_selection_emits_nothing(self, store):
        store.add_node(action("a"))
        changes = []
        store.subscribe(changes.append)
        store.select_node("a")
        assert changes == []


class TestDeleteOnly:
    """Deleting a single node re-links around it."""

    def test_reconnect_on_delete_keeps_incoming_handle(self):
        s = _store(
            [conditional("a"), action("x"), action("b")],
            [edge("a", "x", "true"), edge("x", "b")],
        )
        assert s.delete_node("x") is True
        assert s.get_node("x") is None
        assert edge_pairs(s.edges) == {("a", "true", "b")}

    def test_first_node_promotion(self):
        s = _store([action("a", first=True), action("b")], [edge("a", "b")])
        s.delete_node("a")
        assert s.get_node("b").config.is_first_node is True

    def test_first_node_without_successor_promotes_a_root(self):
        s = _store([action("a", first=True), action("b"), action("c")], [edge("b", "c")])
        s.delete_node("a")
        assert s.get_node("b").config.is_first_node is True
        assert not s.get_node("c").config.is_first_node

    def test_delete_leaf(self):
        s = _store([action("a"), action("b")], [edge("a", "b")])
        s.delete_node("b")
        assert s.edges == []
        assert [n.id for n in s.nodes] == ["a"]

    def test_delete_unknown_node_is_noop(self, store):
        changes = []
        store.subscribe(changes.append)
        assert store.delete_node("ghost") is False
        assert changes == []

    def test_delete_clears_selection(self):
        s = _store([action("a"), action("b")], [edge("a", "b")])
        s.select_node("b")
        s.delete_node("b")
        assert s.selected_node_id is None

    def test_deleting_loop_releases_children(self):
        child = action("c").with_config({"parent_loop_id": "l"})
        s = _store([loop("l"), child])
        s.delete_node("l")
        assert s.get_node("c").config.parent_loop_id is None

    def test_delete_emits_one_change(self):
        s = _store(
            [action("a"), action("x"), action("b")],
            [edge("a", "x"), edge("x", "b")],
        )
        changes = []
        s.subscribe(changes.append)
        s.delete_node("x")
        assert len(changes) == 1


class TestDeleteChain:
    """Deleting a node together with everything downstream."""

    def test_removes_downstream_nodes(self):
        s = _store(
            [action("r", first=True), conditional("c"), action("t"), action("f"), action("t2")],
            [edge("r", "c"), edge("c", "t", "true"), edge("c", "f", "false"), edge("t", "t2")],
        )
        s.delete_node("c", chain=True)
        assert [n.id for n in s.nodes] == ["r"]
        assert s.edges == []

    def test_first_node_promotion_on_chain_delete(self):
        s = _store(
            [action("a", first=True), action("b"), action("other")],
            [edge("a", "b")],
        )
        s.delete_node("a", chain=True)
        assert s.get_node("other").config.is_first_node is True
        assert s.get_node("b") is None

    def test_collect_chain_terminates_on_cycles(self):
        s = _store([action("a"), action("b"), action("c")])
        s.set_edges([edge("a", "b"), edge("b", "c"), edge("c", "a")])
        assert s.collect_chain("a") == ["a", "b", "c"]
        s.delete_node("b", chain=True)
        assert s.nodes == []


class TestLoadDocument:
    """Loading repairs structural problems instead of rejecting."""

    def test_drops_dangling_and_duplicate_output_edges(self, store):
        doc = WorkflowDocument(
            nodes=[action("a", first=True), action("b"), action("c")],
            edges=[edge("a", "b"), edge("a", "c"), edge("b", "ghost")],
        )
        repairs = store.load_document(doc)
        assert len(repairs) == 2
        assert edge_pairs(store.edges) == {("a", None, "b")}

    def test_promotes_root_when_no_first_node(self, store):
        doc = WorkflowDocument(nodes=[action("b"), action("a")], edges=[edge("a", "b")])
        repairs = store.load_document(doc)
        assert store.get_node("a").config.is_first_node is True
        assert repairs == ["Promoted a to first node"]

    def test_clean_document_needs_no_repairs(self, store):
        doc = WorkflowDocument(nodes=[action("a", first=True)], edges=[])
        assert store.load_document(doc) == []
        assert store.document.to_payload() == doc.to_payload()


class TestEdgeRemoval:
    """Dropping a single wire frees its output."""

    def test_disconnect_frees_output(self):
        s = _store([conditional("c"), action("t"), action("u")], [edge("c", "t", "true")])
        changes = []
        s.subscribe(changes.append)
        assert s.disconnect("c", "true") is True
        assert s.edges == []
        assert len(changes) == 1 and changes[0].reason == "remove_edge"
        assert s.connect("c", "u", "true").target == "u"

    def test_disconnect_free_output_is_noop(self):
        s = _store([action("a"), action("b")], [edge("a", "b")])
        assert s.disconnect("b") is False
        assert s.disconnect("a", "true") is False
        assert len(s.edges) == 1

    def test_remove_edge_by_id(self):
        s = _store([action("a"), action("b")], [edge("a", "b")])
        assert s.remove_edge("a-b") is True
        assert s.remove_edge("a-b") is False
        assert s.get_node("a") is not None and s.get_node("b") is not None
