"""
Graph Document Store — the canonical ``nodes`` / ``edges`` of the
document being edited.

Every mutation goes through this class. Each mutation bumps the
document ``generation`` and emits exactly one ``DocumentChange`` to
subscribers (history capture, autosave, the renderer). Mutations made
inside ``suppress()`` are flagged so observers can tell a history
restore apart from a genuine user edit.
"""

from __future__ import annotations

from collections import deque
from contextlib import contextmanager
from dataclasses import dataclass
from logging import getLogger
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Set

from flowedit.workflow.errors import DanglingReferenceError, DuplicateIdError
from flowedit.workflow.workflow_model import (
    Edge,
    EdgeKind,
    Node,
    Position,
    WorkflowDocument,
)

logger = getLogger(__name__)


@dataclass(frozen=True)
class DocumentChange:
    """Emitted once per (batched) mutation."""
    generation: int
    reason: str
    suppressed: bool


Listener = Callable[[DocumentChange], None]


class GraphDocumentStore:
    """In-memory owner of the workflow document."""

    def __init__(self, document: Optional[WorkflowDocument] = None) -> None:
        self._nodes: List[Node] = []
        self._edges: List[Edge] = []
        self._selected_node_id: Optional[str] = None
        self._generation = 0
        self._suppress_depth = 0
        self._listeners: List[Listener] = []

        self._batch_depth = 0
        self._batch_reasons: List[str] = []
        self._batch_suppressed = True

        if document is not None:
            self.load_document(document)

    # ========================================================================
    # Read access
    # ========================================================================

    @property
    def nodes(self) -> List[Node]:
        return [n.model_copy(deep=True) for n in self._nodes]

    @property
    def edges(self) -> List[Edge]:
        return [e.model_copy(deep=True) for e in self._edges]

    @property
    def document(self) -> WorkflowDocument:
        """Deep copy of the current ``{nodes, edges}``."""
        return WorkflowDocument(nodes=self.nodes, edges=self.edges)

    @property
    def selected_node_id(self) -> Optional[str]:
        return self._selected_node_id

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def is_restoring(self) -> bool:
        return self._suppress_depth > 0

    def get_node(self, node_id: str) -> Optional[Node]:
        node = self._find(node_id)
        return node.model_copy(deep=True) if node is not None else None

    def has_node(self, node_id: str) -> bool:
        return self._find(node_id) is not None

    @property
    def node_count(self) -> int:
        return len(self._nodes)

    def get_edges_from(self, node_id: str) -> List[Edge]:
        return [e.model_copy() for e in self._edges if e.source == node_id]

    def get_edges_to(self, node_id: str) -> List[Edge]:
        return [e.model_copy() for e in self._edges if e.target == node_id]

    def find_edge(self, source: str, source_handle: Optional[str] = None) -> Optional[Edge]:
        for e in self._edges:
            if e.source == source and e.source_handle == source_handle:
                return e.model_copy()
        return None

    def has_connection(self, source: str, source_handle: Optional[str] = None) -> bool:
        """True if the ``(source, source_handle)`` output is already used."""
        return any(
            e.source == source and e.source_handle == source_handle
            for e in self._edges
        )

    # ========================================================================
    # Observation
    # ========================================================================

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a change listener. Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    @contextmanager
    def suppress(self) -> Iterator[None]:
        """Mark every mutation inside the block as restore-induced."""
        self._suppress_depth += 1
        try:
            yield
        finally:
            self._suppress_depth -= 1

    @contextmanager
    def batch(self) -> Iterator[None]:
        """Coalesce the mutations inside the block into one notification."""
        self._batch_depth += 1
        try:
            yield
        finally:
            self._batch_depth -= 1
            if self._batch_depth == 0 and self._batch_reasons:
                reason = "+".join(dict.fromkeys(self._batch_reasons))
                suppressed = self._batch_suppressed
                self._batch_reasons = []
                self._batch_suppressed = True
                self._emit(reason, suppressed)

    # ========================================================================
    # Atomic mutations
    # ========================================================================

    def add_node(self, node: Node) -> Node:
        """Insert a node.

        Raises:
            DuplicateIdError: If a node with the same id exists.
        """
        if self._find(node.id) is not None:
            raise DuplicateIdError(node.id)
        stored = node.model_copy(deep=True)
        self._nodes.append(stored)
        logger.debug(f"Node added: {stored.config.label or stored.kind.value} ({stored.id})")
        self._changed("add_node")
        return stored.model_copy(deep=True)

    def remove_node(self, node_id: str) -> bool:
        """Remove a node and every edge touching it (no cascade)."""
        if self._find(node_id) is None:
            logger.debug(f"remove_node ignored, unknown node: {node_id}")
            return False
        self._nodes = [n for n in self._nodes if n.id != node_id]
        self._edges = [
            e for e in self._edges if e.source != node_id and e.target != node_id
        ]
        if self._selected_node_id == node_id:
            self._selected_node_id = None
        self._changed("remove_node")
        return True

    def connect(
        self,
        source: str,
        target: str,
        source_handle: Optional[str] = None,
        kind: Optional[EdgeKind] = None,
        color: Optional[str] = None,
    ) -> Edge:
        """Connect ``source`` → ``target``.

        If the ``(source, source_handle)`` output is already used the
        existing edge is returned unchanged.

        Raises:
            DanglingReferenceError: If either endpoint does not exist.
        """
        source_node = self._find(source)
        if source_node is None:
            raise DanglingReferenceError(source)
        if self._find(target) is None:
            raise DanglingReferenceError(target)

        for existing in self._edges:
            if existing.source == source and existing.source_handle == source_handle:
                logger.debug(
                    f"Output '{source_handle or 'default'}' of {source} already connected "
                    f"to {existing.target}"
                )
                return existing.model_copy()

        if kind is None:
            branching = source_node.kind.is_branching and source_handle is not None
            kind = EdgeKind.STEP if branching else EdgeKind.STRAIGHT

        edge = Edge(
            source=source,
            target=target,
            source_handle=source_handle,
            kind=kind,
            color=color,
        )
        self._edges.append(edge)
        logger.debug(f"Edge added: {edge.id}")
        self._changed("connect")
        return edge.model_copy()

    def disconnect(self, source: str, source_handle: Optional[str] = None) -> bool:
        """Remove the edge leaving the ``(source, source_handle)`` output, freeing it."""
        for existing in self._edges:
            if existing.source == source and existing.source_handle == source_handle:
                return self.remove_edge(existing.id)
        logger.debug(f"disconnect ignored, output '{source_handle or 'default'}' of {source} is free")
        return False

    def remove_edge(self, edge_id: str) -> bool:
        """Remove a single edge by id."""
        remaining = [e for e in self._edges if e.id != edge_id]
        if len(remaining) == len(self._edges):
            logger.debug(f"remove_edge ignored, unknown edge: {edge_id}")
            return False
        self._edges = remaining
        logger.debug(f"Edge removed: {edge_id}")
        self._changed("remove_edge")
        return True

    def update_node(self, node_id: str, partial_config: Dict[str, Any]) -> bool:
        """Shallow-merge ``partial_config`` into the node's config."""
        idx = self._index(node_id)
        if idx is None:
            logger.debug(f"update_node ignored, unknown node: {node_id}")
            return False
        self._nodes[idx] = self._nodes[idx].with_config(partial_config)
        self._changed("update_node")
        return True

    def toggle_node_enabled(self, node_id: str) -> bool:
        node = self._find(node_id)
        if node is None:
            return False
        return self.update_node(node_id, {"disabled": not node.config.disabled})

    def move_nodes(self, positions: Dict[str, Position]) -> bool:
        """Write node positions. Emits nothing when no coordinate changed."""
        changed = False
        for idx, node in enumerate(self._nodes):
            pos = positions.get(node.id)
            if pos is None:
                continue
            if pos.x != node.position.x or pos.y != node.position.y:
                self._nodes[idx] = node.with_position(Position(x=pos.x, y=pos.y))
                changed = True
        if changed:
            self._changed("move_nodes")
        return changed

    def select_node(self, node_id: Optional[str]) -> None:
        """Selection is view state; it is snapshotted but emits no change."""
        if node_id is not None and self._find(node_id) is None:
            node_id = None
        self._selected_node_id = node_id

    # ========================================================================
    # Bulk setters
    # ========================================================================

    def set_nodes(self, nodes: Iterable[Node]) -> None:
        self._nodes = [n.model_copy(deep=True) for n in nodes]
        live = {n.id for n in self._nodes}
        if self._selected_node_id not in live:
            self._selected_node_id = None
        self._changed("set_nodes")

    def set_edges(self, edges: Iterable[Edge]) -> None:
        self._edges = [e.model_copy(deep=True) for e in edges]
        self._changed("set_edges")

    def replace_document(self, nodes: Iterable[Node], edges: Iterable[Edge]) -> None:
        """Replace nodes and edges as one update."""
        with self.batch():
            self.set_nodes(nodes)
            self.set_edges(edges)

    def load_document(self, document: WorkflowDocument) -> List[str]:
        """Replace the document with a loaded one, repairing what it can.

        Returns the list of repairs that were applied.
        """
        repairs: List[str] = []
        nodes = [n.model_copy(deep=True) for n in document.nodes]

        unique: List[Node] = []
        ids: Set[str] = set()
        for n in nodes:
            if n.id in ids:
                repairs.append(f"Dropped duplicate node {n.id}")
                continue
            ids.add(n.id)
            unique.append(n)

        edges: List[Edge] = []
        outputs = set()
        for e in document.edges:
            if e.source not in ids or e.target not in ids:
                repairs.append(f"Dropped dangling edge {e.id}")
                continue
            if e.output_key in outputs:
                repairs.append(f"Dropped duplicate output edge {e.id}")
                continue
            outputs.add(e.output_key)
            edges.append(e.model_copy(deep=True))

        if unique and not any(n.config.is_first_node for n in unique):
            root = _first_root(unique, edges)
            if root is not None:
                unique = _promote(unique, root.id)
                repairs.append(f"Promoted {root.id} to first node")

        for message in repairs:
            logger.warning(f"Document repair: {message}")

        self._selected_node_id = None
        self.replace_document(unique, edges)
        return repairs

    def clear(self) -> None:
        self._selected_node_id = None
        self.replace_document([], [])

    # ========================================================================
    # Deletion policy
    # ========================================================================

    def delete_node(self, node_id: str, chain: bool = False) -> bool:
        """Delete a node, either alone (re-linking around it) or with its chain."""
        node = self._find(node_id)
        if node is None:
            logger.debug(f"delete_node ignored, unknown node: {node_id}")
            return False
        if chain:
            self._delete_chain(node)
        else:
            self._delete_only(node)
        return True

    def collect_chain(self, node_id: str) -> List[str]:
        """Ids of ``node_id`` and every node reachable through outgoing edges."""
        adjacency: Dict[str, List[str]] = {}
        for e in self._edges:
            adjacency.setdefault(e.source, []).append(e.target)

        order: List[str] = []
        visited: Set[str] = {node_id}
        queue = deque([node_id])
        while queue:
            current = queue.popleft()
            order.append(current)
            for target in adjacency.get(current, []):
                if target not in visited:
                    visited.add(target)
                    queue.append(target)
        return order

    def _delete_only(self, node: Node) -> None:
        incoming = [e for e in self._edges if e.target == node.id]
        outgoing = [e for e in self._edges if e.source == node.id]

        edges = [e for e in self._edges if e.source != node.id and e.target != node.id]
        taken = {e.id for e in edges}
        for inc in incoming:
            for out in outgoing:
                if inc.source == out.target:
                    continue
                relink = Edge(
                    source=inc.source,
                    target=out.target,
                    source_handle=inc.source_handle,
                    kind=inc.kind,
                    color=inc.color,
                )
                if relink.id in taken:
                    continue
                taken.add(relink.id)
                edges.append(relink)

        nodes = [n for n in self._nodes if n.id != node.id]
        if node.config.is_first_node:
            if outgoing:
                nodes = _promote(nodes, outgoing[0].target)
            else:
                root = _first_root(nodes, edges)
                if root is not None:
                    nodes = _promote(nodes, root.id)
        nodes = _release_loop_children(nodes, {node.id})

        self._commit_deletion(nodes, edges, {node.id}, "delete_node")
        logger.info(
            f"Deleted node {node.id}; re-linked {len(incoming)} x {len(outgoing)} connection(s)"
        )

    def _delete_chain(self, node: Node) -> None:
        nodes = list(self._nodes)
        if node.config.is_first_node:
            outgoing = [e for e in self._edges if e.source == node.id]
            if outgoing:
                nodes = _promote(nodes, outgoing[0].target)

        doomed = set(self.collect_chain(node.id))
        lost_first = any(n.config.is_first_node for n in nodes if n.id in doomed)

        remaining = [n for n in nodes if n.id not in doomed]
        edges = [
            e for e in self._edges if e.source not in doomed and e.target not in doomed
        ]
        if lost_first and remaining and not any(n.config.is_first_node for n in remaining):
            root = _first_root(remaining, edges)
            if root is not None:
                remaining = _promote(remaining, root.id)
        remaining = _release_loop_children(remaining, doomed)

        self._commit_deletion(remaining, edges, doomed, "delete_chain")
        logger.info(f"Deleted chain of {len(doomed)} node(s) starting at {node.id}")

    def _commit_deletion(
        self, nodes: List[Node], edges: List[Edge], doomed: Set[str], reason: str,
    ) -> None:
        self._nodes = nodes
        self._edges = edges
        if self._selected_node_id in doomed:
            self._selected_node_id = None
        self._changed(reason)

    # ========================================================================
    # Internals
    # ========================================================================

    def _find(self, node_id: str) -> Optional[Node]:
        for n in self._nodes:
            if n.id == node_id:
                return n
        return None

    def _index(self, node_id: str) -> Optional[int]:
        for i, n in enumerate(self._nodes):
            if n.id == node_id:
                return i
        return None

    def _changed(self, reason: str) -> None:
        self._generation += 1
        suppressed = self._suppress_depth > 0
        if self._batch_depth > 0:
            self._batch_reasons.append(reason)
            self._batch_suppressed = self._batch_suppressed and suppressed
            return
        self._emit(reason, suppressed)

    def _emit(self, reason: str, suppressed: bool) -> None:
        change = DocumentChange(
            generation=self._generation, reason=reason, suppressed=suppressed,
        )
        for listener in list(self._listeners):
            listener(change)


def _promote(nodes: List[Node], node_id: str) -> List[Node]:
    return [
        n.with_config({"is_first_node": True}) if n.id == node_id else n
        for n in nodes
    ]


def _first_root(nodes: List[Node], edges: List[Edge]) -> Optional[Node]:
    """First node (in document order) with no incoming edge and no loop parent."""
    targets = {e.target for e in edges}
    for n in nodes:
        if n.id not in targets and n.config.parent_loop_id is None:
            return n
    return None


def _release_loop_children(nodes: List[Node], removed: Set[str]) -> List[Node]:
    return [
        n.with_config({"parent_loop_id": None})
        if n.config.parent_loop_id in removed else n
        for n in nodes
    ]
