"""
Insertion & Connection Protocol.

Turns "drop node type T under source S (optionally on branch H)"
into one atomic add-node + add-edge on the document store:

    1. Resolve the plugin descriptor (unknown type → no-op).
    2. Map it to a node kind.
    3. Place the node: default anchor for a new root, straight below
       a non-branching source, or under the branch's offset for a
       decision node.
    4-5. Add the node and connect it, as a single store update.
    6. Occupied outputs are checked up front, so a rejected insertion
       leaves no partial state.
    7. Insertions on a binary ``true`` / ``false`` branch schedule the
       collision resolver on a short deferred task.
"""

from __future__ import annotations

import asyncio
import uuid
from logging import getLogger
from typing import Callable, Optional, Tuple

from flowedit.config import EditorConfig
from flowedit.workflow.branch_layout import (
    branch_child_position,
    branch_color,
    find_branch,
    find_branch_ancestry,
    is_binary,
)
from flowedit.workflow.collision import resolve_branch_overlaps
from flowedit.workflow.debounce import Debouncer
from flowedit.workflow.errors import DanglingReferenceError
from flowedit.workflow.plugins import PluginCatalog, PluginDescriptor
from flowedit.workflow.workflow_model import (
    FALSE_HANDLE,
    TRUE_HANDLE,
    Edge,
    Node,
    NodeConfig,
    NodeKind,
    Position,
)
from flowedit.workflow.workflow_store import GraphDocumentStore

logger = getLogger(__name__)

_ID_ATTEMPTS = 5

_LOOP_KINDS = (NodeKind.LOOP, NodeKind.FOR_EACH_LOOP)


def new_node_id() -> str:
    return f"node-{uuid.uuid4().hex[:12]}"


class NodeInserter:
    """Places new nodes and wires them into the graph."""

    def __init__(
        self,
        store: GraphDocumentStore,
        catalog: PluginCatalog,
        config: Optional[EditorConfig] = None,
        id_factory: Optional[Callable[[], str]] = None,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> None:
        self._store = store
        self._catalog = catalog
        self._config = config or EditorConfig.get_default_instance()
        self._id_factory = id_factory or new_node_id
        self._collision = Debouncer(
            self._config.collision_delay, self.resolve_layout, loop,
        )

    @property
    def layout_pending(self) -> bool:
        return self._collision.pending

    # ========================================================================
    # Public API
    # ========================================================================

    def insert_node(
        self,
        type_ref: str,
        source_node_id: Optional[str] = None,
        source_handle: Optional[str] = None,
    ) -> Optional[Node]:
        """Insert a node of ``type_ref`` below ``source_node_id``.

        Returns the new node, or None when the insertion was rejected
        (unknown type, unknown branch, or the output is already used).

        Raises:
            DanglingReferenceError: If ``source_node_id`` does not exist.
        """
        descriptor = self._catalog.lookup(type_ref)
        if descriptor is None:
            logger.debug(f"Insertion skipped, unknown node type: {type_ref}")
            return None

        source: Optional[Node] = None
        if source_node_id is not None:
            source = self._store.get_node(source_node_id)
            if source is None:
                raise DanglingReferenceError(source_node_id)

            accepted, source_handle = _output_handle(source, source_handle)
            if not accepted:
                logger.debug(
                    f"Insertion skipped, {source.id} has no branch '{source_handle}'"
                )
                return None

            if self._store.has_connection(source.id, source_handle):
                logger.debug(
                    f"Insertion skipped, output '{source_handle or 'default'}' "
                    f"of {source.id} is already connected"
                )
                return None

        node = self._insert(descriptor, source, source_handle)
        if source is not None:
            self._schedule_collision(source, source_handle)
        return node

    def connect_nodes(
        self,
        source_node_id: str,
        target_node_id: str,
        source_handle: Optional[str] = None,
    ) -> Optional[Edge]:
        """Wire two existing nodes, as when a handle is dragged onto a node.

        A target wired straight to a decision-node branch is moved under
        that branch. Returns None when the connection is rejected (self
        loop, unknown branch, or the output is already used).

        Raises:
            DanglingReferenceError: If either node does not exist.
        """
        source = self._store.get_node(source_node_id)
        if source is None:
            raise DanglingReferenceError(source_node_id)
        if not self._store.has_node(target_node_id):
            raise DanglingReferenceError(target_node_id)
        if source.id == target_node_id:
            return None

        accepted, source_handle = _output_handle(source, source_handle)
        if not accepted or self._store.has_connection(source.id, source_handle):
            logger.debug(
                f"Connection skipped, output '{source_handle or 'default'}' "
                f"of {source.id} is unknown or already connected"
            )
            return None

        with self._store.batch():
            edge = self._store.connect(
                source.id,
                target_node_id,
                source_handle,
                color=self._edge_color(source, source_handle),
            )
            if source.kind.is_branching and source_handle is not None:
                placed = branch_child_position(source, source_handle, self._config)
                if placed is not None:
                    self._store.move_nodes({target_node_id: placed})

        logger.info(f"Connected {edge.id}")
        self._schedule_collision(source, source_handle)
        return edge

    def append_to_chain(
        self, type_ref: str, position: Optional[Position] = None,
    ) -> Optional[Node]:
        """Palette drop onto the canvas: link the new node under the chain tail.

        The tail is the most recently added non-branching node without
        an outgoing edge that is not inside a loop. With no tail the
        node becomes a new root (at ``position`` if given).
        """
        descriptor = self._catalog.lookup(type_ref)
        if descriptor is None:
            logger.debug(f"Append skipped, unknown node type: {type_ref}")
            return None

        tail = self._chain_tail()
        if tail is None:
            return self._insert(descriptor, None, None, position)

        placed = None
        if position is not None:
            placed = Position(x=position.x, y=tail.position.y + self._config.vertical_offset)
        return self._insert(descriptor, tail, None, placed)

    def add_to_loop(self, loop_id: str, type_ref: str) -> Optional[Node]:
        """Place a new node inside a loop container (no edge).

        Raises:
            DanglingReferenceError: If ``loop_id`` does not exist.
            ValueError: If ``loop_id`` is not a loop node.
        """
        loop_node = self._store.get_node(loop_id)
        if loop_node is None:
            raise DanglingReferenceError(loop_id)
        if loop_node.kind not in _LOOP_KINDS:
            raise ValueError(f"Node '{loop_id}' is a {loop_node.kind.value} node, not a loop")

        descriptor = self._catalog.lookup(type_ref)
        if descriptor is None:
            logger.debug(f"Loop insertion skipped, unknown node type: {type_ref}")
            return None

        node = self._build_node(
            descriptor,
            loop_node.position.shifted(
                dx=self._config.loop_child_offset_x,
                dy=self._config.loop_child_offset_y,
            ),
        )
        node.config.parent_loop_id = loop_id
        return self._store.add_node(node)

    def resolve_layout(self) -> bool:
        """Run the collision resolver now; True if any node moved."""
        self._collision.cancel()
        moves = resolve_branch_overlaps(
            self._store.nodes, self._store.edges, self._config,
        )
        if not moves:
            return False
        return self._store.move_nodes(moves)

    def flush(self) -> bool:
        """Run a deferred collision pass immediately if one is pending."""
        return self._collision.flush()

    def cancel(self) -> None:
        self._collision.cancel()

    # ========================================================================
    # Internals
    # ========================================================================

    def _insert(
        self,
        descriptor: PluginDescriptor,
        source: Optional[Node],
        source_handle: Optional[str],
        position: Optional[Position] = None,
    ) -> Node:
        if position is None:
            position = self._position_for(source, source_handle)
        is_first = source is None and self._store.node_count == 0
        node = self._build_node(descriptor, position, is_first=is_first)

        with self._store.batch():
            created = self._store.add_node(node)
            if source is not None:
                self._store.connect(
                    source.id,
                    created.id,
                    source_handle,
                    color=self._edge_color(source, source_handle),
                )

        logger.info(
            f"Inserted {descriptor.type_ref} node {created.id}"
            + (f" under {source.id}" if source is not None else " as root")
            + (f" on branch '{source_handle}'" if source_handle else "")
        )
        return created

    def _schedule_collision(self, source: Node, source_handle: Optional[str]) -> None:
        if source_handle in (TRUE_HANDLE, FALSE_HANDLE) and is_binary(source):
            self._collision.trigger()

    def _position_for(self, source: Optional[Node], source_handle: Optional[str]) -> Position:
        cfg = self._config
        if source is None:
            return Position(x=cfg.anchor_x, y=cfg.anchor_y)
        if source.kind.is_branching and source_handle is not None:
            placed = branch_child_position(source, source_handle, cfg)
            if placed is not None:
                return placed
        return Position(x=source.position.x, y=source.position.y + cfg.vertical_offset)

    def _build_node(
        self,
        descriptor: PluginDescriptor,
        position: Position,
        is_first: bool = False,
    ) -> Node:
        return Node(
            id=self._next_id(),
            kind=descriptor.node_kind,
            position=position,
            config=NodeConfig(
                label=descriptor.display_name,
                node_type_ref=descriptor.type_ref,
                category=descriptor.category,
                color=descriptor.color,
                is_first_node=is_first,
            ),
        )

    def _next_id(self) -> str:
        node_id = self._id_factory()
        for _ in range(_ID_ATTEMPTS):
            if not self._store.has_node(node_id):
                break
            node_id = self._id_factory()
        return node_id

    def _edge_color(self, source: Node, source_handle: Optional[str]) -> Optional[str]:
        color = branch_color(source, source_handle)
        if color is not None:
            return color
        ancestry = find_branch_ancestry(source.id, self._store.nodes, self._store.edges)
        if ancestry is None:
            return None
        conditional = self._store.get_node(ancestry[0])
        return branch_color(conditional, ancestry[1]) if conditional is not None else None

    def _chain_tail(self) -> Optional[Node]:
        nodes = self._store.nodes
        sources = {e.source for e in self._store.edges}
        candidates = [
            n for n in nodes
            if n.id not in sources
            and not n.kind.is_branching
            and n.config.parent_loop_id is None
        ]
        return candidates[-1] if candidates else None


def _output_handle(source: Node, source_handle: Optional[str]) -> Tuple[bool, Optional[str]]:
    """Normalise the output a new edge leaves ``source`` through.

    Non-branching sources have a single unnamed output; decision nodes
    need a handle naming one of their current branches.
    """
    if not source.kind.is_branching:
        return True, None
    if source_handle is None or find_branch(source.config, source_handle) is None:
        return False, source_handle
    return True, source_handle
