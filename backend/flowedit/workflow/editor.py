"""
Workflow Editor — one object per open document.

Wires the document store to the insertion protocol, the history
manager and (optionally) the autosave scheduler, and exposes the
operations a canvas front-end calls.
"""

from __future__ import annotations

import asyncio
from logging import getLogger
from typing import Any, Callable, Dict, List, Optional

from flowedit.config import EditorConfig
from flowedit.workflow.autosave import AutosaveScheduler, SaveCallback
from flowedit.workflow.history import HistoryManager
from flowedit.workflow.insertion import NodeInserter
from flowedit.workflow.layout import Direction, auto_layout
from flowedit.workflow.plugins import PluginCatalog
from flowedit.workflow.workflow_model import Edge, Node, Position, WorkflowDocument
from flowedit.workflow.workflow_store import GraphDocumentStore

logger = getLogger(__name__)


class WorkflowEditor:
    """Facade over the store and its collaborators."""

    def __init__(
        self,
        catalog: PluginCatalog,
        config: Optional[EditorConfig] = None,
        save: Optional[SaveCallback] = None,
        loop: Optional[asyncio.AbstractEventLoop] = None,
        id_factory: Optional[Callable[[], str]] = None,
    ) -> None:
        self.config = config or EditorConfig.get_default_instance()
        self.store = GraphDocumentStore()
        self.inserter = NodeInserter(
            self.store, catalog, self.config, id_factory=id_factory, loop=loop,
        )
        self.history = HistoryManager(self.store, self.config, loop=loop)
        self.autosave: Optional[AutosaveScheduler] = None
        if save is not None:
            self.autosave = AutosaveScheduler(
                self.store, save, config=self.config, loop=loop,
            )

    # ── Document ──

    @property
    def document(self) -> WorkflowDocument:
        return self.store.document

    def load(self, document: WorkflowDocument) -> List[str]:
        """Open ``document``; history restarts from it and it is not autosaved.

        Pending edits of the outgoing document are persisted first.
        """
        self.inserter.flush()
        if self.autosave is not None:
            self.autosave.flush()
        with self.store.suppress():
            repairs = self.store.load_document(document)
        self.history.clear()
        logger.info(
            f"Workflow loaded: {len(document.nodes)} nodes, {len(document.edges)} edges"
            + (f", {len(repairs)} repair(s)" if repairs else "")
        )
        return repairs

    # ── Editing ──

    def insert_node(
        self,
        type_ref: str,
        source_node_id: Optional[str] = None,
        source_handle: Optional[str] = None,
    ) -> Optional[Node]:
        return self.inserter.insert_node(type_ref, source_node_id, source_handle)

    def append_to_chain(self, type_ref: str, position: Optional[Position] = None) -> Optional[Node]:
        return self.inserter.append_to_chain(type_ref, position)

    def add_to_loop(self, loop_id: str, type_ref: str) -> Optional[Node]:
        return self.inserter.add_to_loop(loop_id, type_ref)

    def connect(
        self, source_id: str, target_id: str, source_handle: Optional[str] = None,
    ) -> Optional[Edge]:
        return self.inserter.connect_nodes(source_id, target_id, source_handle)

    def disconnect(self, source_id: str, source_handle: Optional[str] = None) -> bool:
        return self.store.disconnect(source_id, source_handle)

    def remove_edge(self, edge_id: str) -> bool:
        return self.store.remove_edge(edge_id)

    def delete_node(self, node_id: str, chain: bool = False) -> bool:
        return self.store.delete_node(node_id, chain=chain)

    def update_node(self, node_id: str, partial_config: Dict[str, Any]) -> bool:
        return self.store.update_node(node_id, partial_config)

    def toggle_node_enabled(self, node_id: str) -> bool:
        return self.store.toggle_node_enabled(node_id)

    def move_nodes(self, positions: Dict[str, Position]) -> bool:
        return self.store.move_nodes(positions)

    def select_node(self, node_id: Optional[str]) -> None:
        self.store.select_node(node_id)

    def auto_layout(self, direction: Direction = "TB") -> bool:
        """Re-position every node; True if anything moved."""
        self.inserter.cancel()
        positions = auto_layout(self.store.nodes, self.store.edges, direction, self.config)
        return self.store.move_nodes(positions)

    # ── History ──

    def undo(self) -> bool:
        self.inserter.flush()
        return self.history.undo()

    def redo(self) -> bool:
        self.inserter.flush()
        return self.history.redo()

    @property
    def can_undo(self) -> bool:
        return self.history.can_undo

    @property
    def can_redo(self) -> bool:
        return self.history.can_redo

    # ── Scheduling ──

    def flush(self) -> None:
        """Run every pending deferred task now (layout, history, autosave)."""
        self.inserter.flush()
        self.history.flush()
        if self.autosave is not None:
            self.autosave.flush()

    def close(self) -> None:
        self.inserter.cancel()
        self.history.close()
        if self.autosave is not None:
            self.autosave.close()
