"""
History Manager — bounded undo / redo over document snapshots.

Snapshots are captured on a debounce after genuine edits. Restoring
a snapshot happens inside ``store.suppress()`` so the mutation the
restore itself causes is neither re-captured here nor picked up by
the autosave collaborator, which watches the same change signal.

Stack layout::

    [s0, s1, s2, s3]      cursor = 2
          undo ◄──┘└──► redo

Pushing while the cursor is below the top drops the redo tail.
"""

from __future__ import annotations

import asyncio
from logging import getLogger
from typing import List, Optional

from pydantic import BaseModel, Field

from flowedit.config import EditorConfig
from flowedit.workflow.debounce import Debouncer
from flowedit.workflow.workflow_model import Edge, Node
from flowedit.workflow.workflow_store import DocumentChange, GraphDocumentStore

logger = getLogger(__name__)


class HistorySnapshot(BaseModel):
    """A captured ``{nodes, edges, selection}`` triple."""

    nodes: List[Node] = Field(default_factory=list)
    edges: List[Edge] = Field(default_factory=list)
    selected_node_id: Optional[str] = None

    def same_document(self, other: "HistorySnapshot") -> bool:
        return self.nodes == other.nodes and self.edges == other.edges


class HistoryManager:
    """Undo / redo for a ``GraphDocumentStore``."""

    def __init__(
        self,
        store: GraphDocumentStore,
        config: Optional[EditorConfig] = None,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> None:
        cfg = config or EditorConfig.get_default_instance()
        self._store = store
        self._max_depth = max(1, cfg.history_depth)
        self._stack: List[HistorySnapshot] = []
        self._cursor = -1
        self._debouncer = Debouncer(cfg.history_debounce, self.push_snapshot, loop)
        self._unsubscribe = store.subscribe(self._on_change)
        self.push_snapshot()

    # ── Introspection ──

    @property
    def can_undo(self) -> bool:
        return self._cursor > 0 or (self._cursor >= 0 and self._pending_differs())

    @property
    def can_redo(self) -> bool:
        # A pending capture that changes the document will drop the redo tail
        return self._cursor < len(self._stack) - 1 and not self._pending_differs()

    @property
    def cursor(self) -> int:
        return self._cursor

    @property
    def depth(self) -> int:
        return len(self._stack)

    @property
    def capture_pending(self) -> bool:
        return self._debouncer.pending

    # ── Capture ──

    def push_snapshot(self) -> bool:
        """Capture the current document. Returns False if nothing was pushed."""
        if self._store.is_restoring:
            return False

        snapshot = self._current_snapshot()
        if self._matches_cursor(snapshot):
            return False

        # A new edit invalidates everything after the cursor
        del self._stack[self._cursor + 1:]
        self._stack.append(snapshot)
        overflow = len(self._stack) - self._max_depth
        if overflow > 0:
            del self._stack[:overflow]
        self._cursor = len(self._stack) - 1
        logger.debug(f"History snapshot pushed ({self._cursor + 1}/{len(self._stack)})")
        return True

    def flush(self) -> bool:
        """Capture a pending debounced snapshot right now."""
        return self._debouncer.flush()

    # ── Moves ──

    def undo(self) -> bool:
        """Step back one snapshot. Returns False when there is nothing to undo."""
        self._debouncer.flush()
        if self._cursor <= 0:
            return False
        self._cursor -= 1
        self._restore(self._stack[self._cursor])
        logger.info(f"Undo → {self._cursor + 1}/{len(self._stack)}")
        return True

    def redo(self) -> bool:
        """Step forward one snapshot. Returns False when there is nothing to redo."""
        self._debouncer.flush()
        if self._cursor >= len(self._stack) - 1:
            return False
        self._cursor += 1
        self._restore(self._stack[self._cursor])
        logger.info(f"Redo → {self._cursor + 1}/{len(self._stack)}")
        return True

    def clear(self) -> None:
        """Forget all history; the current document becomes the base state."""
        self._debouncer.cancel()
        self._stack = []
        self._cursor = -1
        self.push_snapshot()
        logger.info("History cleared")

    def close(self) -> None:
        self._debouncer.cancel()
        self._unsubscribe()

    # ── Internals ──

    def _on_change(self, change: DocumentChange) -> None:
        if change.suppressed:
            return
        self._debouncer.trigger()

    def _current_snapshot(self) -> HistorySnapshot:
        return HistorySnapshot(
            nodes=self._store.nodes,
            edges=self._store.edges,
            selected_node_id=self._store.selected_node_id,
        )

    def _matches_cursor(self, snapshot: HistorySnapshot) -> bool:
        return (
            0 <= self._cursor < len(self._stack)
            and self._stack[self._cursor].same_document(snapshot)
        )

    def _pending_differs(self) -> bool:
        return self._debouncer.pending and not self._matches_cursor(self._current_snapshot())

    def _restore(self, snapshot: HistorySnapshot) -> None:
        with self._store.suppress():
            self._store.replace_document(snapshot.nodes, snapshot.edges)
            self._store.select_node(snapshot.selected_node_id)
