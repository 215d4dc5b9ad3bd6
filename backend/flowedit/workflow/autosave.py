"""
Autosave — debounced persistence of genuine edits, plus a JSON-file
document store to persist into.

``AutosaveScheduler`` watches the same change signal as the history
manager. Changes emitted while a history restore is running are
ignored, and a save that comes due during a restore waits for the
next quiet period instead of firing.
"""

from __future__ import annotations

import asyncio
import json
from logging import getLogger
from pathlib import Path
from typing import Callable, List, Optional

from flowedit.config import EditorConfig
from flowedit.workflow.debounce import Debouncer
from flowedit.workflow.workflow_model import WorkflowDocument
from flowedit.workflow.workflow_store import DocumentChange, GraphDocumentStore

logger = getLogger(__name__)

SaveCallback = Callable[[WorkflowDocument], None]


class AutosaveScheduler:
    """Persist the document after a quiet period following a user edit."""

    def __init__(
        self,
        store: GraphDocumentStore,
        save: SaveCallback,
        delay: Optional[float] = None,
        config: Optional[EditorConfig] = None,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> None:
        if delay is None:
            delay = (config or EditorConfig.get_default_instance()).autosave_delay
        self._store = store
        self._save = save
        self._debouncer = Debouncer(delay, self._fire, loop)
        self._unsubscribe = store.subscribe(self._on_change)
        self._saved_generation: Optional[int] = None
        self.save_count = 0
        self.last_error: Optional[Exception] = None

    @property
    def pending(self) -> bool:
        return self._debouncer.pending

    @property
    def saved_generation(self) -> Optional[int]:
        return self._saved_generation

    def flush(self) -> bool:
        return self._debouncer.flush()

    def cancel(self) -> None:
        self._debouncer.cancel()

    def save_now(self) -> None:
        """Save immediately, propagating any persistence error."""
        self._debouncer.cancel()
        generation = self._store.generation
        self._save(self._store.document)
        self._saved_generation = generation
        self.save_count += 1
        self.last_error = None

    def close(self) -> None:
        self._debouncer.cancel()
        self._unsubscribe()

    # ── Internals ──

    def _on_change(self, change: DocumentChange) -> None:
        if change.suppressed:
            return
        self._debouncer.trigger()

    def _fire(self) -> None:
        if self._store.is_restoring:
            self._debouncer.trigger()
            return
        try:
            self.save_now()
        except Exception as e:
            self.last_error = e
            logger.error(f"Autosave failed: {e}")
        else:
            logger.debug(f"Autosaved generation {self._saved_generation}")


# ============================================================================
# JSON-file persistence
# ============================================================================


class DocumentFileStore:
    """Persist and load ``WorkflowDocument`` objects as JSON files."""

    def __init__(self, storage_dir: Path) -> None:
        self._dir = Path(storage_dir)
        self._dir.mkdir(parents=True, exist_ok=True)
        logger.info(f"DocumentFileStore initialized at {self._dir}")

    # ── CRUD ──

    def save(self, workflow_id: str, document: WorkflowDocument) -> None:
        """Save (create or update) a workflow document."""
        path = self._path_for(workflow_id)
        path.write_text(
            json.dumps(document.to_payload(), indent=2),
            encoding="utf-8",
        )
        logger.info(
            f"Workflow saved: {workflow_id} "
            f"({len(document.nodes)} nodes, {len(document.edges)} edges)"
        )

    def saver(self, workflow_id: str) -> SaveCallback:
        """A save callback bound to ``workflow_id`` (for ``AutosaveScheduler``)."""
        return lambda document: self.save(workflow_id, document)

    def load(self, workflow_id: str) -> Optional[WorkflowDocument]:
        """Load a single workflow by ID."""
        path = self._path_for(workflow_id)
        if not path.exists():
            return None
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            return WorkflowDocument.model_validate(data)
        except Exception as e:
            logger.error(f"Failed to load workflow {workflow_id}: {e}")
            return None

    def delete(self, workflow_id: str) -> bool:
        """Delete a workflow document."""
        path = self._path_for(workflow_id)
        if path.exists():
            path.unlink()
            logger.info(f"Workflow deleted: {workflow_id}")
            return True
        return False

    def list_ids(self) -> List[str]:
        """List all saved workflow ids."""
        return [path.stem for path in sorted(self._dir.glob("*.json"))]

    def exists(self, workflow_id: str) -> bool:
        return self._path_for(workflow_id).exists()

    # ── Internals ──

    def _path_for(self, workflow_id: str) -> Path:
        # Sanitize ID for filesystem
        safe_id = "".join(c for c in workflow_id if c.isalnum() or c in "-_")
        return self._dir / f"{safe_id}.json"
