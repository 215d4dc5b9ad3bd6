"""
Workflow Editing Engine — graph mutation and auto-layout for the
visual node-edge editor.

Architecture:
    workflow_model  — Nodes, edges and the persisted document
    workflow_store  — Canonical in-memory document + change signal
    branch_layout   — Branch enumeration and child offsets of decision nodes
    insertion       — Place-and-connect protocol for new nodes
    collision       — Separates overlapping true/false subtrees
    history         — Debounced snapshots, undo / redo
    autosave        — Debounced persistence + JSON file store
    layout          — Whole-document layered auto layout
    editor          — Facade wiring the above for one open document
"""

from flowedit.workflow.errors import (
    WorkflowEditError,
    DanglingReferenceError,
    DuplicateIdError,
)
from flowedit.workflow.workflow_model import (
    TRUE_HANDLE,
    FALSE_HANDLE,
    ELSE_HANDLE,
    NodeKind,
    EdgeKind,
    Position,
    ConditionCase,
    NodeConfig,
    Node,
    Edge,
    WorkflowDocument,
)
from flowedit.workflow.workflow_store import DocumentChange, GraphDocumentStore
from flowedit.workflow.plugins import (
    PluginDescriptor,
    PluginCatalog,
    PluginRegistry,
    register_builtin_plugins,
)
from flowedit.workflow.branch_layout import (
    Branch,
    BinaryBranches,
    MultiValueBranches,
    BranchPlacement,
    branches_of,
    compute_branch_layout,
    find_branch_ancestry,
)
from flowedit.workflow.collision import resolve_branch_overlaps
from flowedit.workflow.debounce import Debouncer
from flowedit.workflow.insertion import NodeInserter
from flowedit.workflow.history import HistoryManager, HistorySnapshot
from flowedit.workflow.autosave import AutosaveScheduler, DocumentFileStore
from flowedit.workflow.layout import auto_layout
from flowedit.workflow.editor import WorkflowEditor

__all__ = [
    "WorkflowEditError",
    "DanglingReferenceError",
    "DuplicateIdError",
    "TRUE_HANDLE",
    "FALSE_HANDLE",
    "ELSE_HANDLE",
    "NodeKind",
    "EdgeKind",
    "Position",
    "ConditionCase",
    "NodeConfig",
    "Node",
    "Edge",
    "WorkflowDocument",
    "DocumentChange",
    "GraphDocumentStore",
    "PluginDescriptor",
    "PluginCatalog",
    "PluginRegistry",
    "register_builtin_plugins",
    "Branch",
    "BinaryBranches",
    "MultiValueBranches",
    "BranchPlacement",
    "branches_of",
    "compute_branch_layout",
    "find_branch_ancestry",
    "resolve_branch_overlaps",
    "Debouncer",
    "NodeInserter",
    "HistoryManager",
    "HistorySnapshot",
    "AutosaveScheduler",
    "DocumentFileStore",
    "auto_layout",
    "WorkflowEditor",
]
