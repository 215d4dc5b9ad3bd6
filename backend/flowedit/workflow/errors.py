"""
Workflow edit errors.

Only structural / programmer errors are raised. User-timing races
(double clicks onto an occupied output, unknown plugin types,
deleting a node that is already gone) degrade to no-ops instead.
"""

from __future__ import annotations


class WorkflowEditError(Exception):
    """Base class for errors raised by the graph mutation engine."""


class DanglingReferenceError(WorkflowEditError):
    """An operation referenced a node id that does not exist."""

    def __init__(self, node_id: str) -> None:
        self.node_id = node_id
        super().__init__(f"Node '{node_id}' does not exist")


class DuplicateIdError(WorkflowEditError):
    """A node with the same id is already present."""

    def __init__(self, node_id: str) -> None:
        self.node_id = node_id
        super().__init__(f"Node '{node_id}' already exists")
