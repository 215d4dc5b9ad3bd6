"""
Workflow Data Models — nodes, edges, and the editable document.

These are the serializable data structures that describe the
graph a user composes on the canvas. They are mutated through
``GraphDocumentStore``, snapshotted by ``HistoryManager`` and
persisted by the autosave collaborator.

All models accept either camelCase (the persisted document format)
or snake_case keys, and serialise back to camelCase via
``to_payload()``.
"""

from __future__ import annotations

import json
from enum import Enum
from logging import getLogger
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

logger = getLogger(__name__)

TRUE_HANDLE = "true"
FALSE_HANDLE = "false"
ELSE_HANDLE = "else"

ReturnType = Literal["boolean", "string", "integer"]


class NodeKind(str, Enum):
    """Which layout / connection rules apply to a node."""
    ACTION = "action"
    CONDITIONAL = "conditional"
    LOOP = "loop"
    FOR_EACH_LOOP = "forEachLoop"

    @property
    def is_branching(self) -> bool:
        return self is NodeKind.CONDITIONAL


class EdgeKind(str, Enum):
    """Rendering hint only."""
    STRAIGHT = "straight"
    STEP = "step"


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_payload(self) -> Dict[str, Any]:
        """Serialize with camelCase keys (persisted format)."""
        return self.model_dump(by_alias=True, mode="json")


# ============================================================================
# Node
# ============================================================================


class Position(_CamelModel):
    x: float = 0.0
    y: float = 0.0

    def shifted(self, dx: float = 0.0, dy: float = 0.0) -> "Position":
        return Position(x=self.x + dx, y=self.y + dy)


class ConditionCase(_CamelModel):
    """One row of a multi-condition decision node."""

    match_value: Any = None
    return_value: Any = None


class NodeConfig(_CamelModel):
    """Semantic payload of a node.

    Unknown keys (plugin inputs set by the property panel) are
    kept as extra fields so a round-trip never loses them.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    label: str = ""
    node_type_ref: str = ""
    category: str = ""
    color: Optional[str] = None
    disabled: bool = False
    is_first_node: bool = False
    parent_loop_id: Optional[str] = None

    # Conditional nodes only
    multiple_conditions: bool = False
    return_type: ReturnType = "boolean"
    cases: List[ConditionCase] = Field(default_factory=list)

    @field_validator("cases", mode="before")
    @classmethod
    def _parse_cases(cls, value: Any) -> Any:
        # The canvas stores cases as a JSON string
        if value is None:
            return []
        if isinstance(value, str):
            try:
                parsed = json.loads(value or "[]")
            except (json.JSONDecodeError, TypeError):
                logger.warning("Discarding unparsable condition cases")
                return []
            return parsed if isinstance(parsed, list) else []
        return value

    @field_validator("return_type", mode="before")
    @classmethod
    def _default_return_type(cls, value: Any) -> Any:
        return value or "boolean"

    def merged(self, partial: Dict[str, Any]) -> "NodeConfig":
        """Return a copy with ``partial`` shallow-merged on top."""
        data = self.model_dump()
        data.update(normalize_config_keys(partial))
        return NodeConfig.model_validate(data)


def normalize_config_keys(partial: Dict[str, Any]) -> Dict[str, Any]:
    """Map camelCase keys of known ``NodeConfig`` fields to field names."""
    alias_to_name = {
        (f.alias or name): name for name, f in NodeConfig.model_fields.items()
    }
    return {alias_to_name.get(k, k): v for k, v in partial.items()}


class Node(_CamelModel):
    """A single step placed on the workflow canvas."""

    id: str
    kind: NodeKind = NodeKind.ACTION
    position: Position = Field(default_factory=Position)
    config: NodeConfig = Field(default_factory=NodeConfig)

    @property
    def is_first_node(self) -> bool:
        return self.config.is_first_node

    def with_config(self, partial: Dict[str, Any]) -> "Node":
        return self.model_copy(update={"config": self.config.merged(partial)})

    def with_position(self, position: Position) -> "Node":
        return self.model_copy(update={"position": position})


# ============================================================================
# Edge
# ============================================================================


def edge_id_for(source: str, target: str, source_handle: Optional[str] = None) -> str:
    """Deterministic edge id derived from its endpoints."""
    if source_handle:
        return f"{source}-{source_handle}-{target}"
    return f"{source}-{target}"


class Edge(_CamelModel):
    """A directed edge between two nodes.

    ``source_handle`` names the branch of a conditional source node
    the edge leaves through; it is ``None`` for non-branching sources.
    """

    id: str = ""
    source: str
    target: str
    source_handle: Optional[str] = None
    kind: EdgeKind = EdgeKind.STRAIGHT
    color: Optional[str] = None

    @model_validator(mode="after")
    def _derive_id(self) -> "Edge":
        if not self.id:
            self.id = edge_id_for(self.source, self.target, self.source_handle)
        return self

    @property
    def output_key(self) -> tuple:
        return (self.source, self.source_handle)


# ============================================================================
# Document
# ============================================================================


class WorkflowDocument(_CamelModel):
    """The unit that is persisted and snapshotted: ``{nodes, edges}``."""

    nodes: List[Node] = Field(default_factory=list)
    edges: List[Edge] = Field(default_factory=list)

    def get_node(self, node_id: str) -> Optional[Node]:
        """Find a node by ID."""
        for n in self.nodes:
            if n.id == node_id:
                return n
        return None

    def get_edges_from(self, node_id: str) -> List[Edge]:
        """Get all edges originating from a node."""
        return [e for e in self.edges if e.source == node_id]

    def get_edges_to(self, node_id: str) -> List[Edge]:
        """Get all edges pointing to a node."""
        return [e for e in self.edges if e.target == node_id]

    def find_edge(self, source: str, source_handle: Optional[str] = None) -> Optional[Edge]:
        for e in self.edges:
            if e.source == source and e.source_handle == source_handle:
                return e
        return None

    def get_first_node(self) -> Optional[Node]:
        for n in self.nodes:
            if n.config.is_first_node:
                return n
        return None

    def validate_graph(self) -> List[str]:
        """Validate the document structure.

        Returns a list of error messages (empty = valid).
        """
        errors: List[str] = []

        seen_ids = set()
        for node in self.nodes:
            if node.id in seen_ids:
                errors.append(f"Duplicate node id: {node.id}")
            seen_ids.add(node.id)

        for edge in self.edges:
            if edge.source not in seen_ids:
                errors.append(f"Edge references unknown source node: {edge.source}")
            if edge.target not in seen_ids:
                errors.append(f"Edge references unknown target node: {edge.target}")

        outputs = set()
        for edge in self.edges:
            if edge.output_key in outputs:
                handle = edge.source_handle or "default"
                errors.append(
                    f"Output '{handle}' of node {edge.source} has more than one connection."
                )
            outputs.add(edge.output_key)

        first_nodes = [n for n in self.nodes if n.config.is_first_node]
        if len(first_nodes) > 1:
            errors.append(
                "Workflow must have at most one first node (found "
                f"{', '.join(n.id for n in first_nodes)})."
            )
        for node in first_nodes:
            if self.get_edges_to(node.id):
                errors.append(f"First node {node.id} must not have an incoming edge.")

        return errors
