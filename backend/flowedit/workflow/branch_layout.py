"""
Branch Layout Engine — logical branches of a decision node and
where each one sits relative to its parent.

Branches are re-derived from the node's config on every call and
never cached, so an edge's ``source_handle`` resolves to the same
branch for as long as ``cases`` / ``return_type`` are unchanged.

Two branch modes exist:

    BinaryBranches      — ``true`` / ``false`` (simple mode, or any
                          boolean return type)
    MultiValueBranches  — one branch per distinct ``returnValue`` in
                          declaration order, then a trailing ``else``

Every function here is pure.
"""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import Dict, List, Optional, Sequence, Set, Tuple, Union

from flowedit.config import EditorConfig
from flowedit.workflow.workflow_model import (
    ELSE_HANDLE,
    FALSE_HANDLE,
    TRUE_HANDLE,
    Edge,
    Node,
    NodeConfig,
    NodeKind,
    Position,
)

logger = getLogger(__name__)

TRUE_COLOR = "#10b981"
FALSE_COLOR = "#ef4444"
ELSE_COLOR = "#6b7280"
VALUE_COLORS = (
    "#3b82f6",  # blue
    "#8b5cf6",  # purple
    "#f97316",  # orange
    "#eab308",  # yellow
    "#14b8a6",  # teal
    "#ec4899",  # pink
)


@dataclass(frozen=True)
class Branch:
    """One logical output of a decision node."""
    id: str
    label: str
    color: str


# ============================================================================
# Branch modes
# ============================================================================


@dataclass(frozen=True)
class BinaryBranches:
    def branches(self) -> List[Branch]:
        return [
            Branch(id=TRUE_HANDLE, label="TRUE", color=TRUE_COLOR),
            Branch(id=FALSE_HANDLE, label="FALSE", color=FALSE_COLOR),
        ]


@dataclass(frozen=True)
class MultiValueBranches:
    values: Tuple[str, ...]
    return_type: str = "string"

    def branches(self) -> List[Branch]:
        result = [
            Branch(id=value, label=value.upper(), color=VALUE_COLORS[i % len(VALUE_COLORS)])
            for i, value in enumerate(self.values)
        ]
        result.append(Branch(id=ELSE_HANDLE, label="ELSE", color=ELSE_COLOR))
        return result


BranchMode = Union[BinaryBranches, MultiValueBranches]


def branch_mode_of(config: NodeConfig) -> BranchMode:
    """Derive the branch mode of a decision node from its config."""
    if not config.multiple_conditions or config.return_type == "boolean":
        return BinaryBranches()

    values: List[str] = []
    for case in config.cases:
        if case.return_value is None or case.return_value == "":
            continue
        handle = str(case.return_value)
        # ``else`` is always the trailing catch-all
        if handle == ELSE_HANDLE or handle in values:
            continue
        values.append(handle)
    return MultiValueBranches(values=tuple(values), return_type=config.return_type)


def branches_of(config: NodeConfig) -> List[Branch]:
    """Ordered branch list of a decision node."""
    return branch_mode_of(config).branches()


def is_binary(node: Node) -> bool:
    return node.kind is NodeKind.CONDITIONAL and isinstance(
        branch_mode_of(node.config), BinaryBranches
    )


def find_branch(config: NodeConfig, handle: str) -> Optional[Tuple[int, Branch]]:
    for index, branch in enumerate(branches_of(config)):
        if branch.id == handle:
            return index, branch
    return None


# ============================================================================
# Geometry
# ============================================================================


@dataclass(frozen=True)
class BranchPlacement:
    """Where one branch is drawn relative to the parent's center."""
    branch: Branch
    index: int
    default_offset: float
    offset: float
    is_connected: bool
    child_id: Optional[str]
    drop_distance: float


def default_offsets(count: int, spacing: float) -> List[float]:
    """Evenly spread offsets centered on the parent, in declaration order."""
    total_width = (count - 1) * spacing
    return [-total_width / 2 + i * spacing for i in range(count)]


def compute_branch_layout(
    parent: Node,
    nodes: Sequence[Node],
    edges: Sequence[Edge],
    config: Optional[EditorConfig] = None,
) -> List[BranchPlacement]:
    """Lay out every branch of ``parent``.

    Connected branches follow their child's actual position so
    manual drags are respected; disconnected ones use the default
    evenly spread offset and a fixed drop distance.
    """
    cfg = config or EditorConfig.get_default_instance()
    branches = branches_of(parent.config)
    offsets = default_offsets(len(branches), cfg.branch_spacing)
    by_id: Dict[str, Node] = {n.id: n for n in nodes}

    placements: List[BranchPlacement] = []
    for index, branch in enumerate(branches):
        child: Optional[Node] = None
        for e in edges:
            if e.source == parent.id and e.source_handle == branch.id:
                child = by_id.get(e.target)
                break

        offset = offsets[index]
        drop = cfg.unconnected_branch_height
        if child is not None:
            # Same width for parent and child, so centers differ like corners
            offset = child.position.x - parent.position.x
            drop = max(
                cfg.min_vertical_gap,
                child.position.y - parent.position.y - cfg.node_height,
            )

        placements.append(BranchPlacement(
            branch=branch,
            index=index,
            default_offset=offsets[index],
            offset=offset,
            is_connected=child is not None,
            child_id=child.id if child is not None else None,
            drop_distance=drop,
        ))
    return placements


def branch_child_position(
    parent: Node,
    handle: str,
    config: Optional[EditorConfig] = None,
) -> Optional[Position]:
    """Top-left position for a new child on ``handle``, or None if unknown."""
    cfg = config or EditorConfig.get_default_instance()
    found = find_branch(parent.config, handle)
    if found is None:
        return None
    index, _ = found
    count = len(branches_of(parent.config))
    offset = default_offsets(count, cfg.branch_spacing)[index]
    parent_center_x = parent.position.x + cfg.half_width
    return Position(
        x=parent_center_x + offset - cfg.half_width,
        y=parent.position.y + cfg.branch_vertical_offset,
    )


def branch_color(parent: Node, handle: Optional[str]) -> Optional[str]:
    if handle is None or parent.kind is not NodeKind.CONDITIONAL:
        return None
    found = find_branch(parent.config, handle)
    return found[1].color if found is not None else None


def find_branch_ancestry(
    node_id: str,
    nodes: Sequence[Node],
    edges: Sequence[Edge],
) -> Optional[Tuple[str, str]]:
    """Nearest decision-node ancestor of ``node_id`` and the branch it hangs off.

    Walks up incoming edges; returns ``(conditional_id, handle)`` or
    None when the node is not inside any branch.
    """
    by_id: Dict[str, Node] = {n.id: n for n in nodes}
    incoming: Dict[str, Edge] = {}
    for e in edges:
        incoming.setdefault(e.target, e)

    visited: Set[str] = set()
    current = node_id
    while current not in visited:
        visited.add(current)
        edge = incoming.get(current)
        if edge is None:
            return None
        source = by_id.get(edge.source)
        if source is None:
            return None
        if source.kind is NodeKind.CONDITIONAL and edge.source_handle is not None:
            return source.id, edge.source_handle
        current = source.id
    return None
