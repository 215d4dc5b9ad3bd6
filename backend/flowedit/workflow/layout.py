"""
Auto Layout — re-position the whole document as a layered graph.

Nodes are ranked by their longest path from a root, each rank is laid
out as one row (``TB``) or column (``LR``) centred on the anchor, and
siblings are ordered by their parent's slot and branch order so that
``true`` stays left of ``false``. Loop children keep their offset
inside the loop container.
"""

from __future__ import annotations

from collections import deque
from logging import getLogger
from typing import Dict, List, Literal, Optional, Sequence, Tuple

from flowedit.config import EditorConfig
from flowedit.workflow.branch_layout import branches_of
from flowedit.workflow.workflow_model import Edge, Node, NodeKind, Position

logger = getLogger(__name__)

Direction = Literal["TB", "LR"]


# ============================================================================
# LAYERED LAYOUT
# ============================================================================


def auto_layout(
    nodes: Sequence[Node],
    edges: Sequence[Edge],
    direction: Direction = "TB",
    config: Optional[EditorConfig] = None,
) -> Dict[str, Position]:
    """
    Compute a layered layout for the document.

    Args:
        nodes: Document nodes
        edges: Document edges
        direction: ``TB`` (top to bottom) or ``LR`` (left to right)
        config: Layout constants

    Returns:
        New position for every node
    """
    if direction not in ("TB", "LR"):
        raise ValueError(f"Unknown layout direction: {direction}")
    cfg = config or EditorConfig.get_default_instance()
    by_id = {n.id: n for n in nodes}

    children = [
        n for n in nodes
        if n.config.parent_loop_id is not None and n.config.parent_loop_id in by_id
    ]
    child_ids = {n.id for n in children}
    ranked = [n for n in nodes if n.id not in child_ids]
    ranked_edges = [
        e for e in edges
        if e.source in by_id and e.target in by_id
        and e.source not in child_ids and e.target not in child_ids
    ]

    layers = _rank_layers(ranked, ranked_edges)
    layers = _order_layers(layers, ranked_edges, by_id)
    logger.debug(f"Auto layout ({direction}): {len(layers)} layer(s), {len(ranked)} node(s)")

    positions: Dict[str, Position] = {}
    for rank, layer in enumerate(layers):
        for slot, node_id in enumerate(layer):
            positions[node_id] = _place(rank, slot, len(layer), direction, cfg)

    for child in children:
        parent = by_id[child.config.parent_loop_id]
        anchor = positions.get(parent.id, parent.position)
        positions[child.id] = anchor.shifted(
            dx=child.position.x - parent.position.x,
            dy=child.position.y - parent.position.y,
        )

    return positions


def _place(rank: int, slot: int, width: int, direction: Direction, cfg: EditorConfig) -> Position:
    centred = slot - (width - 1) / 2
    if direction == "TB":
        return Position(
            x=cfg.anchor_x + centred * (cfg.node_width + cfg.node_spacing),
            y=cfg.anchor_y + rank * (cfg.node_height + cfg.rank_spacing),
        )
    return Position(
        x=cfg.anchor_x + rank * (cfg.node_width + cfg.rank_spacing),
        y=cfg.anchor_y + centred * (cfg.node_height + cfg.node_spacing),
    )


def _rank_layers(nodes: Sequence[Node], edges: Sequence[Edge]) -> List[List[str]]:
    """
    Longest-path ranking (Kahn's algorithm).

    Nodes caught in a cycle are placed one rank below everything else.
    """
    in_degree = {n.id: 0 for n in nodes}
    adjacency: Dict[str, List[str]] = {n.id: [] for n in nodes}
    for e in edges:
        adjacency[e.source].append(e.target)
        in_degree[e.target] += 1

    rank = {nid: 0 for nid, degree in in_degree.items() if degree == 0}
    queue = deque(rank)
    remaining = dict(in_degree)
    while queue:
        current = queue.popleft()
        for target in adjacency[current]:
            rank[target] = max(rank.get(target, 0), rank[current] + 1)
            remaining[target] -= 1
            if remaining[target] == 0:
                queue.append(target)

    settled = {nid for nid, degree in remaining.items() if degree <= 0}
    cyclic = [n.id for n in nodes if n.id not in settled]
    if cyclic:
        logger.warning(f"Auto layout: {len(cyclic)} node(s) on a cycle placed last")
        bottom = max((rank[nid] for nid in settled), default=-1) + 1
        for nid in cyclic:
            rank[nid] = bottom

    depth = max(rank.values(), default=-1) + 1
    layers: List[List[str]] = [[] for _ in range(depth)]
    for n in nodes:
        layers[rank[n.id]].append(n.id)
    return layers


def _order_layers(
    layers: List[List[str]],
    edges: Sequence[Edge],
    by_id: Dict[str, Node],
) -> List[List[str]]:
    doc_index = {nid: i for i, nid in enumerate(by_id)}
    parents: Dict[str, List[Edge]] = {}
    for e in edges:
        parents.setdefault(e.target, []).append(e)

    ordered: List[List[str]] = []
    slot: Dict[str, int] = {}
    for layer in layers:
        def key(node_id: str) -> Tuple[int, int, int, int]:
            node = by_id[node_id]
            placed = [e for e in parents.get(node_id, []) if e.source in slot]
            if not placed:
                # First node leads its layer
                return (-1, 0 if node.config.is_first_node else 1, 0, doc_index[node_id])
            anchor = min(placed, key=lambda e: slot[e.source])
            return (
                slot[anchor.source],
                0,
                _handle_order(by_id[anchor.source], anchor.source_handle),
                doc_index[node_id],
            )

        row = sorted(layer, key=key)
        for i, node_id in enumerate(row):
            slot[node_id] = i
        ordered.append(row)
    return ordered


def _handle_order(source: Node, handle: Optional[str]) -> int:
    if source.kind is not NodeKind.CONDITIONAL or handle is None:
        return 0
    for i, branch in enumerate(branches_of(source.config)):
        if branch.id == handle:
            return i
    return 0
