"""
Collision / Overlap Resolver for binary decision nodes.

When both the ``true`` and ``false`` outputs of a decision node are
connected, each side's subtree has a horizontal footprint
(``min x`` .. ``max x + node_width``). If the two footprints
intersect, the narrower side is pushed outward (``true`` to the
left, ``false`` to the right) by the overlap plus a margin. The whole
subtree moves together so relative offsets inside it are kept.

Multi-value decision nodes use fixed index-based spacing and are
left alone.
"""

from __future__ import annotations

from collections import deque
from logging import getLogger
from typing import Dict, List, Optional, Sequence, Set, Tuple

from flowedit.config import EditorConfig
from flowedit.workflow.branch_layout import is_binary
from flowedit.workflow.workflow_model import (
    FALSE_HANDLE,
    TRUE_HANDLE,
    Edge,
    Node,
    Position,
)

logger = getLogger(__name__)

_MAX_PASSES = 10


def _reachable(root_id: str, adjacency: Dict[str, List[str]]) -> Set[str]:
    seen: Set[str] = {root_id}
    queue = deque([root_id])
    while queue:
        current = queue.popleft()
        for target in adjacency.get(current, []):
            if target not in seen:
                seen.add(target)
                queue.append(target)
    return seen


def subtree_footprint(
    node_ids: Set[str],
    positions: Dict[str, Position],
    node_width: float,
) -> Optional[Tuple[float, float]]:
    """Horizontal span occupied by ``node_ids``."""
    xs = [positions[nid].x for nid in node_ids if nid in positions]
    if not xs:
        return None
    return min(xs), max(xs) + node_width


def resolve_branch_overlaps(
    nodes: Sequence[Node],
    edges: Sequence[Edge],
    config: Optional[EditorConfig] = None,
) -> Dict[str, Position]:
    """Compute the positions that must change to separate sibling subtrees.

    Returns ``{node_id: new_position}`` for moved nodes only; an
    empty dict means the layout is already resolved.
    """
    cfg = config or EditorConfig.get_default_instance()
    original: Dict[str, Position] = {n.id: n.position for n in nodes}
    positions: Dict[str, Position] = {
        nid: Position(x=p.x, y=p.y) for nid, p in original.items()
    }

    adjacency: Dict[str, List[str]] = {}
    outputs: Dict[Tuple[str, Optional[str]], str] = {}
    for e in edges:
        adjacency.setdefault(e.source, []).append(e.target)
        outputs.setdefault((e.source, e.source_handle), e.target)

    decision_nodes = [n for n in nodes if is_binary(n)]

    for _ in range(_MAX_PASSES):
        moved = False
        for cond in decision_nodes:
            true_child = outputs.get((cond.id, TRUE_HANDLE))
            false_child = outputs.get((cond.id, FALSE_HANDLE))
            if true_child is None or false_child is None:
                continue

            true_side = _reachable(true_child, adjacency)
            false_side = _reachable(false_child, adjacency)
            # Nodes reachable from both sides (re-joining paths) stay put
            shared = true_side & false_side
            true_side -= shared | {cond.id}
            false_side -= shared | {cond.id}

            true_span = subtree_footprint(true_side, positions, cfg.node_width)
            false_span = subtree_footprint(false_side, positions, cfg.node_width)
            if true_span is None or false_span is None:
                continue

            intersects = true_span[0] < false_span[1] and false_span[0] < true_span[1]
            if not intersects:
                continue
            overlap = true_span[1] - false_span[0]
            if overlap <= 0:
                continue

            shift = overlap + cfg.branch_margin
            true_width = true_span[1] - true_span[0]
            false_width = false_span[1] - false_span[0]
            if true_width < false_width:
                side, dx = true_side, -shift
            else:
                side, dx = false_side, shift

            for nid in side:
                if nid in positions:
                    positions[nid] = positions[nid].shifted(dx=dx)
            logger.debug(
                f"Separated branches of {cond.id}: shifted {len(side)} node(s) by {dx:+.1f}"
            )
            moved = True

        if not moved:
            break
    else:
        logger.warning("Branch overlap resolution did not settle; layout left partially resolved")

    return {
        nid: pos
        for nid, pos in positions.items()
        if pos.x != original[nid].x or pos.y != original[nid].y
    }
