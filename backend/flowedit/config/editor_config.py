"""
Editor Configuration.

Layout geometry and timing used by the graph mutation engine.
Every field can be overridden with an ``FLOWEDIT_*`` environment
variable.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Optional

from flowedit.config.env_utils import read_env_defaults


@dataclass(frozen=True)
class EditorConfig:
    """Canvas geometry (canvas units) and debounce timings (seconds)."""

    # ── Node geometry ──
    node_width: float = 200.0
    node_height: float = 56.0

    # ── Branch layout ──
    branch_spacing: float = 220.0
    min_vertical_gap: float = 120.0
    unconnected_branch_height: float = 140.0
    branch_vertical_offset: float = 350.0
    branch_margin: float = 40.0

    # ── Chain placement ──
    vertical_offset: float = 200.0
    anchor_x: float = 400.0
    anchor_y: float = 100.0
    loop_child_offset_x: float = 20.0
    loop_child_offset_y: float = 70.0

    # ── Auto layout ──
    rank_spacing: float = 140.0
    node_spacing: float = 80.0

    # ── Timing ──
    history_debounce: float = 0.1
    history_depth: int = 50
    autosave_delay: float = 1.0
    collision_delay: float = 0.03

    _ENV_MAP = {
        "node_width": "FLOWEDIT_NODE_WIDTH",
        "node_height": "FLOWEDIT_NODE_HEIGHT",
        "branch_spacing": "FLOWEDIT_BRANCH_SPACING",
        "min_vertical_gap": "FLOWEDIT_MIN_VERTICAL_GAP",
        "unconnected_branch_height": "FLOWEDIT_UNCONNECTED_BRANCH_HEIGHT",
        "branch_vertical_offset": "FLOWEDIT_BRANCH_VERTICAL_OFFSET",
        "branch_margin": "FLOWEDIT_BRANCH_MARGIN",
        "vertical_offset": "FLOWEDIT_VERTICAL_OFFSET",
        "anchor_x": "FLOWEDIT_ANCHOR_X",
        "anchor_y": "FLOWEDIT_ANCHOR_Y",
        "loop_child_offset_x": "FLOWEDIT_LOOP_CHILD_OFFSET_X",
        "loop_child_offset_y": "FLOWEDIT_LOOP_CHILD_OFFSET_Y",
        "rank_spacing": "FLOWEDIT_RANK_SPACING",
        "node_spacing": "FLOWEDIT_NODE_SPACING",
        "history_debounce": "FLOWEDIT_HISTORY_DEBOUNCE",
        "history_depth": "FLOWEDIT_HISTORY_DEPTH",
        "autosave_delay": "FLOWEDIT_AUTOSAVE_DELAY",
        "collision_delay": "FLOWEDIT_COLLISION_DELAY",
    }

    @classmethod
    def get_default_instance(
        cls, environ: Optional[Mapping[str, str]] = None,
    ) -> "EditorConfig":
        defaults = read_env_defaults(cls._ENV_MAP, cls.__dataclass_fields__, environ)
        return cls(**defaults)

    @property
    def half_width(self) -> float:
        return self.node_width / 2
