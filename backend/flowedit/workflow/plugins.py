"""
Plugin Catalog — the read-only view of available node types.

The core only needs ``{type, name, category, color, kind}`` from a
plugin; it never executes plugin logic. Hosts hand an object that
satisfies ``PluginCatalog`` to the editor (usually a
``PluginRegistry``), so the core holds no global registry.
"""

from __future__ import annotations

from logging import getLogger
from typing import Dict, List, Literal, Optional, Protocol

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from flowedit.workflow.workflow_model import NodeKind

logger = getLogger(__name__)

PluginKind = Literal["action", "conditional", "loop", "forEachLoop"]


class PluginDescriptor(BaseModel):
    """Metadata of one node type as published by the plugin catalog."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    type_ref: str
    display_name: str
    category: str = "action"
    color: Optional[str] = None
    icon: Optional[str] = None
    kind: PluginKind = "action"

    @property
    def node_kind(self) -> NodeKind:
        return NodeKind(self.kind)


class PluginCatalog(Protocol):
    """What the insertion protocol needs from the catalog."""

    def lookup(self, type_ref: str) -> Optional[PluginDescriptor]:
        ...


class PluginRegistry:
    """In-memory ``PluginCatalog`` keyed by ``type_ref``."""

    def __init__(self) -> None:
        self._plugins: Dict[str, PluginDescriptor] = {}

    def register(self, descriptor: PluginDescriptor) -> PluginDescriptor:
        if descriptor.type_ref in self._plugins:
            logger.debug(f"Replacing plugin descriptor: {descriptor.type_ref}")
        self._plugins[descriptor.type_ref] = descriptor
        return descriptor

    def lookup(self, type_ref: str) -> Optional[PluginDescriptor]:
        return self._plugins.get(type_ref)

    def list_all(self) -> List[PluginDescriptor]:
        return list(self._plugins.values())

    def list_by_category(self) -> Dict[str, List[PluginDescriptor]]:
        grouped: Dict[str, List[PluginDescriptor]] = {}
        for desc in self._plugins.values():
            grouped.setdefault(desc.category, []).append(desc)
        return grouped

    def __contains__(self, type_ref: str) -> bool:
        return type_ref in self._plugins

    def __len__(self) -> int:
        return len(self._plugins)


# ============================================================================
# Built-in structural node types
# ============================================================================

BUILTIN_PLUGINS: List[PluginDescriptor] = [
    PluginDescriptor(
        type_ref="condition",
        display_name="Condition",
        category="condition",
        color="#f97316",
        icon="git-branch",
        kind="conditional",
    ),
    PluginDescriptor(
        type_ref="loop-node",
        display_name="Loop",
        category="logic",
        color="#6366f1",
        icon="repeat",
        kind="loop",
    ),
    PluginDescriptor(
        type_ref="for-each-loop",
        display_name="For Each",
        category="logic",
        color="#6366f1",
        icon="list-ordered",
        kind="forEachLoop",
    ),
]


def register_builtin_plugins(registry: PluginRegistry) -> PluginRegistry:
    """Register the decision and loop node types the engine lays out specially."""
    for desc in BUILTIN_PLUGINS:
        registry.register(desc)
    logger.info(f"Built-in node types registered: {len(BUILTIN_PLUGINS)}")
    return registry
