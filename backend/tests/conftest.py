"""Shared fixtures for the flowedit test suite."""

import itertools

import pytest

from flowedit.config import EditorConfig
from flowedit.workflow import (
    GraphDocumentStore,
    NodeInserter,
    PluginDescriptor,
    PluginRegistry,
    WorkflowEditor,
    register_builtin_plugins,
)


@pytest.fixture
def config() -> EditorConfig:
    # Explicit defaults so FLOWEDIT_* variables on the host never leak in
    return EditorConfig()


@pytest.fixture
def registry() -> PluginRegistry:
    reg = PluginRegistry()
    register_builtin_plugins(reg)
    reg.register(PluginDescriptor(
        type_ref="http-request",
        display_name="HTTP Request",
        category="integration",
        color="#0ea5e9",
        icon="globe",
    ))
    reg.register(PluginDescriptor(
        type_ref="send-email",
        display_name="Send Email",
        category="integration",
        color="#22c55e",
        icon="mail",
    ))
    return reg


@pytest.fixture
def id_factory():
    counter = itertools.count(1)
    return lambda: f"n{next(counter)}"


@pytest.fixture
def store() -> GraphDocumentStore:
    return GraphDocumentStore()


@pytest.fixture
def inserter(store, registry, config, id_factory) -> NodeInserter:
    return NodeInserter(store, registry, config, id_factory=id_factory)


@pytest.fixture
def editor(registry, config, id_factory) -> WorkflowEditor:
    return WorkflowEditor(registry, config, id_factory=id_factory)
