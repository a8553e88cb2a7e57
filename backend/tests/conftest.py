"""Shared test fixtures for nodeflow tests."""
import sys
from pathlib import Path

import pytest

# Ensure nodeflow package is importable
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from nodeflow.config import settings
from nodeflow.engine.graph import DynamicHandle, Edge, Node


@pytest.fixture(scope="session", autouse=True)
def register_nodes():
    """Discover and register all node types once per test session."""
    from nodeflow.nodes.registry import NodeRegistry
    NodeRegistry.discover("nodeflow.nodes")


@pytest.fixture(autouse=True)
def no_simulated_latency():
    """Keep processors instant; restore the configured delays afterwards."""
    original = (
        settings.processing_delay,
        settings.generation_latency_min,
        settings.generation_latency_max,
    )
    settings.processing_delay = 0.0
    settings.generation_latency_min = 0.0
    settings.generation_latency_max = 0.0
    yield
    (
        settings.processing_delay,
        settings.generation_latency_min,
        settings.generation_latency_max,
    ) = original


def make_edge(edge_id, source, target, source_handle="result", target_handle="prompt"):
    return Edge(
        id=edge_id, source=source, source_handle=source_handle,
        target=target, target_handle=target_handle,
    )


@pytest.fixture
def linear_chain():
    """text-input "hi" -> generate-text.prompt"""
    nodes = [
        Node(id="a", type="text-input", config={"value": "hi"}),
        Node(id="b", type="generate-text", config={"model": "test-model"}),
    ]
    edges = [make_edge("e1", "a", "b")]
    return nodes, edges


@pytest.fixture
def content_pipeline():
    """article -> prompt-crafter -> generate-text -> visualize-text"""
    nodes = [
        Node(id="article", type="text-input", config={"value": "AI agents news"}),
        Node(
            id="crafter", type="prompt-crafter",
            config={"template": "Summarize: {{article}} {{unused}}"},
            dynamic_handles={"template-tags": [DynamicHandle(id="tag-1", name="article")]},
        ),
        Node(id="writer", type="generate-text", config={"model": "test-model"}),
        Node(id="view", type="visualize-text"),
    ]
    edges = [
        make_edge("e1", "article", "crafter", target_handle="tag-1"),
        make_edge("e2", "crafter", "writer"),
        make_edge("e3", "writer", "view", target_handle="input"),
    ]
    return nodes, edges
