"""Graph data structures for the workflow engine."""
from dataclasses import dataclass, field
from typing import Any

from .state import NodeExecutionState


@dataclass
class DynamicHandle:
    id: str
    name: str
    description: str | None = None


@dataclass
class Node:
    id: str
    type: str
    config: dict[str, Any] = field(default_factory=dict)
    # Edit-time ports, e.g. {"tools": [...], "template-tags": [...]}
    dynamic_handles: dict[str, list[DynamicHandle]] = field(default_factory=dict)
    # Only written by whoever applies streamed updates; the engine keeps its own table
    execution_state: NodeExecutionState | None = None


@dataclass
class Edge:
    id: str
    source: str
    source_handle: str
    target: str
    target_handle: str

    @property
    def is_connected(self) -> bool:
        """Edges with a blank handle on either end are still being drawn."""
        return bool(self.source_handle) and bool(self.target_handle)


@dataclass(frozen=True)
class Dependency:
    node: str
    source_handle: str


@dataclass(frozen=True)
class Dependent:
    node: str
    target_handle: str


Dependencies = dict[str, list[Dependency]]
Dependents = dict[str, list[Dependent]]
ConnectionMap = dict[str, list[Edge]]


def connection_key(node_id: str, handle_id: str) -> str:
    return f"{node_id}-{handle_id}"


def build_dependency_graph(
    edges: list[Edge],
) -> tuple[Dependencies, Dependents, ConnectionMap]:
    """Build adjacency maps and per-target-handle connections in one pass.

    Only nodes that have at least one connected edge get an entry; callers
    must treat a missing key as an empty list.
    """
    dependencies: Dependencies = {}
    dependents: Dependents = {}
    connection_map: ConnectionMap = {}

    for edge in edges:
        if not edge.is_connected:
            continue
        key = connection_key(edge.target, edge.target_handle)
        connection_map.setdefault(key, []).append(edge)
        dependencies.setdefault(edge.target, []).append(
            Dependency(node=edge.source, source_handle=edge.source_handle)
        )
        dependents.setdefault(edge.source, []).append(
            Dependent(node=edge.target, target_handle=edge.target_handle)
        )

    return dependencies, dependents, connection_map


def incoming_edges(edges: list[Edge]) -> dict[str, list[Edge]]:
    """Group connected edges by target node, preserving edge order."""
    grouped: dict[str, list[Edge]] = {}
    for edge in edges:
        if edge.is_connected:
            grouped.setdefault(edge.target, []).append(edge)
    return grouped
