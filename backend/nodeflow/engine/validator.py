"""Workflow validation: fan-in collisions, cycles, required inputs."""
import logging
import uuid
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Literal, Union

from ..nodes.registry import NodeRegistry
from .graph import (
    ConnectionMap,
    Dependencies,
    Dependents,
    Edge,
    Node,
    build_dependency_graph,
    connection_key,
)
from .scheduler import residual_nodes, topological_sort

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EdgeInfo:
    id: str
    source: str
    target: str
    source_handle: str
    target_handle: str

    @classmethod
    def from_edge(cls, edge: Edge) -> "EdgeInfo":
        return cls(
            id=edge.id,
            source=edge.source,
            target=edge.target,
            source_handle=edge.source_handle or "",
            target_handle=edge.target_handle or "",
        )


@dataclass(frozen=True)
class NodeErrorInfo:
    id: str
    handle_id: str


@dataclass(frozen=True)
class MultipleSourcesError:
    message: str
    edges: list[EdgeInfo]
    type: Literal["multiple-sources-for-target-handle"] = "multiple-sources-for-target-handle"


@dataclass(frozen=True)
class CycleError:
    message: str
    edges: list[EdgeInfo]
    type: Literal["cycle"] = "cycle"


@dataclass(frozen=True)
class MissingConnectionError:
    message: str
    node: NodeErrorInfo
    type: Literal["missing-required-connection"] = "missing-required-connection"


WorkflowError = Union[MultipleSourcesError, CycleError, MissingConnectionError]


@dataclass(frozen=True)
class WorkflowDefinition:
    """Validated snapshot of a workflow. Recompute it, never mutate it."""
    id: str
    nodes: list[Node]
    edges: list[Edge]
    execution_order: list[str]
    dependencies: Dependencies = field(default_factory=dict)
    dependents: Dependents = field(default_factory=dict)
    errors: list[WorkflowError] = field(default_factory=list)


class WorkflowValidationError(Exception):
    def __init__(self, errors: list[WorkflowError]):
        self.errors = errors
        messages = [e.message for e in errors]
        super().__init__(f"Workflow validation failed: {messages}")


def validate_multiple_sources(connection_map: ConnectionMap) -> list[MultipleSourcesError]:
    errors: list[MultipleSourcesError] = []
    for edges in connection_map.values():
        if len(edges) <= 1:
            continue
        first = edges[0]
        errors.append(MultipleSourcesError(
            message=(
                f'Target handle "{first.target_handle}" on node "{first.target}" '
                f"has {len(edges)} sources."
            ),
            edges=[EdgeInfo.from_edge(e) for e in edges],
        ))
    return errors


def detect_cycles(
    nodes: list[Node],
    dependencies: Dependencies,
    dependents: Dependents,
    edges: list[Edge],
) -> list[CycleError]:
    """Report the edges trapped among nodes Kahn's algorithm never releases.

    A short execution order with no edges among the residual nodes yields no
    error at all.
    """
    order = topological_sort(nodes, dependencies, dependents)
    if len(order) == len(nodes):
        return []

    cycle_nodes = residual_nodes(nodes, dependencies, dependents)
    members = set(cycle_nodes)
    cycle_edges = [e for e in edges if e.source in members and e.target in members]
    if not cycle_edges:
        logger.debug(
            "Execution order is short but no edges join residual nodes %s", cycle_nodes,
        )
        return []

    return [CycleError(
        message=f"Workflow contains cycles between nodes: {', '.join(cycle_nodes)}",
        edges=[EdgeInfo.from_edge(e) for e in cycle_edges],
    )]


def validate_required_handles(
    nodes: list[Node],
    connection_map: ConnectionMap,
    required_targets: Mapping[str, Sequence[str]],
    strict: bool = False,
) -> list[MissingConnectionError]:
    # Incomplete graphs are legal while editing
    if not strict:
        return []

    errors: list[MissingConnectionError] = []
    for node in nodes:
        required = required_targets.get(node.type)
        if not required:
            continue
        for handle_id in required:
            if connection_map.get(connection_key(node.id, handle_id)):
                continue
            errors.append(MissingConnectionError(
                message=f'Node "{node.id}" requires a connection to its "{handle_id}" input.',
                node=NodeErrorInfo(id=node.id, handle_id=handle_id),
            ))
    return errors


def prepare_workflow(
    nodes: list[Node],
    edges: list[Edge],
    strict: bool = False,
    required_targets: Mapping[str, Sequence[str]] | None = None,
    workflow_id: str | None = None,
) -> WorkflowDefinition:
    """Validate (nodes, edges) and compute the execution order.

    ``strict`` adds the required-connection check; use it right before a run.
    ``required_targets`` defaults to what the registered node types declare.
    """
    if required_targets is None:
        required_targets = NodeRegistry.required_targets()

    dependencies, dependents, connection_map = build_dependency_graph(edges)

    errors: list[WorkflowError] = []
    errors.extend(validate_multiple_sources(connection_map))
    cycle_errors = detect_cycles(nodes, dependencies, dependents, edges)
    errors.extend(cycle_errors)
    errors.extend(validate_required_handles(nodes, connection_map, required_targets, strict))

    execution_order = (
        [] if cycle_errors else topological_sort(nodes, dependencies, dependents)
    )

    return WorkflowDefinition(
        id=workflow_id or uuid.uuid4().hex,
        nodes=list(nodes),
        edges=list(edges),
        execution_order=execution_order,
        dependencies=dependencies,
        dependents=dependents,
        errors=errors,
    )


def blocking_errors(definition: WorkflowDefinition) -> list[WorkflowError]:
    """Errors that prevent a run from starting.

    Every structural error kind blocks; missing connections only exist here
    when the definition was prepared in strict mode.
    """
    return list(definition.errors)
