"""Deterministic topological ordering (Kahn's algorithm)."""
from collections import deque

from .graph import Dependencies, Dependents, Node


def _kahn(
    nodes: list[Node],
    dependencies: Dependencies,
    dependents: Dependents,
) -> tuple[list[str], dict[str, int]]:
    in_degree: dict[str, int] = {}
    queue: deque[str] = deque()
    for node in nodes:
        degree = len(dependencies.get(node.id, []))
        in_degree[node.id] = degree
        if degree == 0:
            queue.append(node.id)

    order: list[str] = []
    while queue:
        node_id = queue.popleft()
        order.append(node_id)
        # One entry per edge, so parallel edges decrement once each
        for dependent in dependents.get(node_id, []):
            if dependent.node not in in_degree:
                continue
            in_degree[dependent.node] -= 1
            if in_degree[dependent.node] == 0:
                queue.append(dependent.node)

    return order, in_degree


def topological_sort(
    nodes: list[Node],
    dependencies: Dependencies,
    dependents: Dependents,
) -> list[str]:
    """Return node IDs in execution order.

    Zero in-degree nodes are seeded in node-list order, so the result is
    stable for a fixed input. A result shorter than ``nodes`` means some
    nodes never became ready (a cycle, or an edge from an unknown node).
    """
    order, _ = _kahn(nodes, dependencies, dependents)
    return order


def residual_nodes(
    nodes: list[Node],
    dependencies: Dependencies,
    dependents: Dependents,
) -> list[str]:
    """Node IDs whose in-degree never reaches zero, in node-list order."""
    _, in_degree = _kahn(nodes, dependencies, dependents)
    return [node_id for node_id, degree in in_degree.items() if degree > 0]
