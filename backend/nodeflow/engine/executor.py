"""Execution engine: walk the execution order and run each node's processor."""
import asyncio
import inspect
import logging
from collections.abc import Mapping
from typing import Any, Callable, Union

from ..config import settings
from ..nodes.base import Failure, Processor, ProcessorResult, Success
from ..nodes.registry import NodeRegistry
from .graph import Edge, Node, incoming_edges
from .session import RunController
from .state import (
    ExecutionError,
    NodeExecutionState,
    NodeStatus,
    NodeUpdate,
    RunComplete,
    RunResult,
    utc_now_iso,
)
from .validator import WorkflowDefinition, WorkflowValidationError, blocking_errors

logger = logging.getLogger(__name__)

RunEvent = Union[NodeUpdate, RunComplete]
# Sync or async; called once per state transition, in order
Observer = Callable[[RunEvent], Any]
StaticSources = Callable[[Node], dict[str, Any] | None]

_MISSING = object()


async def _emit(observer: Observer | None, event: RunEvent) -> None:
    if observer is None:
        return
    result = observer(event)
    if inspect.isawaitable(result):
        await result


def _as_result(value: Any) -> ProcessorResult:
    if isinstance(value, (Success, Failure)):
        return value
    if value is None:
        return Success({})
    if isinstance(value, Mapping):
        return Success(dict(value))
    return Failure(f"Processor returned {type(value).__name__}, expected a mapping")


async def _invoke(
    processor: Processor | None,
    node: Node,
    targets: dict[str, Any],
) -> ProcessorResult:
    if processor is None:
        return Failure(f"No processor found for node type {node.type}")
    try:
        # Processors get a copy so the recorded targets stay intact
        value = await processor(node, dict(targets))
    except Exception as e:
        logger.exception("Error processing node %s", node.id)
        return Failure(str(e) or type(e).__name__)
    return _as_result(value)


def _resolve_input(
    edge: Edge,
    nodes: dict[str, Node],
    states: dict[str, NodeExecutionState],
    static_sources: StaticSources,
) -> Any:
    source = nodes.get(edge.source)
    if source is None:
        logger.debug("Source node %s not found for edge %s", edge.source, edge.id)
        return _MISSING

    static = static_sources(source)
    if static is not None:
        return static.get(edge.source_handle, _MISSING)

    state = states.get(source.id)
    if state is None or state.status != NodeStatus.SUCCESS or not state.sources:
        return _MISSING
    return state.sources.get(edge.source_handle, _MISSING)


def resolve_targets(
    edges: list[Edge],
    nodes: dict[str, Node],
    states: dict[str, NodeExecutionState],
    static_sources: StaticSources = NodeRegistry.static_sources,
) -> dict[str, Any] | None:
    """Collect a node's inputs keyed by target handle.

    Returns None when any incoming edge has no value to deliver.
    """
    targets: dict[str, Any] = {}
    for edge in edges:
        value = _resolve_input(edge, nodes, states, static_sources)
        if value is _MISSING:
            return None
        targets[edge.target_handle] = value
    return targets


async def execute_workflow(
    definition: WorkflowDefinition,
    observer: Observer | None = None,
    processors: Mapping[str, Processor] | None = None,
    controller: RunController | None = None,
    static_sources: StaticSources = NodeRegistry.static_sources,
) -> RunResult:
    """Run every node of ``definition`` sequentially in execution order.

    A node whose inputs are unavailable is skipped, a failing processor only
    marks its own node as errored; neither stops the run. Raises
    WorkflowValidationError if the definition carries structural errors.
    """
    errors = blocking_errors(definition)
    if errors:
        raise WorkflowValidationError(errors)

    if processors is None:
        processors = NodeRegistry.processors()

    nodes = {node.id: node for node in definition.nodes}
    states = {node_id: NodeExecutionState.idle() for node_id in nodes}
    incoming = incoming_edges(definition.edges)

    logger.info(
        "Starting workflow %s: %d nodes, order %s",
        definition.id, len(nodes), definition.execution_order,
    )

    for node_id in definition.execution_order:
        if controller is not None and controller.cancelled:
            logger.info("Workflow %s cancelled before node %s", definition.id, node_id)
            return RunResult(states=states, cancelled=True)

        node = nodes.get(node_id)
        if node is None:
            logger.warning("Node %s in execution order not found in workflow", node_id)
            continue

        targets = resolve_targets(incoming.get(node_id, []), nodes, states, static_sources)
        if targets is None:
            logger.info("Skipping node %s: input dependencies not met", node_id)
            states[node_id] = NodeExecutionState(status=NodeStatus.SKIPPED)
            await _emit(observer, NodeUpdate(node_id, states[node_id]))
            continue

        states[node_id] = NodeExecutionState(status=NodeStatus.PROCESSING, targets=targets)
        await _emit(observer, NodeUpdate(node_id, states[node_id]))

        if settings.processing_delay > 0:
            await asyncio.sleep(settings.processing_delay)

        result = await _invoke(processors.get(node.type), node, targets)
        if isinstance(result, Success):
            states[node_id] = NodeExecutionState(
                status=NodeStatus.SUCCESS, sources=result.sources, targets=targets,
            )
        else:
            logger.warning("Node %s failed: %s", node_id, result.message)
            states[node_id] = NodeExecutionState(
                status=NodeStatus.ERROR,
                targets=targets,
                error=ExecutionError(message=result.message),
            )
        await _emit(observer, NodeUpdate(node_id, states[node_id]))

    completed_at = utc_now_iso()
    logger.info("Workflow %s completed", definition.id)
    await _emit(observer, RunComplete(timestamp=completed_at))
    return RunResult(states=states, completed_at=completed_at)
