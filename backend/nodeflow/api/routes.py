"""REST API routes."""
import logging
import uuid
from dataclasses import asdict

from fastapi import APIRouter, HTTPException
from fastapi.responses import JSONResponse, StreamingResponse

from ..engine.graph import Edge, Node
from ..engine.session import create_session, get_session, remove_session
from ..engine.validator import blocking_errors, prepare_workflow
from ..models.schemas import (
    EdgeSchema,
    ExecuteRequest,
    NodeDefinitionResponse,
    NodeSchema,
    ValidateRequest,
    ValidationErrorResponse,
    WorkflowDefinitionSchema,
)
from ..nodes.registry import NodeRegistry
from ..streaming.server import stream_workflow

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}


def _schema_to_graph(
    nodes: list[NodeSchema], edges: list[EdgeSchema],
) -> tuple[list[Node], list[Edge]]:
    return [n.to_node() for n in nodes], [e.to_edge() for e in edges]


@router.get("/nodes")
async def list_nodes():
    """Return the node-type catalog."""
    result = {}
    for name, defn in NodeRegistry.all_definitions().items():
        response = NodeDefinitionResponse.model_validate({
            **asdict(defn),
            "required_target_handles": defn.required_target_handles,
        })
        result[name] = response.dump()
    return result


@router.post("/workflow/validate")
async def validate_workflow(request: ValidateRequest):
    """Recompute the workflow definition for the current editor state."""
    nodes, edges = _schema_to_graph(request.nodes, request.edges)
    definition = prepare_workflow(nodes, edges, strict=request.strict)
    return WorkflowDefinitionSchema.from_definition(definition).dump()


@router.post("/workflow/execute")
async def execute_workflow(request: ExecuteRequest):
    """Run the workflow, streaming node state changes as server-sent events.

    The definition is re-derived in strict mode; structural errors are
    returned as a 422 instead of a stream.
    """
    workflow = request.workflow
    logger.info(
        "Received workflow execution request: %d nodes, %d edges, id=%s",
        len(workflow.nodes), len(workflow.edges), workflow.id,
    )
    nodes, edges = _schema_to_graph(workflow.nodes, workflow.edges)
    definition = prepare_workflow(nodes, edges, strict=True, workflow_id=workflow.id)

    errors = blocking_errors(definition)
    if errors:
        logger.info("Refusing to run workflow %s: %d errors", definition.id, len(errors))
        body = ValidationErrorResponse.model_validate({"errors": [asdict(e) for e in errors]})
        return JSONResponse(status_code=422, content=body.dump())

    # One session per run; a workflow id can be running more than once
    run_id = uuid.uuid4().hex
    session = create_session(run_id)
    logger.info("Starting run %s of workflow %s", run_id, definition.id)

    async def events():
        try:
            async for record in stream_workflow(definition, controller=session.controller):
                yield record
        finally:
            remove_session(run_id)

    return StreamingResponse(
        events(),
        media_type="text/event-stream",
        headers={**SSE_HEADERS, "X-Run-Id": run_id},
    )


@router.post("/workflow/{run_id}/cancel")
async def cancel_workflow(run_id: str):
    session = get_session(run_id)
    if not session:
        raise HTTPException(status_code=404, detail="Run not found or already completed")
    session.controller.cancel()
    return {"status": "cancelled"}
