"""Turn an engine run into an event stream (single producer, single consumer)."""
import asyncio
import logging
from collections.abc import AsyncIterator, Mapping

from ..engine.executor import RunEvent, execute_workflow
from ..engine.session import RunController
from ..engine.state import NodeUpdate
from ..engine.validator import WorkflowDefinition
from ..nodes.base import Processor
from ..models.schemas import WireModel
from .events import CompleteEvent, ErrorEvent, NodeUpdateEvent, encode_event

logger = logging.getLogger(__name__)

CANCELLED_MESSAGE = "Workflow execution cancelled"


def to_wire_event(event: RunEvent) -> WireModel:
    if isinstance(event, NodeUpdate):
        return NodeUpdateEvent.from_update(event)
    return CompleteEvent.from_complete(event)


async def stream_workflow(
    definition: WorkflowDefinition,
    controller: RunController | None = None,
    processors: Mapping[str, Processor] | None = None,
) -> AsyncIterator[str]:
    """Yield encoded records for one run of ``definition``.

    The engine runs as a background task feeding a queue; records are yielded
    as soon as they are produced. Closing this generator early cancels the run.
    """
    controller = controller or RunController()
    queue: asyncio.Queue = asyncio.Queue()

    async def run():
        try:
            result = await execute_workflow(
                definition,
                observer=lambda event: queue.put_nowait(to_wire_event(event)),
                processors=processors,
                controller=controller,
            )
            if result.cancelled:
                queue.put_nowait(ErrorEvent(error=CANCELLED_MESSAGE))
        except Exception as e:
            logger.exception("Workflow %s execution error", definition.id)
            queue.put_nowait(ErrorEvent(error=str(e) or "Unknown error"))
        finally:
            # End of stream
            queue.put_nowait(None)

    task = asyncio.create_task(run())
    try:
        while True:
            event = await queue.get()
            if event is None:
                break
            yield encode_event(event)
    finally:
        if not task.done():
            logger.info("Stream for workflow %s closed early, cancelling run", definition.id)
            controller.cancel()
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
