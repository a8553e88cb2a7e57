"""Client for the workflow run endpoint.

Consumes the event stream incrementally and dispatches each record to a
handler object. There is no resumption: after a dropped connection the
workflow has to be run again from scratch.
"""
import asyncio
import logging
from typing import Any, Protocol

import httpx

from ..config import settings
from ..engine.graph import Node
from ..models.schemas import ExecutionStateSchema
from .events import (
    CompleteEvent,
    ErrorEvent,
    EventStreamDecoder,
    NodeUpdateEvent,
    StreamError,
    StreamTransportError,
)

logger = logging.getLogger(__name__)

EXECUTE_PATH = "/api/workflow/execute"


class ExecutionEventHandlers(Protocol):
    def on_node_update(self, node_id: str, state: ExecutionStateSchema) -> None: ...

    def on_error(self, error: Exception) -> None: ...

    def on_complete(self, timestamp: str) -> None: ...


class WorkflowExecutionClient:
    """Runs a workflow on the server and relays its progress.

    ``connect`` returns once the stream is over: after ``complete``, after
    the first error, or after ``disconnect``.
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = (base_url or settings.client_base_url).rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self._task: asyncio.Task | None = None
        self._closed = False

    async def connect(self, workflow: dict[str, Any], handlers: ExecutionEventHandlers) -> None:
        self._closed = False
        self._task = asyncio.current_task()
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            ) as client:
                async with client.stream(
                    "POST",
                    EXECUTE_PATH,
                    json={"workflow": workflow},
                    headers={"Accept": "text/event-stream"},
                ) as response:
                    if response.status_code != 200:
                        await response.aread()
                        raise _refused(response)
                    await self._consume(response, handlers)
        except asyncio.CancelledError:
            if not self._closed:
                raise
            logger.info("Workflow stream disconnected")
        except StreamError as e:
            logger.warning("Workflow stream failed: %s", e)
            handlers.on_error(e)
        except httpx.HTTPError as e:
            logger.warning("Workflow stream connection error: %s", e)
            handlers.on_error(StreamTransportError(f"Connection to {self.base_url} failed: {e}"))
        finally:
            self._task = None
            self._closed = True

    async def _consume(self, response: httpx.Response, handlers: ExecutionEventHandlers) -> None:
        decoder = EventStreamDecoder()
        async for chunk in response.aiter_text():
            for event in decoder.feed(chunk):
                if isinstance(event, NodeUpdateEvent):
                    handlers.on_node_update(event.node_id, event.execution_state)
                elif isinstance(event, ErrorEvent):
                    handlers.on_error(StreamError(event.error))
                    self._closed = True
                elif isinstance(event, CompleteEvent):
                    handlers.on_complete(event.timestamp)
                    self._closed = True
                if self._closed:
                    return
        if decoder.pending.strip():
            raise StreamTransportError("Stream ended in the middle of a record")

    def disconnect(self) -> None:
        """Stop delivering events. Safe to call from a handler or another task."""
        self._closed = True
        task = self._task
        if task is not None and task is not asyncio.current_task() and not task.done():
            task.cancel()


def _refused(response: httpx.Response) -> StreamTransportError:
    errors: list = []
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        errors = body.get("errors") or []
    return StreamTransportError(
        f"Workflow run refused with status {response.status_code}",
        status_code=response.status_code,
        errors=errors,
    )


class NodeStateTracker:
    """Handler that applies streamed states onto a local copy of the nodes."""

    def __init__(self, nodes: list[Node]):
        self.nodes = {node.id: node for node in nodes}
        self.updates: list[tuple[str, ExecutionStateSchema]] = []
        self.errors: list[Exception] = []
        self.completed_at: str | None = None

    def on_node_update(self, node_id: str, state: ExecutionStateSchema) -> None:
        self.updates.append((node_id, state))
        node = self.nodes.get(node_id)
        if node is None:
            logger.warning("Update for unknown node %s", node_id)
            return
        node.execution_state = state.to_state()

    def on_error(self, error: Exception) -> None:
        self.errors.append(error)

    def on_complete(self, timestamp: str) -> None:
        self.completed_at = timestamp

    def status_of(self, node_id: str) -> str | None:
        state = self.nodes[node_id].execution_state
        return state.status.value if state else None
