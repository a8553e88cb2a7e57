"""Event-stream records exchanged between the run endpoint and its clients.

Each record is ``"data: " + JSON + "\\n\\n"``. The JSON payload is one of
``nodeUpdate``, ``error`` or ``complete``; ``complete`` is always last.
"""
import json
from typing import Annotated, Literal, Union

from pydantic import Field, TypeAdapter, ValidationError

from ..engine.state import NodeUpdate, RunComplete
from ..models.schemas import ExecutionStateSchema, WireModel

DATA_PREFIX = "data: "
RECORD_SEPARATOR = "\n\n"


class StreamError(Exception):
    """Base class for failures while consuming a workflow event stream."""


class StreamProtocolError(StreamError):
    """A record could not be parsed."""


class StreamTransportError(StreamError):
    """The connection failed or the server refused the run."""

    def __init__(self, message: str, status_code: int | None = None, errors: list | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.errors = errors or []


class NodeUpdateEvent(WireModel):
    type: Literal["nodeUpdate"] = "nodeUpdate"
    node_id: str
    execution_state: ExecutionStateSchema

    @classmethod
    def from_update(cls, update: NodeUpdate) -> "NodeUpdateEvent":
        return cls(
            node_id=update.node_id,
            execution_state=ExecutionStateSchema.from_state(update.state),
        )


class ErrorEvent(WireModel):
    type: Literal["error"] = "error"
    error: str


class CompleteEvent(WireModel):
    type: Literal["complete"] = "complete"
    timestamp: str

    @classmethod
    def from_complete(cls, complete: RunComplete) -> "CompleteEvent":
        return cls(timestamp=complete.timestamp)


WorkflowEvent = Annotated[
    Union[NodeUpdateEvent, ErrorEvent, CompleteEvent],
    Field(discriminator="type"),
]

_event_adapter = TypeAdapter(WorkflowEvent)


def encode_event(event: WireModel) -> str:
    return f"{DATA_PREFIX}{json.dumps(event.dump())}{RECORD_SEPARATOR}"


def parse_event(record: str) -> WorkflowEvent:
    """Parse one record (without its trailing blank line).

    Multiple ``data:`` lines are joined with newlines into a single payload.
    """
    lines = [line[len(DATA_PREFIX):] for line in record.splitlines() if line.startswith(DATA_PREFIX)]
    if not lines:
        raise StreamProtocolError(f"Record has no data line: {record!r}")
    payload = "\n".join(lines)
    try:
        return _event_adapter.validate_json(payload)
    except ValidationError as e:
        raise StreamProtocolError(f"Malformed event record: {payload!r}") from e


class EventStreamDecoder:
    """Incremental decoder; chunks may split records anywhere."""

    def __init__(self):
        self._buffer = ""

    def feed(self, chunk: str) -> list[WorkflowEvent]:
        # Normalize after joining so a CRLF split across reads is still caught;
        # a trailing lone "\r" waits for its "\n"
        self._buffer = (self._buffer + chunk).replace("\r\n", "\n")
        *records, self._buffer = self._buffer.split(RECORD_SEPARATOR)
        return [parse_event(record) for record in records if record.strip()]

    @property
    def pending(self) -> str:
        return self._buffer
