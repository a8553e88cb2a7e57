"""Pydantic schemas for API request/response models."""
from dataclasses import asdict
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from ..engine.graph import DynamicHandle, Edge, Node
from ..engine.state import ExecutionError, NodeExecutionState, NodeStatus
from ..engine.validator import WorkflowDefinition


class WireModel(BaseModel):
    """camelCase on the wire, snake_case in Python."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def dump(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class ExecutionErrorSchema(WireModel):
    message: str


class ExecutionStateSchema(WireModel):
    status: NodeStatus
    timestamp: str
    sources: dict[str, Any] | None = None
    targets: dict[str, Any] | None = None
    error: ExecutionErrorSchema | None = None

    @classmethod
    def from_state(cls, state: NodeExecutionState) -> "ExecutionStateSchema":
        return cls.model_validate(asdict(state))

    def to_state(self) -> NodeExecutionState:
        return NodeExecutionState(
            status=self.status,
            timestamp=self.timestamp,
            sources=self.sources,
            targets=self.targets,
            error=ExecutionError(self.error.message) if self.error else None,
        )


class DynamicHandleSchema(WireModel):
    id: str
    name: str
    description: str | None = None


class NodeSchema(WireModel):
    id: str
    type: str
    config: dict[str, Any] = {}
    dynamic_handles: dict[str, list[DynamicHandleSchema]] = {}
    execution_state: ExecutionStateSchema | None = None
    position: dict[str, float] | None = None

    @model_validator(mode="before")
    @classmethod
    def _lift_editor_data(cls, value: Any) -> Any:
        # Editor nodes nest everything under "data"
        if isinstance(value, dict) and isinstance(value.get("data"), dict):
            value = dict(value)
            data = value.pop("data")
            for key in ("config", "dynamicHandles", "executionState"):
                if key in data and key not in value:
                    value[key] = data[key]
        return value

    def to_node(self) -> Node:
        return Node(
            id=self.id,
            type=self.type,
            config=dict(self.config),
            dynamic_handles={
                group: [DynamicHandle(h.id, h.name, h.description) for h in handles]
                for group, handles in self.dynamic_handles.items()
            },
            execution_state=self.execution_state.to_state() if self.execution_state else None,
        )


class EdgeSchema(WireModel):
    id: str
    source: str
    target: str
    # Half-drawn edges arrive without handles
    source_handle: str | None = ""
    target_handle: str | None = ""

    def to_edge(self) -> Edge:
        return Edge(
            id=self.id,
            source=self.source,
            source_handle=self.source_handle or "",
            target=self.target,
            target_handle=self.target_handle or "",
        )


class WorkflowSchema(WireModel):
    id: str | None = None
    nodes: list[NodeSchema]
    edges: list[EdgeSchema] = []
    # Accepted for compatibility; the server always re-derives the order
    execution_order: list[str] | None = None


class ExecuteRequest(BaseModel):
    workflow: WorkflowSchema


class ValidateRequest(WireModel):
    nodes: list[NodeSchema]
    edges: list[EdgeSchema] = []
    strict: bool = False


class EdgeInfoSchema(WireModel):
    id: str
    source: str
    target: str
    source_handle: str
    target_handle: str


class MultipleSourcesErrorSchema(WireModel):
    type: Literal["multiple-sources-for-target-handle"]
    message: str
    edges: list[EdgeInfoSchema]


class CycleErrorSchema(WireModel):
    type: Literal["cycle"]
    message: str
    edges: list[EdgeInfoSchema]


class NodeErrorInfoSchema(WireModel):
    id: str
    handle_id: str


class MissingConnectionErrorSchema(WireModel):
    type: Literal["missing-required-connection"]
    message: str
    node: NodeErrorInfoSchema


WorkflowErrorSchema = Annotated[
    Union[MultipleSourcesErrorSchema, CycleErrorSchema, MissingConnectionErrorSchema],
    Field(discriminator="type"),
]


class DependencySchema(WireModel):
    node: str
    source_handle: str


class DependentSchema(WireModel):
    node: str
    target_handle: str


class WorkflowDefinitionSchema(WireModel):
    id: str
    nodes: list[NodeSchema]
    edges: list[EdgeSchema]
    execution_order: list[str]
    dependencies: dict[str, list[DependencySchema]]
    dependents: dict[str, list[DependentSchema]]
    errors: list[WorkflowErrorSchema]

    @classmethod
    def from_definition(cls, definition: WorkflowDefinition) -> "WorkflowDefinitionSchema":
        return cls.model_validate(asdict(definition))


class ValidationErrorResponse(WireModel):
    errors: list[WorkflowErrorSchema] = Field(default_factory=list)


class HandleSchema(WireModel):
    required: bool
    description: str = ""
    dynamic: str | None = None


class NodeDefinitionResponse(WireModel):
    id: str
    display_name: str
    category: str
    description: str
    target_handles: dict[str, HandleSchema]
    source_handles: dict[str, HandleSchema]
    required_target_handles: list[str]
