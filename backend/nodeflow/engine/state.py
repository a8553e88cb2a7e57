"""Per-node execution state and the events the engine emits."""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class NodeStatus(str, Enum):
    IDLE = "idle"
    PROCESSING = "processing"
    SUCCESS = "success"
    ERROR = "error"
    SKIPPED = "skipped"


@dataclass
class ExecutionError:
    message: str


@dataclass
class NodeExecutionState:
    status: NodeStatus
    timestamp: str = field(default_factory=utc_now_iso)
    # Outputs of this node, keyed by source handle
    sources: dict[str, Any] | None = None
    # Resolved inputs fed to this node, keyed by target handle
    targets: dict[str, Any] | None = None
    error: ExecutionError | None = None

    @classmethod
    def idle(cls) -> "NodeExecutionState":
        return cls(status=NodeStatus.IDLE)


@dataclass(frozen=True)
class NodeUpdate:
    node_id: str
    state: NodeExecutionState


@dataclass(frozen=True)
class RunComplete:
    timestamp: str


@dataclass
class RunResult:
    states: dict[str, NodeExecutionState]
    completed_at: str | None = None
    cancelled: bool = False
