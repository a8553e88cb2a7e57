"""Base node abstraction, handle specs and processor results."""
import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Mapping
from dataclasses import dataclass, field
from typing import Any, Callable, Union

from ..engine.graph import Node

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Success:
    sources: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Failure:
    message: str


ProcessorResult = Union[Success, Failure]

# What the engine calls: (node, targets) -> ProcessorResult.
# Plain dicts and None (no outputs) are also accepted from foreign processors.
Processor = Callable[[Node, Mapping[str, Any]], Awaitable[Any]]


class NodeProcessingError(Exception):
    """Raised by a node's ``process`` to fail only that node."""


@dataclass
class HandleSpec:
    required: bool = False
    description: str = ""
    # Dynamic handle group this port comes from, e.g. "template-tags"
    dynamic: str | None = None


@dataclass
class NodeDefinition:
    """Serializable node-type catalog entry."""
    id: str
    display_name: str
    category: str
    description: str
    target_handles: dict[str, HandleSpec]
    source_handles: dict[str, HandleSpec]

    @property
    def required_target_handles(self) -> list[str]:
        return [name for name, spec in self.target_handles.items() if spec.required]


class BaseNode(ABC):
    """Abstract base class for all node processors."""

    CATEGORY: str = "Uncategorized"
    DISPLAY_NAME: str = ""
    DESCRIPTION: str = ""

    @classmethod
    @abstractmethod
    def TARGET_HANDLES(cls) -> dict[str, HandleSpec]:
        ...

    @classmethod
    @abstractmethod
    def SOURCE_HANDLES(cls) -> dict[str, HandleSpec]:
        ...

    @abstractmethod
    async def process(self, node: Node, targets: Mapping[str, Any]) -> dict[str, Any] | None:
        ...

    @classmethod
    def static_sources(cls, node: Node) -> dict[str, Any] | None:
        """Outputs readable straight from config, without running the node.

        ``None`` means the node has to execute before its outputs exist.
        """
        return None

    async def __call__(self, node: Node, targets: Mapping[str, Any]) -> ProcessorResult:
        try:
            outputs = await self.process(node, targets)
        except NodeProcessingError as e:
            return Failure(str(e))
        except Exception as e:
            logger.exception("Processor for node %s (%s) raised", node.id, node.type)
            return Failure(str(e) or type(e).__name__)
        return Success(dict(outputs or {}))

    @classmethod
    def get_definition(cls, node_type: str) -> NodeDefinition:
        return NodeDefinition(
            id=node_type,
            display_name=cls.DISPLAY_NAME or cls.__name__,
            category=cls.CATEGORY,
            description=cls.DESCRIPTION or cls.__doc__ or "",
            target_handles=cls.TARGET_HANDLES(),
            source_handles=cls.SOURCE_HANDLES(),
        )
