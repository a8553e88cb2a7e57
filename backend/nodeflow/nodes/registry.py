"""Node registry with auto-discovery."""
import importlib
import pkgutil
from typing import Any

from ..engine.graph import Node
from .base import BaseNode, NodeDefinition, Processor


class NodeRegistry:
    """Singleton registry mapping node type strings to BaseNode subclasses."""

    _nodes: dict[str, type[BaseNode]] = {}

    @classmethod
    def register(cls, node_type: str | None = None):
        """Decorator to register a node class.

        Usage:
            @NodeRegistry.register("text-input")
            class TextInputNode(BaseNode):
                ...
        """
        def decorator(node_cls: type[BaseNode]) -> type[BaseNode]:
            name = node_type or node_cls.__name__
            cls._nodes[name] = node_cls
            return node_cls
        return decorator

    @classmethod
    def get(cls, node_type: str) -> type[BaseNode]:
        if node_type not in cls._nodes:
            raise KeyError(f"Unknown node type: {node_type}")
        return cls._nodes[node_type]

    @classmethod
    def create(cls, node_type: str) -> BaseNode:
        return cls.get(node_type)()

    @classmethod
    def processors(cls) -> dict[str, Processor]:
        return {name: node_cls() for name, node_cls in cls._nodes.items()}

    @classmethod
    def static_sources(cls, node: Node) -> dict[str, Any] | None:
        node_cls = cls._nodes.get(node.type)
        if node_cls is None:
            return None
        return node_cls.static_sources(node)

    @classmethod
    def all_definitions(cls) -> dict[str, NodeDefinition]:
        return {
            name: node_cls.get_definition(name)
            for name, node_cls in cls._nodes.items()
        }

    @classmethod
    def required_targets(cls) -> dict[str, list[str]]:
        """Node type -> target handles that must be connected at run time."""
        result = {}
        for name, definition in cls.all_definitions().items():
            if definition.required_target_handles:
                result[name] = definition.required_target_handles
        return result

    @classmethod
    def discover(cls, package_name: str) -> None:
        """Import all modules in the given package to trigger @register decorators."""
        try:
            package = importlib.import_module(package_name)
        except ImportError:
            return
        if not hasattr(package, "__path__"):
            return
        for _, module_name, _ in pkgutil.iter_modules(package.__path__):
            if module_name.startswith("_") or module_name in ("base", "registry"):
                continue
            importlib.import_module(f"{package_name}.{module_name}")
