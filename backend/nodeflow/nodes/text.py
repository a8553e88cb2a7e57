"""Plain text sources and sinks."""
from collections.abc import Mapping
from typing import Any

from ..engine.graph import Node
from .base import BaseNode, HandleSpec
from .registry import NodeRegistry


@NodeRegistry.register("text-input")
class TextInputNode(BaseNode):
    """Static text typed into the node; feeds downstream nodes directly."""
    CATEGORY = "Input"
    DISPLAY_NAME = "Text Input"

    @classmethod
    def TARGET_HANDLES(cls):
        return {}

    @classmethod
    def SOURCE_HANDLES(cls):
        return {"result": HandleSpec(description="The configured text")}

    @classmethod
    def static_sources(cls, node: Node) -> dict[str, Any] | None:
        if "value" not in node.config:
            return {}
        return {"result": node.config["value"]}

    async def process(self, node, targets):
        return self.static_sources(node)


@NodeRegistry.register("visualize-text")
class VisualizeTextNode(BaseNode):
    """Displays whatever text arrives on its input."""
    CATEGORY = "Output"
    DISPLAY_NAME = "Visualize Text"

    @classmethod
    def TARGET_HANDLES(cls):
        return {"input": HandleSpec(description="Text to display")}

    @classmethod
    def SOURCE_HANDLES(cls):
        return {}

    async def process(self, node: Node, targets: Mapping[str, Any]) -> None:
        return None
