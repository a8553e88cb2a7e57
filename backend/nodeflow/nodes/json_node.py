"""Static JSON document node."""
import json

from .base import BaseNode, HandleSpec, NodeProcessingError
from .registry import NodeRegistry


@NodeRegistry.register("json-node")
class JsonNode(BaseNode):
    """Validates the configured JSON and emits it pretty-printed."""
    CATEGORY = "Input"
    DISPLAY_NAME = "JSON"

    @classmethod
    def TARGET_HANDLES(cls):
        return {"input": HandleSpec()}

    @classmethod
    def SOURCE_HANDLES(cls):
        return {"result": HandleSpec(description="Formatted JSON text")}

    async def process(self, node, targets):
        try:
            data = json.loads(node.config.get("json", ""))
        except (TypeError, ValueError) as e:
            raise NodeProcessingError(f"Invalid JSON: {e}") from e
        return {"result": json.dumps(data, indent=2)}
