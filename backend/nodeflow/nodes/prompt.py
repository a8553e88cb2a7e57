"""Prompt templating node."""
import re

from .base import BaseNode, HandleSpec, NodeProcessingError
from .registry import NodeRegistry

_LEFTOVER_TAG = re.compile(r"\{\{[^}]+\}\}")


@NodeRegistry.register("prompt-crafter")
class PromptCrafterNode(BaseNode):
    """Fills ``{{tag}}`` placeholders in a template.

    Each tag is a dynamic target handle in the ``template-tags`` group; the
    value arriving on a handle replaces ``{{<handle name>}}``. Placeholders
    that received nothing are removed from the output.
    """
    CATEGORY = "Prompt"
    DISPLAY_NAME = "Prompt Crafter"

    @classmethod
    def TARGET_HANDLES(cls):
        return {"template-tags": HandleSpec(dynamic="template-tags")}

    @classmethod
    def SOURCE_HANDLES(cls):
        return {"result": HandleSpec(description="The filled-in template")}

    async def process(self, node, targets):
        template = str(node.config.get("template", ""))
        tags = node.dynamic_handles.get("template-tags", [])
        for target_id, value in targets.items():
            tag = next((t for t in tags if t.id == target_id), None)
            if tag is None:
                raise NodeProcessingError(f"Tag with id {target_id} not found")
            template = template.replace(f"{{{{{tag.name}}}}}", str(value))

        return {"result": _LEFTOVER_TAG.sub("", template)}
