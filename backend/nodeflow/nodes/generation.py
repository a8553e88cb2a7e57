"""Text generation node backed by a simulated model call."""
import asyncio
import logging
import random
from typing import Any

from ..config import settings
from ..engine.graph import DynamicHandle
from .base import BaseNode, HandleSpec, NodeProcessingError
from .registry import NodeRegistry

logger = logging.getLogger(__name__)

_CANNED_RESPONSES = [
    (
        "summarize",
        "This is a mocked concise summary of the provided article, highlighting "
        "the key points about AI agents and digital identity verification.",
    ),
    (
        "Instagram",
        "Introducing a new era of AI interactions! A new initiative links AI agents "
        "to digital identities, so interactions between humans and AI stay secure "
        "and personal. #AI #DigitalIdentity #FutureOfTech",
    ),
    (
        "Twitter",
        "Breaking news! AI agents are getting linked to digital identities for secure "
        "& personalized interactions. #AI #DigitalIdentity #FutureOfTech",
    ),
]


async def generate_text(
    prompt: str,
    system: str | None = None,
    model: str | None = None,
    tools: list[DynamicHandle] | None = None,
) -> dict[str, Any]:
    """Simulate a model call. Returns the output map keyed by source handle."""
    low, high = settings.generation_latency_min, settings.generation_latency_max
    delay = random.uniform(low, max(low, high))
    if delay > 0:
        await asyncio.sleep(delay)

    if tools:
        # A tool call leaves the main text empty; each tool answers on its own handle
        logger.info("Simulating tool call for %d tools", len(tools))
        outputs: dict[str, Any] = {"result": ""}
        for tool in tools:
            outputs[tool.id] = f"Mock result for tool: {tool.name}."
        return outputs

    for keyword, response in _CANNED_RESPONSES:
        if system and keyword in system:
            return {"result": response}
    model = model or settings.default_model
    return {"result": f"Generated content using {model}: {prompt[:100]}..."}


@NodeRegistry.register("generate-text")
class GenerateTextNode(BaseNode):
    CATEGORY = "Generation"
    DISPLAY_NAME = "Generate Text"
    DESCRIPTION = "Calls a language model with a prompt and optional system message."

    @classmethod
    def TARGET_HANDLES(cls):
        return {
            "prompt": HandleSpec(required=True, description="User prompt"),
            "system": HandleSpec(description="System message"),
        }

    @classmethod
    def SOURCE_HANDLES(cls):
        return {
            "result": HandleSpec(description="Generated text"),
            "tools": HandleSpec(dynamic="tools", description="One output per tool"),
        }

    async def process(self, node, targets):
        prompt = targets.get("prompt")
        if not prompt:
            raise NodeProcessingError("Prompt not found")

        return await generate_text(
            prompt=str(prompt),
            system=targets.get("system"),
            model=node.config.get("model"),
            tools=node.dynamic_handles.get("tools"),
        )
