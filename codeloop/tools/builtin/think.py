"""A tool that lets the model write down its reasoning."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from pydantic import Field

from codeloop.models.tools import ToolParameter
from codeloop.tools.base import Tool, ToolArguments


class ThinkArgs(ToolArguments):
    prompt: str = Field(min_length=1)


@dataclass
class ThinkOutput:
    reasoning: str


class ThinkTool(Tool[ThinkArgs]):
    """Echo the prompt back. Touches neither the filesystem nor the network."""

    name = "think"
    description = (
        "Think through a problem step by step. The text is recorded as "
        "reasoning and has no other effect."
    )
    parameters = [
        ToolParameter(
            name="prompt",
            type="string",
            description="Your reasoning",
        ),
    ]
    arguments_model = ThinkArgs
    read_only = True

    def requires_permission(self, input: dict[str, Any]) -> bool:
        return False

    async def run(self, args: ThinkArgs) -> ThinkOutput:
        return ThinkOutput(reasoning=args.prompt)
