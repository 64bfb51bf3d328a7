"""Tool declarations advertised to model clients."""

from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass
class ToolParameter:
    """A parameter for a tool."""

    name: str
    type: str  # 'string', 'integer', 'number', 'boolean', 'array', 'object'
    description: str
    required: bool = True
    enum: Optional[list[str]] = None
    items: Optional[dict[str, Any]] = None  # For array types
    any_of: Optional[list[dict[str, Any]]] = None  # For union-typed parameters

    def to_json_schema(self) -> dict[str, Any]:
        """Convert to JSON Schema format."""
        schema: dict[str, Any] = {"description": self.description}
        if self.any_of:
            schema["anyOf"] = self.any_of
        else:
            schema["type"] = self.type
        if self.enum:
            schema["enum"] = self.enum
        if self.items:
            schema["items"] = self.items
        return schema


@dataclass
class ToolDefinition:
    """Definition of a tool that can be called by models."""

    name: str
    description: str
    parameters: list[ToolParameter] = field(default_factory=list)

    def json_schema(self) -> dict[str, Any]:
        """Build JSON schema for parameters."""
        properties = {}
        required = []

        for param in self.parameters:
            properties[param.name] = param.to_json_schema()
            if param.required:
                required.append(param.name)

        schema: dict[str, Any] = {
            "type": "object",
            "properties": properties,
        }
        if required:
            schema["required"] = required

        return schema

    def to_openai(self) -> dict[str, Any]:
        """Convert to OpenAI function/tool format.

        OpenAI format:
        {
            "type": "function",
            "function": {
                "name": "tool_name",
                "description": "tool description",
                "parameters": {
                    "type": "object",
                    "properties": {...},
                    "required": [...]
                }
            }
        }
        """
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.json_schema(),
            },
        }


def tools_to_openai(tools: list[ToolDefinition]) -> list[dict[str, Any]]:
    """Convert a list of tools to OpenAI format."""
    return [tool.to_openai() for tool in tools]
