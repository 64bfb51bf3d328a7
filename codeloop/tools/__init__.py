"""Tool contract, registry and built-in tools for CodeLoop."""

from codeloop.tools.base import Tool, ToolArguments
from codeloop.tools.permissions import (
    PermissionObserver,
    PermissionRequest,
    is_tool_approved,
)
from codeloop.tools.registry import ToolFactory, ToolRegistry, default_tool_registry

__all__ = [
    "Tool",
    "ToolArguments",
    "ToolFactory",
    "ToolRegistry",
    "default_tool_registry",
    "PermissionObserver",
    "PermissionRequest",
    "is_tool_approved",
]
