"""Tool registry mapping tool names to factories.

The registry is an explicitly constructed value handed to each session. It
is populated once, frozen, and then only read, so several sessions may share
one registry without locking. Every lookup builds a fresh tool instance, so
no state leaks from one invocation to the next.
"""

from __future__ import annotations

import functools
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from codeloop.models.tools import ToolDefinition
from codeloop.tools.base import Tool

logger = logging.getLogger(__name__)

# A zero-argument callable producing a new tool instance
ToolFactory = Callable[[], Tool]


@dataclass
class ToolRegistry:
    """Name-keyed table of tool factories.

    Example:
        >>> registry = ToolRegistry()
        >>> registry.register_tool("think", ThinkTool)
        >>> registry.freeze()
        >>> tool = registry.get_tool("think")
    """

    _factories: dict[str, ToolFactory] = field(default_factory=dict)
    _frozen: bool = False
    # Directory the registered tools resolve relative paths against
    working_directory: Optional[str] = None

    def register_tool(self, name: str, factory: ToolFactory) -> None:
        """Register a factory under a tool name.

        Raises:
            ValueError: If the name is taken or the registry is frozen.
        """
        if self._frozen:
            raise ValueError(f"Cannot register '{name}': registry is frozen")
        if name in self._factories:
            raise ValueError(f"Tool '{name}' is already registered")

        self._factories[name] = factory
        logger.debug(f"Registered tool: {name}")

    def freeze(self) -> "ToolRegistry":
        """Make the registry read-only. Returns self for chaining."""
        self._frozen = True
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    def get_tool(self, name: str) -> Optional[Tool]:
        """Build a fresh instance of the named tool, or None if unknown."""
        factory = self._factories.get(name)
        if factory is None:
            return None
        return factory()

    def get_all_tools(self) -> list[Tool]:
        """Fresh instances of every registered tool, in registration order."""
        return [factory() for factory in self._factories.values()]

    def get_read_only_tools(self) -> list[Tool]:
        """Fresh instances of the tools that never modify anything."""
        return [tool for tool in self.get_all_tools() if tool.is_read_only()]

    def get_definitions(self, names: Optional[list[str]] = None) -> list[ToolDefinition]:
        """Tool declarations for model consumption.

        Args:
            names: If provided, only declare these tools (unknown names are
                ignored).
        """
        definitions = []
        for name in self.list_tools():
            if names is not None and name not in names:
                continue
            tool = self.get_tool(name)
            if tool is not None:
                definitions.append(tool.definition)
        return definitions

    def list_tools(self) -> list[str]:
        """Registered tool names, in registration order."""
        return list(self._factories.keys())

    def __len__(self) -> int:
        return len(self._factories)

    def __contains__(self, name: object) -> bool:
        return name in self._factories


def default_tool_registry(
    working_directory: Optional[str] = None,
    shell_options: Optional[dict[str, Any]] = None,
) -> ToolRegistry:
    """Build and freeze a registry holding the full built-in tool set.

    Args:
        working_directory: Directory relative paths and shell commands
            resolve against. Defaults to the process working directory.
        shell_options: Extra keyword arguments for the bash tool
            (``default_timeout``, ``max_timeout``, ``max_output_length``).
    """
    # Imported here to keep the builtin modules free to import the registry
    from codeloop.tools.builtin import BUILTIN_TOOLS, BashTool

    registry = ToolRegistry(working_directory=working_directory)
    for tool_class in BUILTIN_TOOLS:
        kwargs: dict[str, Any] = {"working_directory": working_directory}
        if tool_class is BashTool and shell_options:
            kwargs.update(shell_options)
        registry.register_tool(tool_class.name, functools.partial(tool_class, **kwargs))
    return registry.freeze()
