"""Advisory permission requests.

Tools declare, per call, whether a host ought to ask before running them.
The session reports such calls to an optional observer but always proceeds;
deciding whether to stop a tool is left to whoever drives the session.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Iterable

logger = logging.getLogger(__name__)


@dataclass
class PermissionRequest:
    """Notice that a tool call would normally need the user's consent.

    Attributes:
        tool_name: Name of the tool being invoked.
        arguments: Arguments the tool will receive.
        read_only: Whether the tool only reads state.
        description: The tool's description.
        approved: Whether the project configuration pre-approves the tool.
        timestamp: When the request was created.
    """

    tool_name: str
    arguments: dict[str, Any]
    read_only: bool
    description: str
    approved: bool = False
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def format_for_display(self) -> str:
        """Human-readable summary of the request."""
        lines = [
            f"Tool: {self.tool_name}",
            f"Access: {'read-only' if self.read_only else 'read-write'}",
            f"Description: {self.description}",
            "Arguments:",
        ]
        for key, value in self.arguments.items():
            # Truncate long values
            str_value = str(value)
            if len(str_value) > 100:
                str_value = str_value[:97] + "..."
            lines.append(f"  {key}: {str_value}")
        return "\n".join(lines)


# Called with each request; the return value is ignored
PermissionObserver = Callable[[PermissionRequest], Any]


def is_tool_approved(tool_name: str, approved_tools: Iterable[str]) -> bool:
    """Check a tool against a project's approved-tool list.

    ``"*"`` approves every tool.
    """
    approved = set(approved_tools)
    return "*" in approved or tool_name in approved
