"""Agent session loop."""

from .events import EventType, SessionEvent
from .session import DEFAULT_SYSTEM_PROMPT, Session, SessionConfig

__all__ = [
    "Session",
    "SessionConfig",
    "SessionEvent",
    "EventType",
    "DEFAULT_SYSTEM_PROMPT",
]
