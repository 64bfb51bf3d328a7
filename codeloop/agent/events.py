"""Session event types.

Events are yielded by :meth:`Session.run` to report progress to whoever
drives the session (a CLI, a web handler, a test).
"""

from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional

from codeloop.models.types import ModelResponse, ToolCall, ToolUseResult, Usage


class EventType(Enum):
    """Types of events emitted during a turn."""

    RESPONSE_CHUNK = auto()  # Text from the model (streamed or whole)
    RESPONSE_COMPLETE = auto()  # Final answer, no more tool calls
    TOOL_CALL = auto()  # Model asked for a tool
    TOOL_RESULT = auto()  # Tool finished (successfully or not)
    ERROR = auto()  # Turn ended without a final answer
    TURN_COMPLETE = auto()  # Turn is over


@dataclass
class SessionEvent:
    """Event emitted by the session during a turn.

    The type field determines which other fields are populated:
    - RESPONSE_CHUNK: content
    - RESPONSE_COMPLETE: response
    - TOOL_CALL: tool_call
    - TOOL_RESULT: tool_call, tool_result
    - ERROR: error
    - TURN_COMPLETE: usage (aggregated over the turn)
    """

    type: EventType
    content: Optional[str] = None
    response: Optional[ModelResponse] = None
    tool_call: Optional[ToolCall] = None
    tool_result: Optional[ToolUseResult] = None
    error: Optional[str] = None
    usage: Optional[Usage] = None

    @classmethod
    def response_chunk(cls, content: str) -> "SessionEvent":
        return cls(type=EventType.RESPONSE_CHUNK, content=content)

    @classmethod
    def response_complete(cls, response: ModelResponse) -> "SessionEvent":
        return cls(type=EventType.RESPONSE_COMPLETE, response=response)

    @classmethod
    def tool_call_event(cls, tool_call: ToolCall) -> "SessionEvent":
        return cls(type=EventType.TOOL_CALL, tool_call=tool_call)

    @classmethod
    def tool_result_event(
        cls, tool_call: ToolCall, tool_result: ToolUseResult
    ) -> "SessionEvent":
        return cls(type=EventType.TOOL_RESULT, tool_call=tool_call, tool_result=tool_result)

    @classmethod
    def error_event(cls, error: str) -> "SessionEvent":
        return cls(type=EventType.ERROR, error=error)

    @classmethod
    def turn_complete(cls, usage: Usage) -> "SessionEvent":
        return cls(type=EventType.TURN_COMPLETE, usage=usage)
