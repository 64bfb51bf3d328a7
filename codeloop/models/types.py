"""Message, tool-call and response types shared by the session and clients."""

import dataclasses
import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class MessageRole(str, Enum):
    """Role of a message sender."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


class FinishReason(str, Enum):
    """Reason why the model stopped generating."""

    STOP = "stop"
    TOOL_USE = "tool_use"
    LENGTH = "length"
    ERROR = "error"
    CONTENT_FILTER = "content_filter"


@dataclass
class ToolCall:
    """A request from the model to invoke a named tool."""

    id: str
    tool_name: str
    input: dict[str, Any] = field(default_factory=dict)


@dataclass
class Message:
    """A message in a conversation.

    ``content`` is plain text for system/user/assistant messages and the
    tool's raw output payload for tool messages.
    """

    role: MessageRole
    content: Any
    tool_calls: list[ToolCall] = field(default_factory=list)
    tool_call_id: Optional[str] = None  # For tool messages, the call answered
    name: Optional[str] = None  # For tool messages, the tool name

    @classmethod
    def system(cls, content: str) -> "Message":
        """Create a system message."""
        return cls(role=MessageRole.SYSTEM, content=content)

    @classmethod
    def user(cls, content: str) -> "Message":
        """Create a user message."""
        return cls(role=MessageRole.USER, content=content)

    @classmethod
    def assistant(
        cls, content: str, tool_calls: Optional[list[ToolCall]] = None
    ) -> "Message":
        """Create an assistant message, optionally carrying tool calls."""
        return cls(
            role=MessageRole.ASSISTANT,
            content=content,
            tool_calls=list(tool_calls or []),
        )

    @classmethod
    def tool(cls, tool_call_id: Optional[str], name: str, content: Any) -> "Message":
        """Create a tool result message for a single tool call."""
        return cls(
            role=MessageRole.TOOL,
            content=content,
            tool_call_id=tool_call_id,
            name=name,
        )

    @property
    def text(self) -> str:
        """Content rendered as text, serializing structured payloads."""
        return format_payload(self.content)


@dataclass
class Usage:
    """Token usage information."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    cost: float = 0.0

    def __add__(self, other: "Usage") -> "Usage":
        """Add two usage objects together."""
        return Usage(
            prompt_tokens=self.prompt_tokens + other.prompt_tokens,
            completion_tokens=self.completion_tokens + other.completion_tokens,
            total_tokens=self.total_tokens + other.total_tokens,
            cost=round(self.cost + other.cost, 6),
        )


@dataclass
class ModelResponse:
    """A complete response from a model client."""

    content: str
    tool_calls: list[ToolCall] = field(default_factory=list)
    usage: Usage = field(default_factory=Usage)
    finish_reason: FinishReason = FinishReason.STOP
    model: Optional[str] = None
    raw_response: Optional[Any] = None  # Original provider response for debugging

    @property
    def has_tool_calls(self) -> bool:
        """Check if response contains tool calls."""
        return len(self.tool_calls) > 0


@dataclass
class StreamChunk:
    """One item delivered by a streaming query.

    Exactly one chunk per stream has ``is_done`` set; it may carry the final
    usage, finish reason, or the error that ended the stream.
    """

    content: str = ""
    tool_calls: list[ToolCall] = field(default_factory=list)
    is_done: bool = False
    error: Optional[BaseException] = None
    finish_reason: Optional[FinishReason] = None
    usage: Optional[Usage] = None


@dataclass
class ToolUseResult:
    """Outcome of one tool invocation.

    ``error`` holds a validation or execution failure. Tools that report
    failures inside their own payload (``success=False`` or an ``error``
    field) leave it unset; see :attr:`failed`.
    """

    tool_name: str
    input: dict[str, Any]
    output: Any = None
    error: Optional[Exception] = None
    tool_call_id: Optional[str] = None

    @property
    def failed(self) -> bool:
        """True when the call errored or the payload reports a failure."""
        if self.error is not None:
            return True
        if getattr(self.output, "success", True) is False:
            return True
        return bool(getattr(self.output, "error", None))

    @property
    def payload(self) -> Any:
        """What the model gets to see for this invocation."""
        if self.error is not None and self.output is None:
            return {"error": str(self.error)}
        return self.output


def format_payload(payload: Any) -> str:
    """Render a message or tool payload as text for model consumption."""
    if payload is None:
        return ""

    if isinstance(payload, str):
        return payload

    if dataclasses.is_dataclass(payload) and not isinstance(payload, type):
        payload = dataclasses.asdict(payload)

    if isinstance(payload, (list, dict)):
        try:
            return json.dumps(payload, indent=2, default=str)
        except (TypeError, ValueError):
            return str(payload)

    return str(payload)


# Cost per million tokens for various models (approximate)
MODEL_COSTS = {
    "gpt-4o": (2.5, 10.0),
    "gpt-4o-mini": (0.15, 0.6),
    "gpt-4-turbo": (10.0, 30.0),
    "gpt-4.1": (2.0, 8.0),
    "gpt-4.1-mini": (0.4, 1.6),
    "gpt-3.5-turbo": (0.5, 1.5),
}


def estimate_cost(model_id: str, usage: Usage) -> float:
    """Estimate cost based on model and usage."""
    if model_id not in MODEL_COSTS:
        return 0.0

    input_cost, output_cost = MODEL_COSTS[model_id]
    cost = (usage.prompt_tokens / 1_000_000 * input_cost) + (
        usage.completion_tokens / 1_000_000 * output_cost
    )
    return round(cost, 6)
