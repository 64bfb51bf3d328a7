"""Abstract base class for model clients."""

import logging
from abc import ABC, abstractmethod
from typing import AsyncIterator, Optional

from .streaming import ResponseStream
from .tools import ToolDefinition
from .types import Message, ModelResponse, StreamChunk

logger = logging.getLogger(__name__)


class ModelClient(ABC):
    """Abstract base class for language-model backends.

    A client translates the abstract history and tool declarations into a
    provider's wire format and back. The session depends only on
    :meth:`query` and :meth:`stream_query`.
    """

    # Class attributes - must be set by subclasses
    provider: str  # 'openai', ...

    def __init__(
        self,
        api_key: Optional[str] = None,
        model_id: Optional[str] = None,
        max_tokens: int = 4096,
        temperature: float = 0.7,
    ):
        """Initialize the model client.

        Args:
            api_key: API key for the provider (falls back to env var)
            model_id: Model identifier to use
            max_tokens: Maximum tokens in response
            temperature: Temperature for generation
        """
        self.api_key = api_key
        self.model_id = model_id or self._default_model_id()
        self.max_tokens = max_tokens
        self.temperature = temperature

    @property
    def name(self) -> str:
        """The model identifier in use."""
        return self.model_id

    @abstractmethod
    def _default_model_id(self) -> str:
        """Return the default model ID for this provider."""
        ...

    @property
    @abstractmethod
    def is_available(self) -> bool:
        """Check if the model is available (API key configured, etc.)."""
        ...

    @abstractmethod
    async def query(
        self,
        messages: list[Message],
        tools: Optional[list[ToolDefinition]] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> ModelResponse:
        """Send the conversation and return a complete response.

        Args:
            messages: Conversation history, system message first
            tools: Tool declarations the model may call
            max_tokens: Override default max tokens
            temperature: Override default temperature

        Returns:
            ModelResponse with content, tool calls, usage and finish reason

        Raises:
            TransportError: On network or API failure
        """
        ...

    @abstractmethod
    def _stream_chunks(
        self,
        messages: list[Message],
        tools: Optional[list[ToolDefinition]] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> AsyncIterator[StreamChunk]:
        """Provider read loop yielding chunks in network arrival order.

        Implementations are async generators. A trailing ``is_done`` chunk is
        optional; the stream supplies one if the generator just ends.
        """
        ...

    def stream_query(
        self,
        messages: list[Message],
        tools: Optional[list[ToolDefinition]] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> ResponseStream:
        """Send the conversation and return a stream of response chunks.

        Must be called from within a running event loop.
        """
        return ResponseStream(
            self._stream_chunks(
                messages,
                tools=tools,
                max_tokens=max_tokens,
                temperature=temperature,
            )
        )

    def _format_messages_for_logging(self, messages: list[Message]) -> str:
        """Format messages for debug logging."""
        lines = []
        for msg in messages:
            text = msg.text
            content_preview = text[:100] + "..." if len(text) > 100 else text
            lines.append(f"  [{msg.role.value}]: {content_preview}")
        return "\n".join(lines)
