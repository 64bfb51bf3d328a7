"""Model clients and conversation types for CodeLoop."""

import logging
from typing import Optional, Type

from codeloop.config import Settings, get_settings

from .base import ModelClient
from .openai_client import OpenAIClient
from .streaming import ResponseStream, StreamAccumulator
from .tools import (
    ToolDefinition,
    ToolParameter,
    tools_to_openai,
)
from .types import (
    FinishReason,
    Message,
    MessageRole,
    ModelResponse,
    StreamChunk,
    ToolCall,
    ToolUseResult,
    Usage,
    format_payload,
)

logger = logging.getLogger(__name__)

# Registry mapping provider names to client classes
MODEL_CLIENTS: dict[str, Type[ModelClient]] = {
    "openai": OpenAIClient,
}


def get_client(
    provider: str,
    api_key: Optional[str] = None,
    model_id: Optional[str] = None,
    max_tokens: Optional[int] = None,
    temperature: Optional[float] = None,
    base_url: Optional[str] = None,
) -> ModelClient:
    """Create a model client by provider name.

    Args:
        provider: Provider name ('openai')
        api_key: Optional API key (falls back to environment variable)
        model_id: Optional model ID (uses default if not provided)
        max_tokens: Optional max tokens
        temperature: Optional temperature
        base_url: Optional endpoint for OpenAI-compatible servers

    Returns:
        Initialized ModelClient instance

    Raises:
        ValueError: If provider name is not recognized
    """
    if provider not in MODEL_CLIENTS:
        raise ValueError(
            f"Unknown provider: {provider}. Available providers: {list(MODEL_CLIENTS.keys())}"
        )

    client_class = MODEL_CLIENTS[provider]

    kwargs = {}
    if api_key is not None:
        kwargs["api_key"] = api_key
    if model_id is not None:
        kwargs["model_id"] = model_id
    if max_tokens is not None:
        kwargs["max_tokens"] = max_tokens
    if temperature is not None:
        kwargs["temperature"] = temperature
    if base_url is not None:
        kwargs["base_url"] = base_url

    return client_class(**kwargs)


def get_client_from_settings(settings: Optional[Settings] = None) -> ModelClient:
    """Create the configured model client.

    Args:
        settings: Optional settings (uses global settings if not provided)

    Returns:
        Initialized ModelClient instance
    """
    if settings is None:
        settings = get_settings()

    return get_client(
        provider=settings.provider,
        api_key=settings.api_key,
        model_id=settings.model.model_id,
        max_tokens=settings.model.max_tokens,
        temperature=settings.model.temperature,
        base_url=settings.base_url,
    )


__all__ = [
    "ModelClient",
    "OpenAIClient",
    "ResponseStream",
    "StreamAccumulator",
    # Types
    "Message",
    "MessageRole",
    "ModelResponse",
    "StreamChunk",
    "ToolCall",
    "ToolUseResult",
    "Usage",
    "FinishReason",
    "format_payload",
    # Tools
    "ToolDefinition",
    "ToolParameter",
    "tools_to_openai",
    # Factory functions
    "get_client",
    "get_client_from_settings",
    "MODEL_CLIENTS",
]
