"""OpenAI (and OpenAI-compatible endpoint) model client."""

import json
import logging
import os
from typing import Any, AsyncIterator, Optional

from codeloop.errors import (
    APIError,
    AuthenticationError,
    MalformedResponseError,
    MissingAPIKeyError,
    RateLimitError,
)

from .base import ModelClient
from .tools import ToolDefinition, tools_to_openai
from .types import (
    FinishReason,
    Message,
    MessageRole,
    ModelResponse,
    StreamChunk,
    ToolCall,
    Usage,
    estimate_cost,
    format_payload,
)

logger = logging.getLogger(__name__)

_FINISH_REASONS = {
    "stop": FinishReason.STOP,
    "tool_calls": FinishReason.TOOL_USE,
    "function_call": FinishReason.TOOL_USE,
    "length": FinishReason.LENGTH,
    "content_filter": FinishReason.CONTENT_FILTER,
}


def _decode_arguments(raw: Optional[str], model: str) -> dict[str, Any]:
    """Decode a JSON-encoded tool argument string."""
    if not raw:
        return {}
    try:
        arguments = json.loads(raw)
    except json.JSONDecodeError as e:
        raise MalformedResponseError(f"tool arguments are not valid JSON: {e}", model)
    if not isinstance(arguments, dict):
        raise MalformedResponseError("tool arguments must be a JSON object", model)
    return arguments


class OpenAIClient(ModelClient):
    """Client for OpenAI chat-completions models."""

    provider = "openai"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model_id: Optional[str] = None,
        max_tokens: int = 4096,
        temperature: float = 0.7,
        base_url: Optional[str] = None,
    ):
        super().__init__(api_key, model_id, max_tokens, temperature)

        # Get API key from parameter or environment
        self.api_key = api_key or os.environ.get("OPENAI_API_KEY")
        self.base_url = base_url

        # Created on first use
        self._client = None

    def _get_client(self) -> Any:
        """Get or create the OpenAI client."""
        if self._client is None:
            import openai

            self._client = openai.AsyncOpenAI(
                api_key=self.api_key,
                base_url=self.base_url,
            )
        return self._client

    def _default_model_id(self) -> str:
        return "gpt-4o"

    @property
    def is_available(self) -> bool:
        return self.api_key is not None

    def _convert_messages(self, messages: list[Message]) -> list[dict[str, Any]]:
        """Convert history to OpenAI format."""
        openai_messages = []

        for msg in messages:
            if msg.role == MessageRole.SYSTEM:
                openai_messages.append({"role": "system", "content": msg.text})

            elif msg.role == MessageRole.USER:
                openai_messages.append({"role": "user", "content": msg.text})

            elif msg.role == MessageRole.ASSISTANT:
                message: dict[str, Any] = {
                    "role": "assistant",
                    "content": msg.text or None,
                }

                if msg.tool_calls:
                    message["tool_calls"] = [
                        {
                            "id": tc.id,
                            "type": "function",
                            "function": {
                                "name": tc.tool_name,
                                "arguments": json.dumps(tc.input),
                            },
                        }
                        for tc in msg.tool_calls
                    ]

                openai_messages.append(message)

            elif msg.role == MessageRole.TOOL:
                if msg.tool_call_id:
                    openai_messages.append({
                        "role": "tool",
                        "tool_call_id": msg.tool_call_id,
                        "content": format_payload(msg.content),
                    })
                else:
                    # Results not tied to a call id can't use the tool role
                    openai_messages.append({
                        "role": "user",
                        "content": f"[{msg.name} result]: {format_payload(msg.content)}",
                    })

        return openai_messages

    def _build_request(
        self,
        messages: list[Message],
        tools: Optional[list[ToolDefinition]],
        max_tokens: Optional[int],
        temperature: Optional[float],
    ) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "model": self.model_id,
            "messages": self._convert_messages(messages),
            "max_tokens": max_tokens or self.max_tokens,
            "temperature": temperature if temperature is not None else self.temperature,
        }
        if tools:
            kwargs["tools"] = tools_to_openai(tools)
        return kwargs

    def _build_usage(self, raw_usage: Any) -> Usage:
        usage = Usage(
            prompt_tokens=raw_usage.prompt_tokens,
            completion_tokens=raw_usage.completion_tokens,
            total_tokens=raw_usage.total_tokens,
        )
        usage.cost = estimate_cost(self.model_id, usage)
        return usage

    def _parse_response(self, response: Any) -> ModelResponse:
        """Parse OpenAI response to the common format."""
        if not getattr(response, "choices", None):
            raise MalformedResponseError("response has no choices", self.model_id)

        choice = response.choices[0]
        message = choice.message

        tool_calls = []
        for tc in message.tool_calls or []:
            tool_calls.append(ToolCall(
                id=tc.id,
                tool_name=tc.function.name,
                input=_decode_arguments(tc.function.arguments, self.model_id),
            ))

        finish_reason = _FINISH_REASONS.get(choice.finish_reason, FinishReason.STOP)

        usage = self._build_usage(response.usage) if response.usage else Usage()

        return ModelResponse(
            content=message.content or "",
            tool_calls=tool_calls,
            usage=usage,
            finish_reason=finish_reason,
            model=self.model_id,
            raw_response=response,
        )

    def _handle_api_error(self, e: Exception) -> None:
        """Convert OpenAI exceptions to our error types."""
        import openai

        if isinstance(e, openai.RateLimitError):
            raise RateLimitError(self.model_id) from e
        if isinstance(e, openai.AuthenticationError):
            raise AuthenticationError(self.model_id, str(e)) from e
        if isinstance(e, openai.APIStatusError):
            raise APIError(str(e), self.model_id, status_code=e.status_code) from e
        if isinstance(e, openai.APIError):
            raise APIError(str(e), self.model_id) from e
        raise e

    async def query(
        self,
        messages: list[Message],
        tools: Optional[list[ToolDefinition]] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> ModelResponse:
        """Send the conversation to the chat-completions endpoint."""
        if not self.is_available:
            raise MissingAPIKeyError(self.provider)

        client = self._get_client()
        kwargs = self._build_request(messages, tools, max_tokens, temperature)
        logger.debug(
            f"Querying {self.model_id} with {len(messages)} messages:\n"
            f"{self._format_messages_for_logging(messages)}"
        )

        try:
            response = await client.chat.completions.create(**kwargs)
        except Exception as e:
            logger.error(f"OpenAI API error: {e}")
            self._handle_api_error(e)
            raise

        return self._parse_response(response)

    async def _stream_chunks(
        self,
        messages: list[Message],
        tools: Optional[list[ToolDefinition]] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> AsyncIterator[StreamChunk]:
        """Stream from the chat-completions endpoint."""
        if not self.is_available:
            raise MissingAPIKeyError(self.provider)

        client = self._get_client()
        kwargs = self._build_request(messages, tools, max_tokens, temperature)
        kwargs["stream"] = True
        kwargs["stream_options"] = {"include_usage": True}

        # Tool call fragments keyed by their index in the response
        pending_calls: dict[int, dict[str, str]] = {}
        finish_reason: Optional[FinishReason] = None
        usage: Optional[Usage] = None

        try:
            stream = await client.chat.completions.create(**kwargs)
            async for chunk in stream:
                if chunk.usage:
                    usage = self._build_usage(chunk.usage)

                if not chunk.choices:
                    continue

                choice = chunk.choices[0]
                delta = choice.delta

                if delta.content:
                    yield StreamChunk(content=delta.content)

                for tc_delta in delta.tool_calls or []:
                    entry = pending_calls.setdefault(
                        tc_delta.index, {"id": "", "name": "", "arguments": ""}
                    )
                    if tc_delta.id:
                        entry["id"] = tc_delta.id
                    if tc_delta.function:
                        if tc_delta.function.name:
                            entry["name"] = tc_delta.function.name
                        if tc_delta.function.arguments:
                            entry["arguments"] += tc_delta.function.arguments

                if choice.finish_reason:
                    finish_reason = _FINISH_REASONS.get(
                        choice.finish_reason, FinishReason.STOP
                    )
        except Exception as e:
            logger.error(f"OpenAI stream error: {e}")
            self._handle_api_error(e)
            raise

        tool_calls = [
            ToolCall(
                id=data["id"],
                tool_name=data["name"],
                input=_decode_arguments(data["arguments"], self.model_id),
            )
            for _, data in sorted(pending_calls.items())
        ]
        if tool_calls:
            yield StreamChunk(tool_calls=tool_calls)

        yield StreamChunk(is_done=True, finish_reason=finish_reason, usage=usage)
