"""Agent session: conversation history plus the model/tool loop.

A session owns its history and borrows a model client and a tool registry
from the caller. A turn goes: user message, model query, then for every
requested tool call (in order) validation, execution and a tool-result
message, then another query, until the model answers without tool calls.

Tool failures become tool-result messages so the model can react to them.
Unknown tools, malformed model responses and transport failures propagate
to the caller. A session is not safe for concurrent use; run independent
sessions instead.
"""

from __future__ import annotations

import logging
import time
import traceback
from pathlib import Path
from typing import TYPE_CHECKING, Any, AsyncIterator, Optional

from pydantic import BaseModel, Field

from codeloop.config.settings import DEFAULT_SYSTEM_PROMPT
from codeloop.errors import (
    InvalidConfigError,
    MalformedResponseError,
    ToolError,
    ToolExecutionError,
    ToolNotFoundError,
    ToolValidationError,
)
from codeloop.models.streaming import ResponseStream, StreamAccumulator
from codeloop.models.tools import ToolDefinition
from codeloop.models.types import Message, ModelResponse, ToolCall, ToolUseResult, Usage
from codeloop.tools.base import Tool
from codeloop.tools.permissions import (
    PermissionObserver,
    PermissionRequest,
    is_tool_approved,
)

from .events import SessionEvent

if TYPE_CHECKING:
    from codeloop.models.base import ModelClient
    from codeloop.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)


class SessionConfig(BaseModel):
    """Value object holding everything a session needs besides its collaborators."""

    # Defaults to the directory the registry's tools resolve paths against
    project_path: Optional[str] = None
    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    max_tokens: int = Field(default=4096, ge=1, le=200000)
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    max_tool_iterations: int = Field(default=10, ge=1)
    stream: bool = False
    approved_tools: list[str] = Field(default_factory=list)


class Session:
    """A conversation between a caller, a model client and a tool set.

    Example:
        >>> session = Session(client, default_tool_registry("."))
        >>> async for event in session.run("List the python files"):
        ...     if event.type == EventType.RESPONSE_CHUNK:
        ...         print(event.content, end="")
    """

    def __init__(
        self,
        model_client: "ModelClient",
        registry: "ToolRegistry",
        config: Optional[SessionConfig] = None,
        tool_names: Optional[list[str]] = None,
        permission_observer: Optional[PermissionObserver] = None,
    ):
        """Initialize the session.

        Args:
            model_client: Backend to query. Shared, not owned.
            registry: Tool lookup table. Shared, not owned.
            config: Session configuration (defaults if omitted).
            tool_names: Restrict the active tools to these names. Defaults to
                every tool in the registry.
            permission_observer: Called with a PermissionRequest before a tool
                that asks for permission runs. Execution proceeds regardless.

        Raises:
            InvalidConfigError: If ``config.project_path`` differs from the
                registry's working directory.
        """
        self.model_client = model_client
        self.registry = registry
        self.config = config or SessionConfig()
        self.permission_observer = permission_observer

        if tool_names is None:
            self.tool_names = registry.list_tools()
        else:
            self.tool_names = [name for name in tool_names if name in registry]

        self.project_path = self._resolve_project_path()
        self.total_usage = Usage()
        self._history: list[Message] = [Message.system(self.config.system_prompt)]

    def _resolve_project_path(self) -> str:
        """The project directory, which must agree with the tools' directory."""
        configured = self.config.project_path
        tools_directory = self.registry.working_directory
        if (
            configured
            and tools_directory
            and Path(configured).resolve() != Path(tools_directory).resolve()
        ):
            raise InvalidConfigError(
                "project_path",
                configured,
                f"tools resolve paths against {tools_directory}",
            )
        return configured or tools_directory or str(Path.cwd())

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    @property
    def history(self) -> list[Message]:
        """A copy of the conversation so far, system message first."""
        return list(self._history)

    def add_user_message(self, content: str) -> Message:
        message = Message.user(content)
        self._history.append(message)
        return message

    def add_assistant_message(
        self, content: str, tool_calls: Optional[list[ToolCall]] = None
    ) -> Message:
        message = Message.assistant(content, tool_calls)
        self._history.append(message)
        return message

    def add_tool_result(self, result: ToolUseResult) -> Message:
        """Append a tool-role message carrying the result's raw payload."""
        message = Message.tool(result.tool_call_id, result.tool_name, result.payload)
        self._history.append(message)
        return message

    # ------------------------------------------------------------------
    # Model
    # ------------------------------------------------------------------

    @property
    def tool_definitions(self) -> list[ToolDefinition]:
        return self.registry.get_definitions(self.tool_names)

    def _check_response(self, response: object) -> ModelResponse:
        model = getattr(self.model_client, "model_id", None)
        if not isinstance(response, ModelResponse):
            raise MalformedResponseError("model client returned no response", model)
        for call in response.tool_calls:
            if not call.tool_name:
                raise MalformedResponseError("tool call without a tool name", model)
            if not isinstance(call.input, dict):
                raise MalformedResponseError(
                    f"arguments for '{call.tool_name}' are not an object", model
                )
        return response

    def _record_usage(self, response: ModelResponse) -> None:
        self.total_usage = self.total_usage + response.usage

    async def query(self) -> ModelResponse:
        """Send the full history and active tool declarations to the model.

        The response is returned as-is; nothing is added to the history.

        Raises:
            MalformedResponseError: If the client returns an empty or
                malformed response.
            TransportError: Propagated from the client.
        """
        logger.debug(f"Querying model with {len(self._history)} messages")
        response = await self.model_client.query(
            self.history,
            tools=self.tool_definitions or None,
            max_tokens=self.config.max_tokens,
            temperature=self.config.temperature,
        )
        response = self._check_response(response)
        self._record_usage(response)
        logger.debug(
            f"Model finished ({response.finish_reason.value}) with "
            f"{len(response.tool_calls)} tool call(s)"
        )
        return response

    def stream_query(self) -> ResponseStream:
        """Like :meth:`query`, but stream the response chunk by chunk."""
        return self.model_client.stream_query(
            self.history,
            tools=self.tool_definitions or None,
            max_tokens=self.config.max_tokens,
            temperature=self.config.temperature,
        )

    # ------------------------------------------------------------------
    # Tools
    # ------------------------------------------------------------------

    def get_tool(self, name: str) -> Optional[Tool]:
        """Fresh instance of an active tool, or None."""
        if name not in self.tool_names:
            return None
        return self.registry.get_tool(name)

    def _request_permission(self, tool: Tool, arguments: dict[str, Any]) -> None:
        request = PermissionRequest(
            tool_name=tool.name,
            arguments=dict(arguments),
            read_only=tool.is_read_only(),
            description=tool.description,
            approved=is_tool_approved(tool.name, self.config.approved_tools),
        )
        logger.debug(f"Permission requested for {tool.name} (approved={request.approved})")
        if self.permission_observer is not None:
            self.permission_observer(request)

    async def execute_tool(self, call: ToolCall) -> ToolUseResult:
        """Run one tool call and record its result in the history.

        Validation and execution failures are returned inside the result
        (and recorded) rather than raised.

        Raises:
            ToolNotFoundError: If the tool is not active. History is left
                untouched.
        """
        tool = self.get_tool(call.tool_name)
        if tool is None:
            logger.warning(f"Model requested unknown tool: {call.tool_name}")
            raise ToolNotFoundError(call.tool_name)

        # Malformed input is reported by validation below
        arguments = call.input if isinstance(call.input, dict) else {}
        if tool.requires_permission(arguments):
            self._request_permission(tool, arguments)

        result = ToolUseResult(
            tool_name=call.tool_name,
            input=call.input,
            tool_call_id=call.id,
        )

        start_time = time.monotonic()
        try:
            tool.validate_input(call.input)
        except ToolValidationError as e:
            logger.warning(f"Validation failed for {call.tool_name}: {e.reason}")
            result.error = e
        else:
            logger.info(f"Executing tool: {call.tool_name}")
            try:
                result.output = await tool.execute(call.input)
            except ToolError as e:
                logger.warning(f"Tool {call.tool_name} failed: {e}")
                result.error = e
            except Exception as e:
                logger.error(
                    f"Tool execution error: {call.tool_name} - {e}\n"
                    f"{traceback.format_exc()}"
                )
                result.error = ToolExecutionError(call.tool_name, str(e), e)

        elapsed = time.monotonic() - start_time
        if result.failed:
            logger.debug(f"Tool {call.tool_name} reported failure ({elapsed:.2f}s)")
        else:
            logger.debug(f"Tool {call.tool_name} completed successfully ({elapsed:.2f}s)")

        self.add_tool_result(result)
        return result

    # ------------------------------------------------------------------
    # Turn loop
    # ------------------------------------------------------------------

    async def _stream_response(self) -> AsyncIterator[object]:
        """Stream one response, yielding text events and finally the response."""
        accumulator = StreamAccumulator(model=getattr(self.model_client, "model_id", None))
        async with self.stream_query() as stream:
            async for chunk in stream:
                accumulator.add(chunk)
                if chunk.content:
                    yield SessionEvent.response_chunk(chunk.content)

        response = self._check_response(accumulator.response())
        self._record_usage(response)
        yield response

    async def run(self, user_message: str) -> AsyncIterator[SessionEvent]:
        """Drive one complete turn for a user message.

        Queries the model, executes requested tools sequentially, and queries
        again until the model stops asking for tools. After
        ``max_tool_iterations`` queries the turn ends with an ERROR event.

        Raises:
            ToolNotFoundError: If the model requests a tool that is not active.
                Raised before the response is added to the history.
            MalformedResponseError, TransportError: Propagated to the caller.
        """
        self.add_user_message(user_message)
        turn_usage = Usage()
        max_iterations = self.config.max_tool_iterations

        for _ in range(max_iterations):
            if self.config.stream:
                response: Optional[ModelResponse] = None
                async for item in self._stream_response():
                    if isinstance(item, ModelResponse):
                        response = item
                    else:
                        yield item
                assert response is not None
            else:
                response = await self.query()
                if response.content:
                    yield SessionEvent.response_chunk(response.content)

            turn_usage = turn_usage + response.usage
            # Every requested call must be answerable before the request is recorded
            for call in response.tool_calls:
                if call.tool_name not in self.tool_names:
                    logger.warning(f"Model requested unknown tool: {call.tool_name}")
                    raise ToolNotFoundError(call.tool_name)
            self.add_assistant_message(response.content, response.tool_calls)

            if not response.tool_calls:
                yield SessionEvent.response_complete(response)
                yield SessionEvent.turn_complete(turn_usage)
                return

            for call in response.tool_calls:
                yield SessionEvent.tool_call_event(call)
                result = await self.execute_tool(call)
                yield SessionEvent.tool_result_event(call, result)

        logger.warning(f"Max tool iterations ({max_iterations}) reached")
        yield SessionEvent.error_event(f"Maximum tool iterations ({max_iterations}) reached")
        yield SessionEvent.turn_complete(turn_usage)
