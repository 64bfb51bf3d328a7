"""Pytest configuration and fixtures for CodeLoop tests."""

import os
from pathlib import Path
from typing import Any, AsyncIterator, Generator, Optional

import pytest

from codeloop.config import reset_settings
from codeloop.models.base import ModelClient
from codeloop.models.types import (
    FinishReason,
    Message,
    ModelResponse,
    StreamChunk,
    ToolCall,
    Usage,
)
from codeloop.tools import ToolRegistry, default_tool_registry


class ScriptedClient(ModelClient):
    """Model client that replays canned responses.

    ``query`` returns the next response; ``stream_query`` splits the next
    response into one chunk per word, then a tool-call chunk, then the
    terminal chunk.
    """

    provider = "scripted"

    def __init__(self, responses: list[ModelResponse]):
        super().__init__(api_key="test-key", model_id="scripted-model")
        self.responses = list(responses)
        self.calls: list[dict[str, Any]] = []

    def _default_model_id(self) -> str:
        return "scripted-model"

    @property
    def is_available(self) -> bool:
        return True

    def _record(self, messages, tools, max_tokens, temperature) -> ModelResponse:
        self.calls.append({
            "messages": list(messages),
            "tools": tools,
            "max_tokens": max_tokens,
            "temperature": temperature,
        })
        return self.responses.pop(0)

    async def query(self, messages, tools=None, max_tokens=None, temperature=None):
        return self._record(messages, tools, max_tokens, temperature)

    async def _stream_chunks(
        self, messages, tools=None, max_tokens=None, temperature=None
    ) -> AsyncIterator[StreamChunk]:
        response = self._record(messages, tools, max_tokens, temperature)
        words = response.content.split(" ") if response.content else []
        for i, word in enumerate(words):
            yield StreamChunk(content=word if i == 0 else " " + word)
        if response.tool_calls:
            yield StreamChunk(tool_calls=list(response.tool_calls))
        yield StreamChunk(
            is_done=True,
            finish_reason=response.finish_reason,
            usage=response.usage,
        )


def make_response(
    content: str = "",
    tool_calls: Optional[list[ToolCall]] = None,
    usage: Optional[Usage] = None,
) -> ModelResponse:
    """Build a model response; finish reason follows from the tool calls."""
    return ModelResponse(
        content=content,
        tool_calls=list(tool_calls or []),
        usage=usage or Usage(prompt_tokens=10, completion_tokens=5, total_tokens=15),
        finish_reason=FinishReason.TOOL_USE if tool_calls else FinishReason.STOP,
        model="scripted-model",
    )


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """A temporary project directory."""
    project = tmp_path / "project"
    project.mkdir()
    return project


@pytest.fixture
def registry(project_dir: Path) -> ToolRegistry:
    """The built-in tool set rooted at the project directory."""
    return default_tool_registry(str(project_dir))


@pytest.fixture
def scripted_client():
    """Factory for ScriptedClient instances."""
    return ScriptedClient


@pytest.fixture
def response_factory():
    """Factory for ModelResponse instances."""
    return make_response


@pytest.fixture
def sample_messages() -> list[Message]:
    return [
        Message.system("You are a helpful assistant."),
        Message.user("Hello"),
    ]


@pytest.fixture
def clean_env() -> Generator[None, None, None]:
    """Clean environment variables for testing."""
    # Store original values
    original = {}
    env_vars = [
        "OPENAI_API_KEY",
        "OPENAI_BASE_URL",
        "CODELOOP_API_KEY",
        "CODELOOP_BASE_URL",
        "CODELOOP_PROVIDER",
        "CODELOOP_MODEL__MODEL_ID",
        "CODELOOP_MODEL__MAX_TOKENS",
        "CODELOOP_AGENT__STREAM",
    ]
    for var in env_vars:
        original[var] = os.environ.pop(var, None)

    reset_settings()

    yield

    # Restore original values
    for var, value in original.items():
        if value is not None:
            os.environ[var] = value
        elif var in os.environ:
            del os.environ[var]

    reset_settings()


@pytest.fixture
def mock_api_key(clean_env: None) -> Generator[None, None, None]:
    """Set a mock API key for testing."""
    os.environ["OPENAI_API_KEY"] = "test-openai-key"
    yield


@pytest.fixture
def no_user_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point the user config file somewhere empty."""
    import codeloop.config as config_module

    config_file = tmp_path / "home" / "config.yaml"
    monkeypatch.setattr(config_module, "CONFIG_DIR", config_file.parent)
    monkeypatch.setattr(config_module, "CONFIG_FILE", config_file)
    return config_file
