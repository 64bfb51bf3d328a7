"""Tests for the exception hierarchy."""

from codeloop.errors import (
    APIError,
    CodeLoopError,
    CommandBlockedError,
    ConfigurationError,
    InvalidConfigError,
    MalformedResponseError,
    MissingAPIKeyError,
    ProtocolError,
    RateLimitError,
    ToolError,
    ToolExecutionError,
    ToolNotFoundError,
    ToolValidationError,
    TransportError,
)


class TestHierarchy:
    """Errors are grouped by who must handle them."""

    def test_tool_errors(self) -> None:
        assert issubclass(ToolValidationError, ToolError)
        assert issubclass(CommandBlockedError, ToolValidationError)
        assert issubclass(ToolExecutionError, ToolError)

    def test_protocol_errors(self) -> None:
        assert issubclass(ToolNotFoundError, ProtocolError)
        assert issubclass(MalformedResponseError, ProtocolError)
        assert not issubclass(ToolNotFoundError, ToolError)

    def test_transport_and_config_errors(self) -> None:
        assert issubclass(APIError, TransportError)
        assert issubclass(RateLimitError, TransportError)
        assert issubclass(MissingAPIKeyError, ConfigurationError)
        for cls in (ToolError, ProtocolError, TransportError, ConfigurationError):
            assert issubclass(cls, CodeLoopError)


class TestErrorDetails:
    """Tests for messages and details."""

    def test_str_includes_code(self) -> None:
        error = ToolNotFoundError("teleport")

        assert str(error) == "[TOOL_NOT_FOUND] Tool not found: teleport"
        assert str(CodeLoopError("plain")) == "plain"

    def test_to_dict(self) -> None:
        error = InvalidConfigError("model.max_tokens", -1, "must be positive")

        assert error.to_dict() == {
            "error_type": "InvalidConfigError",
            "message": "Invalid configuration for 'model.max_tokens': must be positive",
            "code": "INVALID_CONFIG",
            "details": {
                "field": "model.max_tokens",
                "value": "-1",
                "reason": "must be positive",
            },
        }

    def test_validation_error_fields(self) -> None:
        error = ToolValidationError("read_file", "offset", "must be >= 0")

        assert error.tool_name == "read_file"
        assert error.parameter == "offset"
        assert error.details["tool_name"] == "read_file"

    def test_blocked_command_preview_is_truncated(self) -> None:
        command = "rm -rf / " + "x" * 100

        error = CommandBlockedError("bash", command, "contains 'rm -rf /'")

        assert error.code == "COMMAND_BLOCKED"
        assert error.parameter == "command"
        assert error.details["command_preview"] == command[:50] + "..."

    def test_execution_error_keeps_original(self) -> None:
        original = OSError("no such directory")

        error = ToolExecutionError("bash", "failed to start", original)

        assert error.original_error is original
        assert error.details["original_type"] == "OSError"

    def test_api_error_truncates_body(self) -> None:
        error = APIError("bad gateway", model="gpt-4o", status_code=502, response_body="b" * 900)

        assert error.status_code == 502
        assert len(error.details["response_body"]) == 500
        assert error.details["model"] == "gpt-4o"
