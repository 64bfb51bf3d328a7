"""Centralized exception hierarchy for CodeLoop.

This module defines all custom exceptions used throughout the CodeLoop
runtime, organized in a hierarchy for easy handling and specificity.

Tool validation and execution failures are absorbed into the conversation
by the session. Protocol, transport and configuration errors propagate to
whoever drives the session.
"""

from __future__ import annotations

from typing import Any, Optional


class CodeLoopError(Exception):
    """Base exception for all CodeLoop errors.

    Attributes:
        message: Human-readable error message.
        code: Optional error code for programmatic handling.
        details: Optional dictionary with additional error context.
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.code:
            return f"[{self.code}] {self.message}"
        return self.message

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "code": self.code,
            "details": self.details,
        }


# =============================================================================
# Configuration Errors
# =============================================================================

class ConfigurationError(CodeLoopError):
    """Raised when there's a configuration problem."""
    pass


class MissingAPIKeyError(ConfigurationError):
    """Raised when a required API key is not configured."""

    def __init__(self, provider: str):
        super().__init__(
            message=f"API key for {provider} is not configured",
            code="MISSING_API_KEY",
            details={"provider": provider},
        )


class InvalidConfigError(ConfigurationError):
    """Raised when configuration values are invalid."""

    def __init__(self, field: str, value: Any, reason: str):
        super().__init__(
            message=f"Invalid configuration for '{field}': {reason}",
            code="INVALID_CONFIG",
            details={"field": field, "value": str(value)[:100], "reason": reason},
        )


# =============================================================================
# Tool Errors
# =============================================================================

class ToolError(CodeLoopError):
    """Base exception for tool-related errors."""

    def __init__(
        self,
        message: str,
        tool_name: Optional[str] = None,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        details = details or {}
        if tool_name:
            details["tool_name"] = tool_name
        self.tool_name = tool_name
        super().__init__(message, code, details)


class ToolValidationError(ToolError):
    """Raised when tool arguments fail validation."""

    def __init__(
        self,
        tool_name: str,
        parameter: str,
        reason: str,
    ):
        super().__init__(
            message=f"Invalid argument '{parameter}' for tool '{tool_name}': {reason}",
            tool_name=tool_name,
            code="TOOL_VALIDATION_ERROR",
            details={"parameter": parameter, "reason": reason},
        )
        self.parameter = parameter
        self.reason = reason


class CommandBlockedError(ToolValidationError):
    """Raised when a shell command matches the destructive-command deny-list.

    The deny-list is a substring heuristic that catches obvious accidents.
    It is trivially bypassable and is not an isolation boundary.
    """

    def __init__(self, tool_name: str, command: str, reason: str):
        super().__init__(tool_name, "command", f"command blocked: {reason}")
        # Don't echo the full command back into logs
        self.details["command_preview"] = (
            command[:50] + "..." if len(command) > 50 else command
        )
        self.code = "COMMAND_BLOCKED"


class ToolExecutionError(ToolError):
    """Raised when a tool ran (or tried to) but failed."""

    def __init__(
        self,
        tool_name: str,
        reason: str,
        original_error: Optional[Exception] = None,
    ):
        details: dict[str, Any] = {"reason": reason}
        if original_error:
            details["original_error"] = str(original_error)
            details["original_type"] = type(original_error).__name__
        super().__init__(
            message=f"Tool '{tool_name}' failed: {reason}",
            tool_name=tool_name,
            code="TOOL_EXECUTION_ERROR",
            details=details,
        )
        self.original_error = original_error


# =============================================================================
# Protocol Errors
# =============================================================================

class ProtocolError(CodeLoopError):
    """Raised when the model side of the conversation breaks the contract."""
    pass


class ToolNotFoundError(ProtocolError):
    """Raised when the model requests a tool that is not in the active set."""

    def __init__(self, tool_name: str):
        super().__init__(
            message=f"Tool not found: {tool_name}",
            code="TOOL_NOT_FOUND",
            details={"tool_name": tool_name},
        )
        self.tool_name = tool_name


class MalformedResponseError(ProtocolError):
    """Raised when a model client returns an empty or malformed response."""

    def __init__(self, reason: str, model: Optional[str] = None):
        details: dict[str, Any] = {"reason": reason}
        if model:
            details["model"] = model
        super().__init__(
            message=f"Malformed model response: {reason}",
            code="MALFORMED_RESPONSE",
            details=details,
        )


# =============================================================================
# Transport Errors
# =============================================================================

class TransportError(CodeLoopError):
    """Base exception for failures talking to the model backend."""

    def __init__(
        self,
        message: str,
        model: Optional[str] = None,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        details = details or {}
        if model:
            details["model"] = model
        super().__init__(message, code or "TRANSPORT_ERROR", details)


class APIError(TransportError):
    """Raised when an API call fails."""

    def __init__(
        self,
        message: str,
        model: Optional[str] = None,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
    ):
        details: dict[str, Any] = {}
        if status_code:
            details["status_code"] = status_code
        if response_body:
            # Truncate response body to avoid logging sensitive data
            details["response_body"] = response_body[:500]
        super().__init__(message, model, "API_ERROR", details)
        self.status_code = status_code


class RateLimitError(TransportError):
    """Raised when API rate limit is exceeded."""

    def __init__(
        self,
        model: str,
        retry_after: Optional[float] = None,
    ):
        details: dict[str, Any] = {}
        if retry_after:
            details["retry_after_seconds"] = retry_after
        super().__init__(
            message=f"Rate limit exceeded for {model}",
            model=model,
            code="RATE_LIMIT",
            details=details,
        )
        self.retry_after = retry_after


class AuthenticationError(TransportError):
    """Raised when API authentication fails."""

    def __init__(self, model: str, reason: Optional[str] = None):
        message = f"Authentication failed for {model}"
        if reason:
            message += f": {reason}"
        super().__init__(message, model, "AUTH_ERROR")
