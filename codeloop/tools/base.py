"""The tool contract.

A tool is a named, self-describing capability. Input arrives from the model
as an untyped mapping; each tool projects it into a strongly-typed pydantic
arguments model in :meth:`Tool.parse_input` and works only with that model
from then on.

``validate_input`` must be free of side effects and is expected to run
before ``execute``. ``execute`` decodes the input again, so invalid input is
rejected with a :class:`ToolValidationError` rather than executed.
``is_read_only`` and ``requires_permission`` are advisory; the tool executes
whenever it is called.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, ClassVar, Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, ValidationError

from codeloop.errors import ToolValidationError
from codeloop.models.tools import ToolDefinition, ToolParameter

logger = logging.getLogger(__name__)


class ToolArguments(BaseModel):
    """Base for per-tool argument models.

    Strict types mirror what a JSON decoder produces; unknown fields are
    rejected so typos in model-generated arguments surface as errors.
    """

    model_config = ConfigDict(strict=True, extra="forbid", frozen=True)


ArgsT = TypeVar("ArgsT", bound=ToolArguments)


def _describe_validation_error(error: ValidationError) -> tuple[str, str]:
    """Reduce a pydantic error to (parameter, reason) for the first problem."""
    first = error.errors()[0]
    loc = first.get("loc") or ()
    parameter = str(loc[0]) if loc else "input"
    if first.get("type") == "missing":
        return parameter, f"{parameter} is required"
    if first.get("type") == "extra_forbidden":
        return parameter, f"unknown parameter: {parameter}"
    return parameter, first.get("msg", "invalid value")


class Tool(ABC, Generic[ArgsT]):
    """Abstract base for all tools.

    Subclasses set ``name``, ``description``, ``parameters`` and
    ``arguments_model``, and implement :meth:`run`.
    """

    name: ClassVar[str]
    description: ClassVar[str]
    parameters: ClassVar[list[ToolParameter]]
    arguments_model: ClassVar[type[ToolArguments]]
    read_only: ClassVar[bool] = False

    def __init__(self, working_directory: Optional[str] = None) -> None:
        self.working_directory = working_directory

    @property
    def definition(self) -> ToolDefinition:
        """Declaration advertised to model clients."""
        return ToolDefinition(
            name=self.name,
            description=self.description,
            parameters=list(self.parameters),
        )

    def argument_schema(self) -> dict[str, Any]:
        """JSON Schema of the accepted arguments."""
        return self.definition.json_schema()

    def is_read_only(self) -> bool:
        return self.read_only

    def requires_permission(self, input: dict[str, Any]) -> bool:
        """Whether a host should ask before running this call."""
        return True

    def parse_input(self, input: Any) -> ArgsT:
        """Decode untyped model input into this tool's arguments model.

        Raises:
            ToolValidationError: If the input is not a mapping or fails
                type/constraint checks.
        """
        if not isinstance(input, dict):
            raise ToolValidationError(self.name, "input", "input must be an object")
        try:
            return self.arguments_model.model_validate(input)  # type: ignore[return-value]
        except ValidationError as e:
            parameter, reason = _describe_validation_error(e)
            raise ToolValidationError(self.name, parameter, reason) from None

    def check(self, args: ArgsT) -> None:
        """Tool-specific checks beyond types. Must not have side effects."""

    def validate_input(self, input: Any) -> None:
        """Reject malformed input without side effects.

        Raises:
            ToolValidationError: Describing the first problem found.
        """
        self.check(self.parse_input(input))

    async def execute(self, input: Any) -> Any:
        """Decode the input and run the tool.

        Returns:
            The tool's structured output payload.

        Raises:
            ToolValidationError: If the input fails validation.
            ToolExecutionError: If the tool cannot run at all.
        """
        args = self.parse_input(input)
        self.check(args)
        return await self.run(args)

    @abstractmethod
    async def run(self, args: ArgsT) -> Any:
        """Perform the operation on validated arguments."""
        ...

    def resolve_path(self, path: str) -> Path:
        """Resolve a path relative to the tool's working directory."""
        p = Path(path).expanduser()
        if not p.is_absolute():
            base = Path(self.working_directory) if self.working_directory else Path.cwd()
            p = base / p
        return p

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"
