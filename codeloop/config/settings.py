"""Configuration settings models using Pydantic."""

from pathlib import Path
from typing import TYPE_CHECKING, Literal, Optional, Union

from pydantic import AliasChoices, BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

if TYPE_CHECKING:
    from codeloop.agent.session import SessionConfig


DEFAULT_SYSTEM_PROMPT = (
    "You are a helpful AI assistant that can use tools to help with coding tasks."
)


class ModelConfig(BaseModel):
    """Configuration for the language model."""

    model_id: str = "gpt-4o"
    max_tokens: int = Field(default=4096, ge=1, le=200000)
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)

    @field_validator("model_id")
    @classmethod
    def validate_model_id(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("model_id cannot be empty")
        return v.strip()


class AgentConfig(BaseModel):
    """Configuration for the session loop."""

    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    max_tool_iterations: int = Field(default=10, ge=1, le=100)
    stream: bool = False
    read_only: bool = False


class ShellConfig(BaseModel):
    """Configuration for the bash tool."""

    default_timeout: float = Field(default=30.0, gt=0)
    max_timeout: float = Field(default=300.0, gt=0, le=300.0)
    max_output_length: int = Field(default=30000, ge=100)

    def to_tool_options(self) -> dict:
        return {
            "default_timeout": min(self.default_timeout, self.max_timeout),
            "max_timeout": self.max_timeout,
            "max_output_length": self.max_output_length,
        }


class ProjectConfig(BaseModel):
    """Per-project configuration, stored in ``<project>/.codeloop.yaml``."""

    approved_tools: list[str] = Field(default_factory=list)


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_prefix="CODELOOP_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    provider: Literal["openai"] = "openai"

    # AliasChoices allows reading from either the field name or OPENAI_API_KEY
    api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("api_key", "CODELOOP_API_KEY", "OPENAI_API_KEY"),
    )
    base_url: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("base_url", "CODELOOP_BASE_URL", "OPENAI_BASE_URL"),
    )

    # Nested configurations
    model: ModelConfig = Field(default_factory=ModelConfig)
    agent: AgentConfig = Field(default_factory=AgentConfig)
    shell: ShellConfig = Field(default_factory=ShellConfig)

    @field_validator("api_key", "base_url")
    @classmethod
    def validate_not_blank(cls, v: Optional[str]) -> Optional[str]:
        """Treat empty strings as unset."""
        if v is not None and not v.strip():
            return None
        return v

    @property
    def has_api_key(self) -> bool:
        return self.api_key is not None

    def to_session_config(
        self,
        project_path: Union[str, Path] = ".",
        project: Optional[ProjectConfig] = None,
    ) -> "SessionConfig":
        """Build the value object a Session is constructed with."""
        from codeloop.agent.session import SessionConfig

        return SessionConfig(
            project_path=str(project_path),
            system_prompt=self.agent.system_prompt,
            max_tokens=self.model.max_tokens,
            temperature=self.model.temperature,
            max_tool_iterations=self.agent.max_tool_iterations,
            stream=self.agent.stream,
            approved_tools=list(project.approved_tools) if project else [],
        )
