"""Configuration management for CodeLoop."""

import logging
import os
import re
from pathlib import Path
from typing import Any, Optional, Union

import yaml

from codeloop.errors import InvalidConfigError

from .settings import (
    AgentConfig,
    ModelConfig,
    ProjectConfig,
    Settings,
    ShellConfig,
)

logger = logging.getLogger(__name__)

# Singleton instance
_settings: Optional[Settings] = None

# Default config directory
CONFIG_DIR = Path.home() / ".codeloop"
CONFIG_FILE = CONFIG_DIR / "config.yaml"
DEFAULTS_FILE = Path(__file__).parent / "defaults.yaml"

# Per-project configuration file name
PROJECT_CONFIG_FILE = ".codeloop.yaml"


def _expand_env_vars(value: Any) -> Any:
    """Recursively expand ${ENV_VAR} syntax in strings."""
    if isinstance(value, str):
        # Match ${VAR_NAME} pattern
        pattern = r"\$\{([^}]+)\}"
        matches = re.findall(pattern, value)
        for var_name in matches:
            env_value = os.environ.get(var_name, "")
            value = value.replace(f"${{{var_name}}}", env_value)
        return value if value else None
    elif isinstance(value, dict):
        return {k: _expand_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [_expand_env_vars(item) for item in value]
    return value


def _deep_merge(base: dict, override: dict) -> dict:
    """Deep merge two dictionaries, with override taking precedence."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _drop_unset(value: Any) -> Any:
    """Remove keys whose value is None so environment variables can fill them."""
    if isinstance(value, dict):
        return {k: _drop_unset(v) for k, v in value.items() if v is not None}
    return value


def _load_yaml_file(path: Path) -> dict:
    """Load a YAML file and return its contents."""
    if not path.exists():
        return {}
    with open(path, "r", encoding="utf-8") as f:
        content = yaml.safe_load(f)
        return content if content else {}


def _env_overrides(config: dict) -> dict:
    """Remove file values that an environment variable should override.

    Values passed to the Settings constructor take precedence over the
    environment, so sections set through ``CODELOOP_*`` variables are
    dropped from the file config before construction.
    """
    result = dict(config)
    prefix = "CODELOOP_"
    for env_name in os.environ:
        upper = env_name.upper()
        if not upper.startswith(prefix):
            continue
        path = upper[len(prefix):].lower().split("__")
        section = result
        for part in path[:-1]:
            nested = section.get(part)
            if not isinstance(nested, dict):
                section = {}
                break
            nested = dict(nested)
            section[part] = nested
            section = nested
        section.pop(path[-1], None)
    return result


def ensure_config_dir() -> None:
    """Ensure the config directory exists."""
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)


def create_default_config() -> None:
    """Create a default config file if it doesn't exist."""
    ensure_config_dir()
    if not CONFIG_FILE.exists():
        # Copy defaults to user config location
        defaults = DEFAULTS_FILE.read_text(encoding="utf-8")
        CONFIG_FILE.write_text(defaults, encoding="utf-8")


def load_settings(config_path: Optional[Path] = None, force_reload: bool = False) -> Settings:
    """
    Load settings with priority: env vars > user config > defaults.

    Args:
        config_path: Optional path to a custom config file
        force_reload: Force reload even if settings are cached

    Returns:
        Settings instance
    """
    global _settings

    if _settings is not None and not force_reload:
        return _settings

    # Load defaults
    defaults = _load_yaml_file(DEFAULTS_FILE)

    # Load user config
    user_config_path = config_path or CONFIG_FILE
    user_config = _load_yaml_file(Path(user_config_path))
    if user_config:
        logger.debug(f"Loaded user config from {user_config_path}")

    # Merge configs (user overrides defaults)
    merged = _deep_merge(defaults, user_config)

    # Expand environment variables in the merged config
    expanded = _drop_unset(_expand_env_vars(merged))

    # Create Settings instance (this also reads from environment variables)
    _settings = Settings(**_env_overrides(expanded))

    return _settings


def get_settings() -> Settings:
    """Get the current settings instance, loading if necessary."""
    if _settings is None:
        return load_settings()
    return _settings


def reset_settings() -> None:
    """Reset the settings singleton (useful for testing)."""
    global _settings
    _settings = None


def _project_config_path(project_path: Union[str, Path]) -> Path:
    if not str(project_path).strip():
        raise InvalidConfigError("project_path", project_path, "project path cannot be empty")
    return Path(project_path).expanduser() / PROJECT_CONFIG_FILE


def load_project_config(project_path: Union[str, Path]) -> ProjectConfig:
    """Load ``<project>/.codeloop.yaml``, returning defaults if it is absent.

    Raises:
        InvalidConfigError: If the project path is empty or the file does
            not hold a mapping.
    """
    path = _project_config_path(project_path)
    data = _load_yaml_file(path)
    if not isinstance(data, dict):
        raise InvalidConfigError(str(path), data, "project config must be a mapping")
    return ProjectConfig(**data)


def save_project_config(project_path: Union[str, Path], config: ProjectConfig) -> Path:
    """Write the project configuration and return the file path."""
    path = _project_config_path(project_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(config.model_dump(), f, default_flow_style=False, sort_keys=False)
    logger.debug(f"Saved project config to {path}")
    return path


__all__ = [
    "Settings",
    "ModelConfig",
    "AgentConfig",
    "ShellConfig",
    "ProjectConfig",
    "get_settings",
    "load_settings",
    "reset_settings",
    "load_project_config",
    "save_project_config",
    "ensure_config_dir",
    "create_default_config",
    "CONFIG_DIR",
    "CONFIG_FILE",
    "PROJECT_CONFIG_FILE",
]
