"""Tests for configuration loading."""

import os
from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

from codeloop.agent import SessionConfig
from codeloop.config import (
    PROJECT_CONFIG_FILE,
    Settings,
    _deep_merge,
    _drop_unset,
    _env_overrides,
    _expand_env_vars,
    create_default_config,
    get_settings,
    load_project_config,
    load_settings,
    save_project_config,
)
from codeloop.config.settings import (
    DEFAULT_SYSTEM_PROMPT,
    ModelConfig,
    ProjectConfig,
    ShellConfig,
)
from codeloop.errors import InvalidConfigError


class TestExpandEnvVars:
    """Tests for environment variable expansion."""

    def test_expand_simple_var(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test expanding a simple environment variable."""
        monkeypatch.setenv("TEST_VAR", "test_value")
        assert _expand_env_vars("${TEST_VAR}") == "test_value"

    def test_expand_missing_var(self) -> None:
        """Test expanding a missing environment variable returns None."""
        assert _expand_env_vars("${NONEXISTENT_VAR_FOR_CODELOOP}") is None

    def test_expand_in_nested_dict(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test expanding variables in nested dictionaries."""
        monkeypatch.setenv("NESTED_VAR", "nested_value")
        data = {"level1": {"level2": "${NESTED_VAR}"}, "other": "static"}
        result = _expand_env_vars(data)
        assert result["level1"]["level2"] == "nested_value"
        assert result["other"] == "static"

    def test_expand_in_list(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test expanding variables in a list."""
        monkeypatch.setenv("LIST_VAR", "list_value")
        assert _expand_env_vars(["${LIST_VAR}", "static"]) == ["list_value", "static"]

    def test_non_strings_untouched(self) -> None:
        assert _expand_env_vars(42) == 42
        assert _expand_env_vars(False) is False


class TestMergeHelpers:
    """Tests for the dictionary helpers."""

    def test_deep_merge(self) -> None:
        base = {"a": 1, "nested": {"x": 1, "y": 2}}
        override = {"b": 2, "nested": {"y": 3}}

        result = _deep_merge(base, override)

        assert result == {"a": 1, "b": 2, "nested": {"x": 1, "y": 3}}
        assert base["nested"]["y"] == 2

    def test_drop_unset(self) -> None:
        data = {"api_key": None, "model": {"model_id": "gpt-4o", "extra": None}}

        assert _drop_unset(data) == {"model": {"model_id": "gpt-4o"}}

    def test_env_overrides_drop_file_values(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CODELOOP_MODEL__MODEL_ID", "gpt-4o-mini")
        monkeypatch.setenv("CODELOOP_PROVIDER", "openai")
        config = {"provider": "openai", "model": {"model_id": "gpt-4.1", "max_tokens": 10}}

        result = _env_overrides(config)

        assert result == {"model": {"max_tokens": 10}}
        assert config["model"]["model_id"] == "gpt-4.1"


class TestLoadSettings:
    """Tests for layered settings loading."""

    def test_defaults(self, clean_env, no_user_config) -> None:
        settings = load_settings(force_reload=True)

        assert settings.provider == "openai"
        assert settings.api_key is None
        assert settings.has_api_key is False
        assert settings.model.model_id == "gpt-4o"
        assert settings.agent.max_tool_iterations == 10
        assert settings.agent.system_prompt == DEFAULT_SYSTEM_PROMPT
        assert settings.shell.default_timeout == 30

    def test_api_key_from_openai_env(self, mock_api_key, no_user_config) -> None:
        assert load_settings(force_reload=True).api_key == "test-openai-key"

    def test_codeloop_key_wins(
        self, mock_api_key, no_user_config, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("CODELOOP_API_KEY", "codeloop-key")

        assert load_settings(force_reload=True).api_key == "codeloop-key"

    def test_blank_key_is_unset(
        self, clean_env, no_user_config, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("OPENAI_API_KEY", "   ")

        assert load_settings(force_reload=True).has_api_key is False

    def test_user_config_file(self, clean_env, tmp_path: Path) -> None:
        config_path = tmp_path / "custom.yaml"
        config_path.write_text(yaml.safe_dump({
            "model": {"model_id": "gpt-4.1", "temperature": 0.2},
            "agent": {"stream": True},
        }))

        settings = load_settings(config_path=config_path, force_reload=True)

        assert settings.model.model_id == "gpt-4.1"
        assert settings.model.temperature == 0.2
        assert settings.model.max_tokens == 4096
        assert settings.agent.stream is True

    def test_env_beats_user_config(
        self, clean_env, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        config_path = tmp_path / "custom.yaml"
        config_path.write_text(yaml.safe_dump({"model": {"model_id": "gpt-4.1"}}))
        monkeypatch.setenv("CODELOOP_MODEL__MODEL_ID", "gpt-4o-mini")

        settings = load_settings(config_path=config_path, force_reload=True)

        assert settings.model.model_id == "gpt-4o-mini"
        assert settings.model.max_tokens == 4096

    def test_settings_are_cached(self, clean_env, no_user_config) -> None:
        first = get_settings()

        assert get_settings() is first
        assert load_settings(force_reload=True) is not first

    def test_create_default_config(self, no_user_config: Path) -> None:
        create_default_config()

        assert no_user_config.exists()
        assert "model_id: gpt-4o" in no_user_config.read_text()


class TestSettingsModels:
    """Tests for the settings value objects."""

    def test_empty_model_id_rejected(self) -> None:
        with pytest.raises(ValidationError):
            ModelConfig(model_id="  ")

    def test_model_id_stripped(self) -> None:
        assert ModelConfig(model_id=" gpt-4o ").model_id == "gpt-4o"

    def test_shell_max_timeout_capped(self) -> None:
        with pytest.raises(ValidationError):
            ShellConfig(max_timeout=600)

    def test_shell_tool_options_clamp_default(self) -> None:
        options = ShellConfig(default_timeout=120, max_timeout=60).to_tool_options()

        assert options == {
            "default_timeout": 60,
            "max_timeout": 60,
            "max_output_length": 30000,
        }

    def test_to_session_config(self, tmp_path: Path) -> None:
        settings = Settings(
            api_key="k",
            model={"max_tokens": 1000, "temperature": 0.1},
            agent={"max_tool_iterations": 3, "stream": True},
        )

        config = settings.to_session_config(tmp_path, ProjectConfig(approved_tools=["bash"]))

        assert isinstance(config, SessionConfig)
        assert config.project_path == str(tmp_path)
        assert config.max_tokens == 1000
        assert config.temperature == 0.1
        assert config.max_tool_iterations == 3
        assert config.stream is True
        assert config.approved_tools == ["bash"]


class TestProjectConfig:
    """Tests for per-project configuration."""

    def test_missing_file_gives_defaults(self, tmp_path: Path) -> None:
        assert load_project_config(tmp_path).approved_tools == []

    def test_save_and_load(self, tmp_path: Path) -> None:
        path = save_project_config(tmp_path, ProjectConfig(approved_tools=["bash", "think"]))

        assert path == tmp_path / PROJECT_CONFIG_FILE
        assert load_project_config(tmp_path).approved_tools == ["bash", "think"]

    def test_non_mapping_file(self, tmp_path: Path) -> None:
        (tmp_path / PROJECT_CONFIG_FILE).write_text("- just\n- a list\n")

        with pytest.raises(InvalidConfigError):
            load_project_config(tmp_path)

    def test_empty_project_path(self) -> None:
        with pytest.raises(InvalidConfigError) as exc_info:
            load_project_config("")

        assert exc_info.value.code == "INVALID_CONFIG"
