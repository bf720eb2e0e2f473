"""Unit tests for the housing client configuration system.

Covers retry policy defaults and malformed-value fallback, YAML loading,
environment variables, runtime overrides and singleton behaviour.
"""

from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

from housing_client.core.config import (
    DEFAULT_BASE_URL,
    ClientConfig,
    LoggingConfig,
    RetryPolicy,
    Settings,
    create_settings,
    get_settings,
    load_system_config,
    load_yaml_file,
    merge_configs,
    normalise_base_url,
    reset_settings,
)
from housing_client.core.exceptions import ConfigurationError


def write_yaml(path: Path, data: dict) -> Path:
    path.write_text(yaml.safe_dump(data), encoding="utf-8")
    return path


# =============================================================================
# RetryPolicy
# =============================================================================


class TestRetryPolicyDefaults:
    """Built-in defaults."""

    def test_defaults(self) -> None:
        policy = RetryPolicy()
        assert policy.default_timeout_ms == 15000
        assert policy.max_retries == 2
        assert policy.max_timeout_ms == 60000
        assert policy.backoff_multiplier == 2.0
        assert policy.retry_delay_ms == 500

    def test_is_immutable(self) -> None:
        policy = RetryPolicy()
        with pytest.raises(ValidationError):
            policy.max_retries = 9

    def test_numeric_strings_are_accepted(self) -> None:
        policy = RetryPolicy(default_timeout_ms="2500", max_retries=" 4 ", backoff_multiplier="1.5")
        assert policy.default_timeout_ms == 2500.0
        assert policy.max_retries == 4
        assert policy.backoff_multiplier == 1.5


class TestRetryPolicyFallback:
    """Malformed values fall back to their defaults instead of raising."""

    @pytest.mark.parametrize(
        "field, value",
        [
            ("default_timeout_ms", "soon"),
            ("default_timeout_ms", 0),
            ("default_timeout_ms", -5),
            ("default_timeout_ms", float("inf")),
            ("max_timeout_ms", None),
            ("max_retries", "three"),
            ("max_retries", -1),
            ("max_retries", 1.5),
            ("max_retries", True),
            ("backoff_multiplier", 0.5),
            ("backoff_multiplier", "nan"),
            ("retry_delay_ms", -100),
            ("retry_delay_ms", [1, 2]),
        ],
    )
    def test_invalid_value_uses_default(self, field: str, value: object) -> None:
        policy = RetryPolicy(**{field: value})
        assert getattr(policy, field) == RetryPolicy.model_fields[field].default

    def test_other_fields_survive_a_bad_one(self) -> None:
        policy = RetryPolicy(max_retries="x", default_timeout_ms=100)
        assert policy.max_retries == 2
        assert policy.default_timeout_ms == 100

    def test_zero_retries_and_zero_delay_are_valid(self) -> None:
        policy = RetryPolicy(max_retries=0, retry_delay_ms=0)
        assert policy.max_retries == 0
        assert policy.retry_delay_ms == 0

    def test_multiplier_of_one_is_valid(self) -> None:
        assert RetryPolicy(backoff_multiplier=1).backoff_multiplier == 1.0


# =============================================================================
# ClientConfig / LoggingConfig
# =============================================================================


class TestClientConfig:
    def test_trailing_slashes_stripped(self) -> None:
        config = ClientConfig(base_url="https://portal.example.com/api///")
        assert config.base_url == "https://portal.example.com/api"

    def test_empty_base_url_uses_default(self) -> None:
        assert ClientConfig(base_url="").base_url == DEFAULT_BASE_URL

    def test_default_headers(self) -> None:
        assert ClientConfig().default_headers == {"Content-Type": "application/json"}

    def test_normalise_base_url_passthrough(self) -> None:
        assert normalise_base_url(None) is None
        assert normalise_base_url("http://a/b/") == "http://a/b"


class TestLoggingConfig:
    def test_level_is_uppercased(self) -> None:
        assert LoggingConfig(level="debug").level == "DEBUG"

    def test_invalid_level_rejected(self) -> None:
        with pytest.raises(ValidationError):
            LoggingConfig(level="chatty")

    def test_invalid_format_rejected(self) -> None:
        with pytest.raises(ValidationError):
            LoggingConfig(format="xml")


# =============================================================================
# Loading
# =============================================================================


class TestYamlLoading:
    def test_load_yaml_file(self, tmp_path: Path) -> None:
        path = write_yaml(tmp_path / "config.yaml", {"base_url": "http://a"})
        assert load_yaml_file(path) == {"base_url": "http://a"}

    def test_empty_file_is_empty_dict(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("", encoding="utf-8")
        assert load_yaml_file(path) == {}

    def test_missing_file_raises(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError, match="not found"):
            load_yaml_file(tmp_path / "missing.yaml")

    def test_invalid_yaml_raises(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("retry: [unclosed", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            load_yaml_file(path)

    def test_non_mapping_raises(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="mapping"):
            load_yaml_file(path)

    def test_load_system_config_missing_is_empty(self, tmp_path: Path) -> None:
        assert load_system_config(tmp_path / "nope.yaml") == {}


class TestMergeConfigs:
    def test_deep_merge_later_wins(self) -> None:
        merged = merge_configs(
            {"retry": {"max_retries": 1, "retry_delay_ms": 10}, "base_url": "a"},
            {"retry": {"max_retries": 3}},
        )
        assert merged == {"retry": {"max_retries": 3, "retry_delay_ms": 10}, "base_url": "a"}


class TestCreateSettings:
    def test_defaults_without_files(self, tmp_path: Path) -> None:
        settings = create_settings(system_config_path=tmp_path / "config.yaml")
        assert settings.base_url == DEFAULT_BASE_URL
        assert settings.retry == RetryPolicy()

    def test_yaml_values_applied(self, tmp_path: Path) -> None:
        path = write_yaml(
            tmp_path / "config.yaml",
            {"base_url": "https://portal.example.com/api/", "retry": {"max_retries": 5}},
        )
        config = create_settings(system_config_path=path).to_client_config()
        assert config.base_url == "https://portal.example.com/api"
        assert config.retry.max_retries == 5

    def test_malformed_yaml_retry_value_falls_back(self, tmp_path: Path) -> None:
        path = write_yaml(tmp_path / "config.yaml", {"retry": {"default_timeout_ms": "fast"}})
        settings = create_settings(system_config_path=path)
        assert settings.retry.default_timeout_ms == 15000

    def test_environment_variables(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("HOUSING_CLIENT_BASE_URL", "http://env.example/api")
        monkeypatch.setenv("HOUSING_CLIENT_RETRY__MAX_RETRIES", "7")
        settings = create_settings(system_config_path=tmp_path / "config.yaml")
        assert settings.base_url == "http://env.example/api"
        assert settings.retry.max_retries == 7

    def test_malformed_environment_value_falls_back(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("HOUSING_CLIENT_RETRY__BACKOFF_MULTIPLIER", "double")
        settings = create_settings(system_config_path=tmp_path / "config.yaml")
        assert settings.retry.backoff_multiplier == 2.0

    def test_runtime_overrides_win_over_yaml(self, tmp_path: Path) -> None:
        path = write_yaml(tmp_path / "config.yaml", {"retry": {"max_retries": 5}})
        settings = create_settings(
            system_config_path=path,
            runtime_overrides={"retry": {"max_retries": 0}},
        )
        assert settings.retry.max_retries == 0

    def test_dotenv_next_to_config_is_loaded(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        (tmp_path / ".env").write_text("HOUSING_CLIENT_BASE_URL=http://dotenv.example/api\n")
        settings = create_settings(system_config_path=tmp_path / "config.yaml")
        assert settings.base_url == "http://dotenv.example/api"

    def test_invalid_logging_section_raises_configuration_error(self, tmp_path: Path) -> None:
        path = write_yaml(tmp_path / "config.yaml", {"logging": {"level": "LOUD"}})
        with pytest.raises(ConfigurationError, match="validation failed"):
            create_settings(system_config_path=path)

    def test_settings_are_frozen(self) -> None:
        settings = Settings()
        with pytest.raises(ValidationError):
            settings.base_url = "http://other"


class TestSingleton:
    def test_get_settings_returns_same_instance(self) -> None:
        assert get_settings() is get_settings()

    def test_force_reload_creates_new_instance(self, tmp_path: Path) -> None:
        first = get_settings()
        second = get_settings(force_reload=True, system_config_path=tmp_path / "c.yaml")
        assert first is not second

    def test_ignored_arguments_warn(self, tmp_path: Path) -> None:
        get_settings()
        with pytest.warns(RuntimeWarning, match="ignored"):
            get_settings(runtime_overrides={"base_url": "http://x"})

    def test_reset_settings(self) -> None:
        first = get_settings()
        reset_settings()
        assert get_settings() is not first
