"""Housing Client Configuration System.

Layered YAML configuration with Pydantic validation. The request core only
ever sees the immutable ClientConfig produced here; nothing reads the
environment mid-request.

Config Layer Priority (highest to lowest):
1. Runtime overrides (in-memory)
2. System config (~/.housing-client/config.yaml)
3. Environment variables (HOUSING_CLIENT_ prefix, ``__`` nesting)
4. Defaults (defined in Pydantic models)

Retry values never fail validation: a malformed value is logged and
replaced by its built-in default.

Usage:
    from housing_client.core.config import get_settings

    settings = get_settings()
    config = settings.to_client_config()
    print(config.retry.default_timeout_ms)  # 15000.0 (default)
"""

from __future__ import annotations

import math
import threading
import warnings
from pathlib import Path
from typing import Any, Dict, Optional

import structlog
import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from housing_client.core.exceptions import ConfigurationError


log = structlog.get_logger()

DEFAULT_BASE_URL = "http://localhost:8080/api"
DEFAULT_CONFIG_DIR = Path.home() / ".housing-client"
DEFAULT_HEADERS: Dict[str, str] = {"Content-Type": "application/json"}


# =============================================================================
# Value Coercion
# =============================================================================


def _parse_number(value: Any, integral: bool) -> float:
    """Parse a config value into a finite number.

    Raises:
        ValueError: If the value is not a finite number (or not integral
            when ``integral`` is set).
    """
    if value is None or isinstance(value, bool):
        raise ValueError("not a number")
    if isinstance(value, str):
        value = value.strip()
    number = float(value)
    if not math.isfinite(number):
        raise ValueError("not finite")
    if integral and not number.is_integer():
        raise ValueError("not an integer")
    return number


# =============================================================================
# Sub-configuration Models
# =============================================================================


class RetryPolicy(BaseModel):
    """Process-wide retry configuration for the request executor.

    Attributes:
        default_timeout_ms: Timeout of the first attempt when the call does
            not override it.
        max_retries: Extra attempts allowed after a timed-out attempt.
        max_timeout_ms: Ceiling for the escalating per-attempt timeout.
        backoff_multiplier: Factor applied to the timeout after each timeout.
        retry_delay_ms: Fixed pause between a timed-out attempt and the next.
    """

    model_config = ConfigDict(frozen=True)

    default_timeout_ms: float = 15000.0
    max_retries: int = 2
    max_timeout_ms: float = 60000.0
    backoff_multiplier: float = 2.0
    retry_delay_ms: float = 500.0

    @classmethod
    def _fallback(cls, field_name: str, value: Any, reason: str) -> Any:
        default = cls.model_fields[field_name].default
        log.warning(
            "retry_policy_value_invalid",
            field=field_name,
            value=repr(value),
            reason=reason,
            default=default,
        )
        return default

    @field_validator("default_timeout_ms", "max_timeout_ms", mode="before")
    @classmethod
    def _validate_timeout(cls, v: Any, info: ValidationInfo) -> Any:
        try:
            number = _parse_number(v, integral=False)
        except (TypeError, ValueError) as e:
            return cls._fallback(info.field_name, v, str(e))
        if number <= 0:
            return cls._fallback(info.field_name, v, "must be > 0")
        return number

    @field_validator("max_retries", mode="before")
    @classmethod
    def _validate_max_retries(cls, v: Any, info: ValidationInfo) -> Any:
        try:
            number = _parse_number(v, integral=True)
        except (TypeError, ValueError) as e:
            return cls._fallback(info.field_name, v, str(e))
        if number < 0:
            return cls._fallback(info.field_name, v, "must be >= 0")
        return int(number)

    @field_validator("backoff_multiplier", mode="before")
    @classmethod
    def _validate_multiplier(cls, v: Any, info: ValidationInfo) -> Any:
        try:
            number = _parse_number(v, integral=False)
        except (TypeError, ValueError) as e:
            return cls._fallback(info.field_name, v, str(e))
        if number < 1:
            return cls._fallback(info.field_name, v, "must be >= 1")
        return number

    @field_validator("retry_delay_ms", mode="before")
    @classmethod
    def _validate_delay(cls, v: Any, info: ValidationInfo) -> Any:
        try:
            number = _parse_number(v, integral=False)
        except (TypeError, ValueError) as e:
            return cls._fallback(info.field_name, v, str(e))
        if number < 0:
            return cls._fallback(info.field_name, v, "must be >= 0")
        return number


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    format: str = "json"

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Validate log level is valid."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v.upper()

    @field_validator("format")
    @classmethod
    def validate_format(cls, v: str) -> str:
        """Validate renderer name."""
        if v.lower() not in {"json", "console"}:
            raise ValueError(f"Invalid log format: {v}. Must be 'json' or 'console'")
        return v.lower()


class ClientConfig(BaseModel):
    """Resolved, immutable configuration handed to the request executor."""

    model_config = ConfigDict(frozen=True)

    base_url: str = DEFAULT_BASE_URL
    retry: RetryPolicy = Field(default_factory=RetryPolicy)
    default_headers: Dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_HEADERS))

    @field_validator("base_url")
    @classmethod
    def _strip_trailing_slashes(cls, v: str) -> str:
        return normalise_base_url(v) or DEFAULT_BASE_URL


def normalise_base_url(url: Optional[str]) -> Optional[str]:
    """Strip trailing slashes from a base URL."""
    if not url:
        return url
    return url.rstrip("/")


# =============================================================================
# Main Settings
# =============================================================================


class Settings(BaseSettings):
    """Main settings class with layered configuration support.

    Loads configuration from:
    1. Values passed at construction (YAML file, runtime overrides)
    2. Environment variables (HOUSING_CLIENT_ prefix)
    3. Defaults defined in Pydantic models
    """

    model_config = SettingsConfigDict(
        env_prefix="HOUSING_CLIENT_",
        env_nested_delimiter="__",
        extra="ignore",
        frozen=True,
    )

    base_url: str = DEFAULT_BASE_URL
    retry: RetryPolicy = Field(default_factory=RetryPolicy)
    default_headers: Dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_HEADERS))
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    def to_client_config(self) -> ClientConfig:
        """Build the immutable config consumed by the request core."""
        return ClientConfig(
            base_url=self.base_url,
            retry=self.retry,
            default_headers=dict(self.default_headers),
        )


# =============================================================================
# Configuration Loading Functions
# =============================================================================


def load_yaml_file(path: Path) -> Dict[str, Any]:
    """Load and parse a YAML file.

    Args:
        path: Path to the YAML file.

    Returns:
        Parsed YAML content as dictionary.

    Raises:
        ConfigurationError: If file cannot be read or parsed.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            content = yaml.safe_load(f)
    except FileNotFoundError:
        raise ConfigurationError(
            config_path=str(path),
            message=f"Configuration file not found: {path}",
        )
    except yaml.YAMLError as e:
        raise ConfigurationError(
            config_path=str(path),
            message=f"Invalid YAML in {path}: {e}",
        )

    if content is None:
        return {}
    if not isinstance(content, dict):
        raise ConfigurationError(
            config_path=str(path),
            message=f"Configuration file {path} must contain a mapping",
        )
    return content


def load_system_config(path: Optional[Path] = None) -> Dict[str, Any]:
    """Load system configuration from YAML file.

    Args:
        path: Optional path to config file. Defaults to
            ~/.housing-client/config.yaml.

    Returns:
        System configuration dictionary, empty if the default file is absent.
    """
    if path is None:
        path = DEFAULT_CONFIG_DIR / "config.yaml"

    path = Path(path).expanduser()

    if not path.exists():
        return {}

    return load_yaml_file(path)


def merge_configs(*configs: Dict[str, Any]) -> Dict[str, Any]:
    """Deep merge configuration dictionaries; later ones win."""
    result: Dict[str, Any] = {}

    for config in configs:
        for key, value in config.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = merge_configs(result[key], value)
            else:
                result[key] = value

    return result


def create_settings(
    system_config_path: Optional[Path] = None,
    runtime_overrides: Optional[Dict[str, Any]] = None,
) -> Settings:
    """Create a Settings instance with layered configuration.

    Args:
        system_config_path: Optional path to system config file.
        runtime_overrides: Optional runtime overrides dictionary.

    Returns:
        Configured Settings instance.

    Raises:
        ConfigurationError: If configuration is invalid.
    """
    if system_config_path:
        config_base = Path(system_config_path).expanduser().parent
    else:
        config_base = DEFAULT_CONFIG_DIR

    env_path = config_base / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    merged = load_system_config(system_config_path)
    if runtime_overrides:
        merged = merge_configs(merged, runtime_overrides)

    try:
        return Settings(**merged)
    except Exception as e:
        raise ConfigurationError(
            config_path=str(system_config_path or DEFAULT_CONFIG_DIR / "config.yaml"),
            message=f"Configuration validation failed: {e}",
        ) from e


# =============================================================================
# Singleton Settings Access
# =============================================================================


class _SettingsHolder:
    """Thread-safe singleton holder for Settings instance."""

    _instance: Optional[Settings] = None
    _lock: threading.Lock = threading.Lock()

    @classmethod
    def get(cls, force_reload: bool = False, **kwargs: Any) -> Settings:
        if cls._instance is None or force_reload:
            with cls._lock:
                if cls._instance is None or force_reload:  # pragma: no cover
                    cls._instance = create_settings(**kwargs)
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        with cls._lock:
            cls._instance = None


def get_settings(
    force_reload: bool = False,
    system_config_path: Optional[Path] = None,
    runtime_overrides: Optional[Dict[str, Any]] = None,
) -> Settings:
    """Get the global Settings singleton.

    Settings are loaded once and cached for subsequent calls.

    Args:
        force_reload: If True, reload settings from files.
        system_config_path: Optional path to system config file.
        runtime_overrides: Optional runtime overrides.

    Returns:
        Settings instance.
    """
    if not force_reload and _SettingsHolder._instance is not None:
        if system_config_path is not None or runtime_overrides is not None:
            warnings.warn(
                "Arguments provided to get_settings() are ignored because "
                "singleton is already initialized. Use force_reload=True "
                "to apply new configuration.",
                RuntimeWarning,
                stacklevel=2,
            )

    return _SettingsHolder.get(
        force_reload=force_reload,
        system_config_path=system_config_path,
        runtime_overrides=runtime_overrides,
    )


def reset_settings() -> None:
    """Reset the settings singleton (for testing)."""
    _SettingsHolder.reset()
