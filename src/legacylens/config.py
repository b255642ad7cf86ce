"""Configuration system for the legacylens backend.

This module handles loading settings from environment variables and INI files,
providing sensible defaults for the generation pipeline (retry, cache,
progress) and the LLM provider.
"""

from configparser import ConfigParser
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Optional
import os

from legacylens.constants import (
    DEFAULT_CACHE_MAX_SIZE,
    DEFAULT_CACHE_TTL_MS,
    DEFAULT_MAX_RETRIES,
    DEFAULT_RETRY_BASE_DELAY_MS,
    DEFAULT_TEMPERATURE,
    JSON_TEMPERATURE,
    MAX_TOKENS,
    MIN_EMIT_INTERVAL_MS,
    VALIDATION_MAX_RETRIES,
)


class ConfigError(Exception):
    """Raised when configuration validation fails."""

    pass


# Schema: section -> key -> (type, default, min, max, description)
CONFIG_SCHEMA: dict[str, dict[str, tuple[type, Any, Any, Any, str]]] = {
    "generation": {
        "max_retries": (int, DEFAULT_MAX_RETRIES, 1, 10, "Attempts per AI operation"),
        "retry_base_delay_ms": (
            int,
            DEFAULT_RETRY_BASE_DELAY_MS,
            0,
            60_000,
            "Base delay for exponential backoff",
        ),
        "validation_max_retries": (
            int,
            VALIDATION_MAX_RETRIES,
            1,
            10,
            "Validate/auto-fix passes",
        ),
    },
    "cache": {
        "ttl_ms": (int, DEFAULT_CACHE_TTL_MS, 1, None, "Cache entry lifetime"),
        "max_size": (int, DEFAULT_CACHE_MAX_SIZE, 1, 1_000_000, "Max cached entries"),
    },
    "progress": {
        "min_emit_interval_ms": (
            int,
            MIN_EMIT_INTERVAL_MS,
            0,
            10_000,
            "Minimum gap between intermediate progress events",
        ),
    },
    "llm": {
        "max_tokens": (int, MAX_TOKENS, 256, 32768, "Max response tokens"),
        "default_temperature": (float, DEFAULT_TEMPERATURE, 0.0, 2.0, "Default LLM temperature"),
        "json_temperature": (float, JSON_TEMPERATURE, 0.0, 1.0, "Temperature for structured output"),
    },
}


@dataclass(frozen=True)
class GenerationConfig:
    """Retry configuration for generation operations."""

    max_retries: int
    retry_base_delay_ms: int
    validation_max_retries: int


@dataclass(frozen=True)
class CacheConfig:
    """Analysis cache configuration."""

    ttl_ms: int
    max_size: int


@dataclass(frozen=True)
class ProgressConfig:
    """Progress reporting configuration."""

    min_emit_interval_ms: int


@dataclass(frozen=True)
class LLMConfig:
    """LLM client configuration."""

    max_tokens: int
    default_temperature: float
    json_temperature: float


_SECTION_TYPES = {
    "generation": GenerationConfig,
    "cache": CacheConfig,
    "progress": ProgressConfig,
    "llm": LLMConfig,
}


def _load_section(
    parser: ConfigParser, section: str, schema: dict[str, tuple[type, Any, Any, Any, str]]
) -> dict[str, Any]:
    """Load and validate a configuration section.

    Args:
        parser: ConfigParser instance with loaded config
        section: Section name to load
        schema: Schema definition for the section

    Returns:
        Dictionary of validated configuration values

    Raises:
        ConfigError: If validation fails
    """
    result = {}

    for key, (typ, default, min_val, max_val, _) in schema.items():
        if parser.has_option(section, key):
            raw_value = parser.get(section, key)
            value: bool | int | float | str
            try:
                if typ is bool:
                    value = raw_value.lower() in ("true", "1", "yes", "on")
                elif typ is int:
                    value = int(raw_value)
                elif typ is float:
                    value = float(raw_value)
                else:
                    value = raw_value
            except ValueError as e:
                raise ConfigError(
                    f"Invalid value for [{section}].{key}: {raw_value!r} (expected {typ.__name__})"
                ) from e
        else:
            value = default

        if typ in (int, float) and value is not None:
            if min_val is not None and value < min_val:
                raise ConfigError(
                    f"Value for [{section}].{key} is {value}, but minimum is {min_val}"
                )
            if max_val is not None and value > max_val:
                raise ConfigError(
                    f"Value for [{section}].{key} is {value}, but maximum is {max_val}"
                )

        result[key] = value

    return result


def _default_section(section: str) -> Any:
    """Build a section dataclass populated with schema defaults."""
    values = {key: default for key, (_, default, _, _, _) in CONFIG_SCHEMA[section].items()}
    return _SECTION_TYPES[section](**values)


def _load_config(config_path: Optional[Path] = None) -> "Config":
    """Load configuration from an INI file (internal use only).

    Args:
        config_path: Path to config file. If None, uses defaults from schema.

    Returns:
        Config object with all sections populated and default provider settings.

    Raises:
        ConfigError: If validation fails
    """
    parser = ConfigParser()

    if config_path and config_path.exists():
        parser.read(config_path)

    sections = {
        name: _SECTION_TYPES[name](**_load_section(parser, name, CONFIG_SCHEMA[name]))
        for name in CONFIG_SCHEMA
    }
    return Config(**sections)


@dataclass(frozen=True)
class Config:
    """Complete application configuration."""

    data_dir: Path = None  # type: ignore[assignment]  # Set in __post_init__ if None
    active_provider: str = "ollama"
    active_model: str = "llama3"
    openai_api_key: Optional[str] = None
    anthropic_api_key: Optional[str] = None
    google_api_key: Optional[str] = None
    groq_api_key: Optional[str] = None
    ollama_endpoint: str = "http://localhost:11434"

    generation: GenerationConfig = None  # type: ignore[assignment]
    cache: CacheConfig = None  # type: ignore[assignment]
    progress: ProgressConfig = None  # type: ignore[assignment]
    llm: LLMConfig = None  # type: ignore[assignment]

    def __post_init__(self):
        """Initialize section configs with defaults if not provided."""
        # Since frozen=True, we need to use object.__setattr__
        if self.data_dir is None:
            object.__setattr__(self, "data_dir", Path.home() / ".legacylens")
        for section in _SECTION_TYPES:
            if getattr(self, section) is None:
                object.__setattr__(self, section, _default_section(section))

    @property
    def llm_log_path(self) -> Path:
        """Path to LLM query log file."""
        return self.data_dir / "logs" / "llm-queries.jsonl"

    @property
    def llm_api_key(self) -> Optional[str]:
        """API key for the active LLM provider."""
        provider_keys = {
            "openai": self.openai_api_key,
            "anthropic": self.anthropic_api_key,
            "google": self.google_api_key,
            "groq": self.groq_api_key,
        }
        return provider_keys.get(self.active_provider)

    @property
    def llm_endpoint(self) -> Optional[str]:
        """Endpoint for LLM provider (mainly for Ollama)."""
        if self.active_provider == "ollama":
            return self.ollama_endpoint
        return None


PROVIDER_DEFAULT_MODELS = {
    "openai": "gpt-4o",
    "anthropic": "claude-3-5-sonnet-20241022",
    "google": "gemini-1.5-pro",
    "groq": "llama-3.3-70b-versatile",
    "ollama": "llama3",
}


def _detect_provider_from_keys() -> tuple[str, str]:
    """Auto-detect provider from available API keys.

    Returns:
        Tuple of (provider, model) based on available keys.
        Falls back to ollama if no keys are found.
    """
    for provider, env_var in (
        ("openai", "OPENAI_API_KEY"),
        ("anthropic", "ANTHROPIC_API_KEY"),
        ("google", "GOOGLE_API_KEY"),
        ("groq", "GROQ_API_KEY"),
    ):
        if os.getenv(env_var):
            return provider, PROVIDER_DEFAULT_MODELS[provider]
    return "ollama", PROVIDER_DEFAULT_MODELS["ollama"]


@lru_cache(maxsize=1)
def load_settings() -> Config:
    """Load settings from environment variables and config file.

    Settings are cached for the lifetime of the application.
    Use load_settings.cache_clear() to reload settings.

    Returns:
        Config object populated from environment variables and config file.

    Raises:
        ConfigError: If the config file contains invalid values.
    """
    config_path_str = os.getenv("LEGACYLENS_CONFIG")
    base_config = _load_config(Path(config_path_str) if config_path_str else None)

    active_provider = os.getenv("ACTIVE_PROVIDER")
    active_model = os.getenv("ACTIVE_MODEL")

    if not active_provider:
        active_provider, detected_model = _detect_provider_from_keys()
        if not active_model:
            active_model = detected_model
    elif not active_model:
        active_model = PROVIDER_DEFAULT_MODELS.get(active_provider, "llama3")

    data_dir_str = os.getenv("LEGACYLENS_DATA_DIR")
    data_dir = Path(data_dir_str) if data_dir_str else Path.home() / ".legacylens"

    return Config(
        data_dir=data_dir,
        active_provider=active_provider,
        active_model=active_model,
        openai_api_key=os.getenv("OPENAI_API_KEY"),
        anthropic_api_key=os.getenv("ANTHROPIC_API_KEY"),
        google_api_key=os.getenv("GOOGLE_API_KEY"),
        groq_api_key=os.getenv("GROQ_API_KEY"),
        ollama_endpoint=os.getenv("OLLAMA_ENDPOINT", "http://localhost:11434"),
        generation=base_config.generation,
        cache=base_config.cache,
        progress=base_config.progress,
        llm=base_config.llm,
    )
