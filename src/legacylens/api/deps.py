"""FastAPI dependency injection functions."""

from functools import lru_cache

from legacylens.api.registry import JobRegistry
from legacylens.config import Config, load_settings
from legacylens.llm import LLMClient


@lru_cache
def get_settings() -> Config:
    """Get cached application settings."""
    return load_settings()


_llm_instance: LLMClient | None = None
_registry_instance: JobRegistry | None = None


def get_llm() -> LLMClient:
    """Get LLM client instance."""
    global _llm_instance
    if _llm_instance is None:
        _llm_instance = LLMClient.from_settings(get_settings())
    return _llm_instance


def get_job_registry() -> JobRegistry:
    """Get the process-wide job registry."""
    global _registry_instance
    if _registry_instance is None:
        _registry_instance = JobRegistry()
    return _registry_instance


def _reset_instances() -> None:
    """Drop cached singletons (for testing)."""
    global _llm_instance, _registry_instance
    _llm_instance = None
    _registry_instance = None
    get_settings.cache_clear()
