"""LiteLLM-based LLM client.

The client is the usual source of "primary" operations handed to the
generation pipeline. Provider exceptions are translated into LLMError
subclasses whose messages the pipeline's recoverability classifier
understands: rate limits, timeouts and connection failures are transient,
everything else is not.
"""

import json
import logging
import time
from datetime import datetime, timezone
from pathlib import Path

from litellm import acompletion
from litellm.exceptions import (
    APIConnectionError,
    APIError,
    AuthenticationError,
    RateLimitError,
    Timeout,
)

from legacylens.constants import DEFAULT_TEMPERATURE, JSON_TEMPERATURE, MAX_TOKENS

logger = logging.getLogger(__name__)


class LLMError(Exception):
    """Base exception for LLM client errors."""

    pass


class LLMConnectionError(LLMError):
    """Raised when unable to connect to the LLM provider."""

    pass


class LLMTimeoutError(LLMError):
    """Raised when the LLM provider does not answer in time."""

    pass


class LLMAuthenticationError(LLMError):
    """Raised when authentication with the LLM provider fails."""

    pass


class LLMRateLimitError(LLMError):
    """Raised when rate limited by the LLM provider."""

    pass


class LLMClient:
    """Unified LLM client supporting multiple providers via LiteLLM."""

    def __init__(
        self,
        provider: str,
        model: str,
        api_key: str | None = None,
        endpoint: str | None = None,
        log_path: Path | None = None,
        max_tokens: int = MAX_TOKENS,
        temperature: float = DEFAULT_TEMPERATURE,
        json_temperature: float = JSON_TEMPERATURE,
        timeout: float | None = None,
    ):
        """Initialize LLM client.

        Args:
            provider: LLM provider (openai, anthropic, google, groq, ollama).
            model: Model name.
            api_key: Optional API key (uses env var if not provided).
            endpoint: Optional custom endpoint (for Ollama).
            log_path: Optional path to JSONL log file for query logging.
            max_tokens: Default maximum response tokens.
            temperature: Default sampling temperature.
            json_temperature: Temperature used by generate_with_json.
            timeout: Optional per-request timeout in seconds.
        """
        self.provider = provider
        self.model = model
        self.api_key = api_key
        self.endpoint = endpoint
        self.log_path = log_path
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.json_temperature = json_temperature
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings) -> "LLMClient":
        """Build a client for the provider configured in settings."""
        return cls(
            provider=settings.active_provider,
            model=settings.active_model,
            api_key=settings.llm_api_key,
            endpoint=settings.llm_endpoint,
            log_path=settings.llm_log_path,
            max_tokens=settings.llm.max_tokens,
            temperature=settings.llm.default_temperature,
            json_temperature=settings.llm.json_temperature,
        )

    def _get_model_string(self) -> str:
        """Get LiteLLM model string.

        Returns:
            Model string in provider/model format.
        """
        if self.provider == "openai":
            return self.model  # OpenAI is default
        return f"{self.provider}/{self.model}"

    def _log_query(self, request: dict, response: str | None, duration_ms: int, error: str | None):
        """Append one query to the JSONL log file, if configured."""
        if not self.log_path:
            return

        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "provider": self.provider,
            "model": self.model,
            "request": request,
            "response": response,
            "duration_ms": duration_ms,
            "error": error,
        }

        try:
            self.log_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.log_path, "a", encoding="utf-8") as f:
                f.write(json.dumps(entry) + "\n")
        except OSError as e:
            # Don't let logging failures break generation
            logger.warning(f"Could not write LLM query log {self.log_path}: {e}")

    async def generate(
        self,
        prompt: str,
        system_prompt: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> str:
        """Generate completion from prompt.

        Args:
            prompt: User prompt.
            system_prompt: Optional system prompt.
            temperature: Sampling temperature (client default if None).
            max_tokens: Maximum response tokens (client default if None).

        Returns:
            Generated text response.

        Raises:
            LLMError: Or a subclass describing the failure.
        """
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        kwargs = {
            "model": self._get_model_string(),
            "messages": messages,
            "temperature": self.temperature if temperature is None else temperature,
            "max_tokens": self.max_tokens if max_tokens is None else max_tokens,
        }
        if self.api_key:
            kwargs["api_key"] = self.api_key
        if self.endpoint and self.provider == "ollama":
            kwargs["api_base"] = self.endpoint
        if self.timeout is not None:
            kwargs["timeout"] = self.timeout

        log_request = {
            "system_prompt": system_prompt,
            "prompt": prompt,
            "temperature": kwargs["temperature"],
            "max_tokens": kwargs["max_tokens"],
        }
        start_time = time.perf_counter()
        try:
            response = await acompletion(**kwargs)
        except AuthenticationError as e:
            self._log_failure(log_request, start_time, e)
            raise LLMAuthenticationError(f"Authentication failed: {e}") from e
        except RateLimitError as e:
            self._log_failure(log_request, start_time, e)
            raise LLMRateLimitError(f"Rate limit exceeded: {e}") from e
        except Timeout as e:
            self._log_failure(log_request, start_time, e)
            raise LLMTimeoutError(f"Request timeout: {e}") from e
        except APIConnectionError as e:
            self._log_failure(log_request, start_time, e)
            raise LLMConnectionError(f"Network connection failed: {e}") from e
        except APIError as e:
            self._log_failure(log_request, start_time, e)
            raise LLMError(f"LLM API error: {e}") from e

        result = str(response.choices[0].message.content or "")
        self._log_query(
            log_request,
            response=result,
            duration_ms=int((time.perf_counter() - start_time) * 1000),
            error=None,
        )
        return result

    def _log_failure(self, request: dict, start_time: float, error: Exception) -> None:
        self._log_query(
            request,
            response=None,
            duration_ms=int((time.perf_counter() - start_time) * 1000),
            error=str(error),
        )

    async def generate_with_json(
        self,
        prompt: str,
        system_prompt: str | None = None,
    ) -> str:
        """Generate completion expecting JSON response.

        Args:
            prompt: User prompt.
            system_prompt: Optional system prompt.

        Returns:
            Generated JSON string.
        """
        full_system = (system_prompt or "") + "\n\nRespond with valid JSON only."
        return await self.generate(
            prompt,
            system_prompt=full_system.strip(),
            temperature=self.json_temperature,
        )
