"""
LLM client adapters.

Provides a unified interface for LLM providers (Anthropic Claude, OpenAI GPT).

Every call is a single best-effort request: SDK retries are disabled and
nothing here retries. Provider errors are translated to built-in exceptions
so the pipeline stages can apply their own fallbacks:

- TimeoutError: the request timed out
- ConnectionError: the provider could not be reached
- RuntimeError: rate limiting or any other API error
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, NoReturn, Protocol

from scout.config import (
    ANTHROPIC_API_KEY,
    ANTHROPIC_MODEL,
    LLM_MAX_RETRIES,
    LLM_PROVIDER,
    LLM_TEMPERATURE,
    LLM_TIMEOUT,
    OPENAI_API_KEY,
    OPENAI_MODEL,
    PROVIDER_ANTHROPIC,
    PROVIDER_OPENAI,
    get_logger,
)
from scout.utils import require_import

logger = get_logger(__name__)

DEFAULT_MAX_TOKENS = 500

# Errors a pipeline stage treats as "the generative call failed"
LLM_CALL_ERRORS = (TimeoutError, ConnectionError, RuntimeError)


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------


class LLMClient(Protocol):
    """
    Protocol for LLM clients (Anthropic or OpenAI).

    One client is built at process start and handed to every stage.
    """

    model: str

    def generate(
        self,
        system: str,
        user: str,
        *,
        max_tokens: int | None = None,
        json_mode: bool = False,
    ) -> tuple[str, int]:
        """
        Generate a response from the LLM.

        Args:
            system: System prompt setting context and instructions.
            user: User prompt with the actual request.
            max_tokens: Output budget for this call.
            json_mode: Ask the provider for a JSON object where supported.

        Returns:
            Tuple of (generated_text, tokens_used).
        """
        ...


# ---------------------------------------------------------------------------
# Base class with shared logic
# ---------------------------------------------------------------------------


class LLMClientBase(ABC):
    """Base class with shared initialization and error handling."""

    client: Any
    model: str
    temperature: float
    max_tokens: int
    _sdk: Any
    _name: str

    def _init_common(
        self,
        model: str,
        temperature: float,
        max_tokens: int,
        sdk: Any,
        name: str,
    ) -> None:
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._sdk = sdk
        self._name = name

    def _translate_error(self, exc: Exception) -> NoReturn:
        """Translate SDK-specific API errors to built-in exceptions."""
        if isinstance(exc, self._sdk.APITimeoutError):
            raise TimeoutError(f"{self._name} API request timed out: {exc}") from exc
        if isinstance(exc, self._sdk.RateLimitError):
            raise RuntimeError(f"{self._name} API rate limited: {exc}") from exc
        if isinstance(exc, self._sdk.APIConnectionError):
            raise ConnectionError(
                f"Failed to connect to {self._name} API: {exc}"
            ) from exc
        raise RuntimeError(f"{self._name} API error: {exc}") from exc

    @abstractmethod
    def generate(
        self,
        system: str,
        user: str,
        *,
        max_tokens: int | None = None,
        json_mode: bool = False,
    ) -> tuple[str, int]:
        """Generate a response from the LLM."""
        ...


# ---------------------------------------------------------------------------
# Anthropic Client
# ---------------------------------------------------------------------------


class AnthropicClient(LLMClientBase):
    """
    Anthropic Claude client.

    Claude has no JSON response mode; ``json_mode`` appends an instruction
    to the system prompt instead and parsing tolerates surrounding text.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str = ANTHROPIC_MODEL,
        temperature: float = LLM_TEMPERATURE,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        timeout: float = LLM_TIMEOUT,
    ):
        """
        Initialize Anthropic client.

        Args:
            api_key: Anthropic API key. Defaults to ANTHROPIC_API_KEY from config.
            model: Model ID to use. Defaults to ANTHROPIC_MODEL from config.
            temperature: Sampling temperature. Defaults to LLM_TEMPERATURE.
            max_tokens: Default output budget when a call does not set one.
            timeout: Request timeout in seconds. Defaults to LLM_TIMEOUT.

        Raises:
            ImportError: If anthropic package is not installed.
        """
        anthropic = require_import("anthropic")

        self.client = anthropic.Anthropic(
            api_key=api_key or ANTHROPIC_API_KEY,
            timeout=timeout,
            max_retries=LLM_MAX_RETRIES,
        )
        self._init_common(
            model=model,
            temperature=temperature,
            max_tokens=max_tokens,
            sdk=anthropic,
            name="Anthropic",
        )

    def generate(
        self,
        system: str,
        user: str,
        *,
        max_tokens: int | None = None,
        json_mode: bool = False,
    ) -> tuple[str, int]:
        """
        Generate a response using Claude.

        Raises:
            TimeoutError: If API request times out.
            RuntimeError: If rate limited or the API returns an error.
            ConnectionError: If connection fails.
        """
        if json_mode:
            system = f"{system}\n\nRespond with a single JSON value and no other text."
        try:
            response = self.client.messages.create(
                model=self.model,
                max_tokens=max_tokens or self.max_tokens,
                temperature=self.temperature,
                system=system,
                messages=[{"role": "user", "content": user}],
            )
        except self._sdk.APIError as exc:
            self._translate_error(exc)

        text = ""
        for block in response.content:
            if hasattr(block, "text"):
                text = block.text
                break
        tokens = response.usage.input_tokens + response.usage.output_tokens
        return text, tokens


# ---------------------------------------------------------------------------
# OpenAI Client
# ---------------------------------------------------------------------------


class OpenAIClient(LLMClientBase):
    """OpenAI client. ``json_mode`` maps to ``response_format=json_object``."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str = OPENAI_MODEL,
        temperature: float = LLM_TEMPERATURE,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        timeout: float = LLM_TIMEOUT,
    ):
        """
        Initialize OpenAI client.

        Args:
            api_key: OpenAI API key. Defaults to OPENAI_API_KEY from config.
            model: Model ID to use. Defaults to OPENAI_MODEL from config.
            temperature: Sampling temperature. Defaults to LLM_TEMPERATURE.
            max_tokens: Default output budget when a call does not set one.
            timeout: Request timeout in seconds. Defaults to LLM_TIMEOUT.

        Raises:
            ImportError: If openai package is not installed.
        """
        openai = require_import("openai")

        self.client = openai.OpenAI(
            api_key=api_key or OPENAI_API_KEY,
            timeout=timeout,
            max_retries=LLM_MAX_RETRIES,
        )
        self._init_common(
            model=model,
            temperature=temperature,
            max_tokens=max_tokens,
            sdk=openai,
            name="OpenAI",
        )

    def generate(
        self,
        system: str,
        user: str,
        *,
        max_tokens: int | None = None,
        json_mode: bool = False,
    ) -> tuple[str, int]:
        """
        Generate a response using GPT.

        Raises:
            TimeoutError: If API request times out.
            RuntimeError: If rate limited or the API returns an error.
            ConnectionError: If connection fails.
        """
        kwargs: dict[str, Any] = {}
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                max_tokens=max_tokens or self.max_tokens,
                temperature=self.temperature,
                messages=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": user},
                ],
                **kwargs,
            )
        except self._sdk.APIError as exc:
            self._translate_error(exc)

        text = response.choices[0].message.content or ""
        tokens = response.usage.total_tokens if response.usage else 0
        return text, tokens


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------


def get_llm_client(provider: str | None = None) -> LLMClient:
    """
    Build the configured LLM client.

    Args:
        provider: PROVIDER_ANTHROPIC or PROVIDER_OPENAI.
            Defaults to LLM_PROVIDER from config.

    Raises:
        ValueError: If provider is not recognized.
    """
    provider = provider.lower().strip() if provider else LLM_PROVIDER

    if provider == PROVIDER_ANTHROPIC:
        return AnthropicClient()
    if provider == PROVIDER_OPENAI:
        return OpenAIClient()
    raise ValueError(
        f"Unknown LLM provider: {provider}. "
        f"Use '{PROVIDER_ANTHROPIC}' or '{PROVIDER_OPENAI}'."
    )


__all__ = [
    "LLMClient",
    "LLMClientBase",
    "AnthropicClient",
    "OpenAIClient",
    "LLM_CALL_ERRORS",
    "get_llm_client",
]
