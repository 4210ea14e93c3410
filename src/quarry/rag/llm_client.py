"""LiteLLM provider clients for embeddings and completions.

All embedding and completion calls route through this module. Retries are
off by default (``num_retries=0``); a failing provider surfaces as an
exception for the caller's error boundary.
"""

from __future__ import annotations

import os
from typing import Protocol

import litellm

# Disable LiteLLM verbose logging unless explicitly enabled
litellm.suppress_debug_info = True
litellm.set_verbose = False  # type: ignore[assignment]


# ------------------------------------------------------------------
# Provider → env var mapping for API key validation
# ------------------------------------------------------------------

_PROVIDER_ENV: dict[str, str | None] = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "azure": "AZURE_API_KEY",
    "cohere": "COHERE_API_KEY",
    "gemini": "GEMINI_API_KEY",
    "mistral": "MISTRAL_API_KEY",
    "groq": "GROQ_API_KEY",
    "ollama": None,  # Local, no key required
    "ollama_chat": None,
}


def validate_api_key(model: str) -> None:
    """Check that the required API key env var is set for *model*.

    Args:
        model: LiteLLM model string in 'provider/model' format.

    Raises:
        EnvironmentError: If the required key is missing from environment.
    """
    provider = model.split("/")[0].lower() if "/" in model else "openai"
    env_var = _PROVIDER_ENV.get(provider)

    if env_var is None:
        return  # Local or unknown provider

    if not os.getenv(env_var):
        raise EnvironmentError(
            f"API key not found for provider '{provider}'. "
            f"Set the {env_var} environment variable."
        )


# ------------------------------------------------------------------
# Interfaces
# ------------------------------------------------------------------


class Embedder(Protocol):
    async def embed(self, text: str) -> list[float]: ...


class Completer(Protocol):
    async def complete(self, system_prompt: str, user_prompt: str) -> str | None: ...


# ------------------------------------------------------------------
# LiteLLM implementations
# ------------------------------------------------------------------


class LiteLLMEmbedder:
    """Embedder calling ``litellm.aembedding()``.

    Args:
        model: LiteLLM embedding model string (provider/model format).
        num_retries: Retries on transient errors.
    """

    def __init__(self, model: str, num_retries: int = 0) -> None:
        self.model = model
        self.num_retries = num_retries

    async def embed(self, text: str) -> list[float]:
        response = await litellm.aembedding(
            model=self.model,
            input=[text],
            num_retries=self.num_retries,
        )
        return list(response.data[0]["embedding"])


class LiteLLMCompleter:
    """Completer calling ``litellm.acompletion()`` with a system + user message.

    Returns the first choice's text, or None when the provider sent none.
    """

    def __init__(
        self,
        model: str,
        max_tokens: int = 1024,
        temperature: float = 0.0,
        num_retries: int = 0,
    ) -> None:
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.num_retries = num_retries

    async def complete(self, system_prompt: str, user_prompt: str) -> str | None:
        response = await litellm.acompletion(
            model=self.model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            max_tokens=self.max_tokens,
            temperature=self.temperature,
            num_retries=self.num_retries,
        )
        if not response.choices:
            return None
        return response.choices[0].message.content
