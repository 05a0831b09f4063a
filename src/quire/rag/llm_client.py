"""LiteLLM client wrapper: the single route to hosted text and embedding models.

Text generation is single-shot: bounded by one timeout, no retries (the
caller decides what a failure means). Embedding calls keep LiteLLM's built-in
retry because a failed embed only degrades indexing of one source.
"""

from __future__ import annotations

import os

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
    "google": "GOOGLE_API_KEY",
    "mistral": "MISTRAL_API_KEY",
    "groq": "GROQ_API_KEY",
    "together_ai": "TOGETHERAI_API_KEY",
    "ollama": None,  # Local, no key required
    "ollama_chat": None,
}


def provider_of(model: str) -> str:
    """Return the provider prefix of a LiteLLM model string (default ``openai``)."""
    return model.split("/")[0].lower() if "/" in model else "openai"


def api_key_env(model: str) -> str | None:
    """Return the env var holding the key for *model*'s provider, if one is needed."""
    return _PROVIDER_ENV.get(provider_of(model))


def validate_api_key(model: str) -> None:
    """Check that the required API key env var is set for *model*.

    Raises:
        EnvironmentError: If the required key is missing from environment.
    """
    env_var = api_key_env(model)
    if env_var is None:
        return

    if not os.getenv(env_var):
        raise EnvironmentError(
            f"API key not found for provider '{provider_of(model)}'. "
            f"Set the {env_var} environment variable."
        )


def complete(
    model: str,
    prompt: str,
    timeout: float = 300.0,
) -> str:
    """Single-prompt completion. Returns the content string ("" when absent).

    Raises:
        litellm.exceptions.APIError (and subclasses): On API failure or timeout.
    """
    response = litellm.completion(
        model=model,
        messages=[{"role": "user", "content": prompt}],
        timeout=timeout,
        num_retries=0,
    )
    return response.choices[0].message.content or ""


def embed(model: str, text: str, num_retries: int = 3) -> list[float]:
    """Call litellm.embedding() with retry/backoff. Returns embedding vector."""
    response = litellm.embedding(
        model=model,
        input=[text],
        num_retries=num_retries,
    )
    return response.data[0]["embedding"]
