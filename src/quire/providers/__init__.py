"""Generation backends behind a single capability surface.

``create_provider`` picks the backend named in configuration; credentials are
read from the environment only.
"""

from __future__ import annotations

import os

from quire.config import IMAGE_PROVIDERS, ConfigError, QuireConfig
from quire.providers.base import ImageOnlyProvider, Provider, RetryPolicy, save_image
from quire.providers.glm import GlmImageProvider
from quire.providers.litellm_provider import LiteLLMProvider
from quire.providers.zimage import ZImageProvider

__all__ = [
    "GlmImageProvider",
    "ImageOnlyProvider",
    "LiteLLMProvider",
    "Provider",
    "RetryPolicy",
    "ZImageProvider",
    "create_provider",
    "create_text_provider",
    "image_model_for",
    "retry_policy_for",
    "save_image",
]


def retry_policy_for(config: QuireConfig) -> RetryPolicy:
    return RetryPolicy(
        attempts=config.images.attempts,
        backoff_seconds=config.images.backoff_seconds,
        attempt_timeout=config.images.attempt_timeout,
    )


def create_text_provider(config: QuireConfig) -> LiteLLMProvider:
    """Return the hosted provider used for all text generation."""
    return LiteLLMProvider(
        text_model=config.generation.model,
        output_dir=config.images.output_dir,
        policy=retry_policy_for(config),
        text_timeout=config.generation.timeout_seconds,
    )


def create_provider(name: str, config: QuireConfig) -> Provider:
    """Build the provider called *name* (``litellm``/``gemini``, ``glm``, ``zimage``).

    A missing GLM/Z-Image key does not fail here; the provider raises
    ``ProviderNotConfiguredError`` on first use, matching how a missing
    LiteLLM key surfaces.

    Raises:
        ConfigError: Unknown provider name.
    """
    name = name.lower()
    if name not in IMAGE_PROVIDERS:
        raise ConfigError(
            f"unknown provider '{name}', expected one of {sorted(IMAGE_PROVIDERS)}"
        )

    policy = retry_policy_for(config)
    output_dir = config.images.output_dir
    if name == "glm":
        return GlmImageProvider(os.getenv("GLM_API_KEY", ""), output_dir, policy)
    if name == "zimage":
        return ZImageProvider(os.getenv("ZIMAGE_API_KEY", ""), output_dir, policy)
    return create_text_provider(config)


def image_model_for(config: QuireConfig) -> str:
    """Return the image model identifier for the configured image provider."""
    provider = config.images.provider.lower()
    if provider == "glm":
        return config.images.glm_model
    if provider == "zimage":
        return config.images.zimage_model
    return config.images.litellm_model
