"""Tests for provider selection from configuration."""

from __future__ import annotations

import pytest

from quire.config import ConfigError
from quire.providers import (
    GlmImageProvider,
    LiteLLMProvider,
    ZImageProvider,
    create_provider,
    create_text_provider,
    image_model_for,
)


@pytest.mark.parametrize(
    ("name", "cls"),
    [
        ("litellm", LiteLLMProvider),
        ("gemini", LiteLLMProvider),
        ("GLM", GlmImageProvider),
        ("zimage", ZImageProvider),
    ],
)
def test_create_provider(config, name, cls):
    assert isinstance(create_provider(name, config), cls)


def test_create_provider_unknown(config):
    with pytest.raises(ConfigError, match="unknown provider"):
        create_provider("dalle", config)


def test_create_provider_reads_keys_from_env(config, monkeypatch):
    monkeypatch.setenv("GLM_API_KEY", "id.secret")
    monkeypatch.setenv("ZIMAGE_API_KEY", "zk")
    assert create_provider("glm", config).api_key == "id.secret"
    assert create_provider("zimage", config).api_key == "zk"


def test_retry_policy_from_config(config):
    config.images.attempts = 5
    config.images.attempt_timeout = 10.0
    provider = create_provider("zimage", config)
    assert provider.policy.attempts == 5
    assert provider.policy.attempt_timeout == 10.0


def test_text_provider_uses_generation_settings(config):
    config.generation.model = "gemini/gemini-2.5-pro"
    config.generation.timeout_seconds = 42.0
    provider = create_text_provider(config)
    assert provider.text_model == "gemini/gemini-2.5-pro"
    assert provider.text_timeout == 42.0


@pytest.mark.parametrize(
    ("provider", "expected"),
    [
        ("litellm", "gemini/imagen-4.0-generate-001"),
        ("gemini", "gemini/imagen-4.0-generate-001"),
        ("glm", "glm-image"),
        ("zimage", "z-image-turbo"),
    ],
)
def test_image_model_for(config, provider, expected):
    config.images.provider = provider
    assert image_model_for(config) == expected
