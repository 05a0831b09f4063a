"""Tests for the GLM-Image backend."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import jwt
import pytest

from quire.errors import (
    ProviderError,
    ProviderNotConfiguredError,
    ProviderResponseError,
    UnsupportedOperationError,
)
from quire.providers.base import RetryPolicy
from quire.providers.glm import GLM_IMAGE_URL, GlmImageProvider, generate_token


@pytest.fixture
def provider(tmp_path: Path):
    return GlmImageProvider(
        "key-id.key-secret",
        output_dir=tmp_path,
        policy=RetryPolicy(attempt_timeout=60.0),
        sleep=lambda _s: None,
    )


def test_generate_token_claims():
    token = generate_token("key-id.key-secret", now=1_700_000_000)
    claims = jwt.decode(
        token, "key-secret", algorithms=["HS256"], options={"verify_exp": False}
    )
    assert claims == {
        "api_key": "key-id",
        "exp": 1_700_003_600,
        "timestamp": 1_700_000_000,
    }


@pytest.mark.parametrize("key", ["no-dot", "a.b.c", ".secret", "id."])
def test_generate_token_rejects_bad_key(key):
    with pytest.raises(ProviderNotConfiguredError, match="id.secret"):
        generate_token(key)


def test_generate_image_success(provider, tmp_path):
    body = {"data": [{"url": "https://cdn.example/glm.png"}]}
    with patch("quire.providers.glm.post_json", return_value=body) as post, patch(
        "quire.providers.glm.download", return_value=b"GLM"
    ) as dl:
        path = provider.generate_image("glm-image", "poster", user_id="u2")

    url, payload, headers, timeout = post.call_args.args
    assert url == GLM_IMAGE_URL
    assert payload == {"model": "glm-image", "prompt": "poster", "size": "1280x1280"}
    assert headers["Authorization"].startswith("Bearer ")
    assert timeout == 60.0
    dl.assert_called_once_with("https://cdn.example/glm.png", 60.0)
    assert Path(path).read_bytes() == b"GLM"
    assert Path(path).parent == tmp_path / "u2"


def test_api_error_code_retried(provider):
    body = {"error": {"code": "1301", "message": "content filtered"}}
    with patch("quire.providers.glm.post_json", return_value=body) as post:
        with pytest.raises(ProviderError) as excinfo:
            provider.generate_image("glm-image", "p")
    assert post.call_count == 3
    assert isinstance(excinfo.value.__cause__, ProviderResponseError)
    assert "1301" in str(excinfo.value.__cause__)


def test_missing_url_retried_then_success(provider):
    bodies = [{"data": []}, {"data": [{"url": "https://cdn.example/x.png"}]}]
    with patch("quire.providers.glm.post_json", side_effect=bodies) as post, patch(
        "quire.providers.glm.download", return_value=b"X"
    ):
        provider.generate_image("glm-image", "p")
    assert post.call_count == 2


def test_missing_key_fails_fast(tmp_path):
    provider = GlmImageProvider("", output_dir=tmp_path)
    with patch("quire.providers.glm.post_json") as post:
        with pytest.raises(ProviderNotConfiguredError, match="GLM_API_KEY"):
            provider.generate_image("glm-image", "p")
    post.assert_not_called()


def test_text_generation_unsupported(provider):
    with pytest.raises(UnsupportedOperationError, match="does not support text generation"):
        provider.generate_from_single_prompt("hi")
    with pytest.raises(UnsupportedOperationError):
        provider.generate_text_with_model("hi", "glm-4")
