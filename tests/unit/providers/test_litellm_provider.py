"""Tests for the LiteLLM-backed text + image provider."""

from __future__ import annotations

import base64
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from quire.errors import (
    ProviderError,
    ProviderNotConfiguredError,
    ProviderResponseError,
)
from quire.providers.base import RetryPolicy
from quire.providers.litellm_provider import LiteLLMProvider

IMAGE_MODEL = "gemini/imagen-4.0-generate-001"


@pytest.fixture(autouse=True)
def gemini_key(monkeypatch):
    monkeypatch.setenv("GEMINI_API_KEY", "test-key")


@pytest.fixture
def provider(tmp_path: Path):
    return LiteLLMProvider(
        text_model="gemini/gemini-2.5-flash",
        output_dir=tmp_path,
        policy=RetryPolicy(attempts=3, backoff_seconds=2.0, attempt_timeout=30.0),
        sleep=lambda _s: None,
    )


def _image_response(items):
    response = MagicMock()
    response.data = items
    return response


# ------------------------------------------------------------------
# Images
# ------------------------------------------------------------------


def test_generate_image_inline_payload(provider, tmp_path):
    payload = base64.b64encode(b"PNGDATA").decode()
    with patch(
        "quire.providers.litellm_provider.litellm.image_generation",
        return_value=_image_response([{"b64_json": payload}]),
    ) as gen:
        path = provider.generate_image(IMAGE_MODEL, "draw a chart", user_id="u1")

    assert Path(path).read_bytes() == b"PNGDATA"
    assert Path(path).parent == tmp_path / "u1"
    kwargs = gen.call_args.kwargs
    assert kwargs["model"] == IMAGE_MODEL
    assert kwargs["prompt"] == "draw a chart"
    assert kwargs["timeout"] == 30.0


def test_generate_image_url_payload_is_downloaded(provider):
    with patch(
        "quire.providers.litellm_provider.litellm.image_generation",
        return_value=_image_response([{"url": "https://cdn.example/img.png"}]),
    ), patch(
        "quire.providers.litellm_provider.download", return_value=b"IMG"
    ) as dl:
        path = provider.generate_image(IMAGE_MODEL, "p")

    dl.assert_called_once_with("https://cdn.example/img.png", 30.0)
    assert Path(path).read_bytes() == b"IMG"


def test_generate_image_accepts_attribute_objects(provider):
    item = MagicMock(b64_json=base64.b64encode(b"OBJ").decode())
    with patch(
        "quire.providers.litellm_provider.litellm.image_generation",
        return_value=_image_response([item]),
    ):
        assert Path(provider.generate_image(IMAGE_MODEL, "p")).read_bytes() == b"OBJ"


def test_empty_candidates_retried_then_fail(provider):
    with patch(
        "quire.providers.litellm_provider.litellm.image_generation",
        return_value=_image_response([]),
    ) as gen:
        with pytest.raises(ProviderError, match="after 3 attempts") as excinfo:
            provider.generate_image(IMAGE_MODEL, "p")

    assert gen.call_count == 3
    assert isinstance(excinfo.value.__cause__, ProviderResponseError)
    assert "no candidates" in str(excinfo.value.__cause__)


def test_missing_payload_then_success(provider):
    good = _image_response([{"b64_json": base64.b64encode(b"OK").decode()}])
    with patch(
        "quire.providers.litellm_provider.litellm.image_generation",
        side_effect=[_image_response([{}]), good],
    ) as gen:
        path = provider.generate_image(IMAGE_MODEL, "p")
    assert gen.call_count == 2
    assert Path(path).read_bytes() == b"OK"


def test_missing_key_fails_fast(provider, monkeypatch):
    monkeypatch.delenv("GEMINI_API_KEY")
    with patch("quire.providers.litellm_provider.litellm.image_generation") as gen:
        with pytest.raises(ProviderNotConfiguredError, match="GEMINI_API_KEY"):
            provider.generate_image(IMAGE_MODEL, "p")
    gen.assert_not_called()


# ------------------------------------------------------------------
# Text
# ------------------------------------------------------------------


def test_generate_from_single_prompt_uses_default_model(provider):
    with patch("quire.providers.litellm_provider.complete", return_value="answer") as c:
        assert provider.generate_from_single_prompt("q") == "answer"
    assert c.call_args.args == ("gemini/gemini-2.5-flash", "q")
    assert c.call_args.kwargs["timeout"] == 300.0


def test_generate_text_with_model(provider):
    with patch("quire.providers.litellm_provider.complete", return_value="deck") as c:
        assert provider.generate_text_with_model("p", "gemini/gemini-3-flash-preview") == "deck"
    assert c.call_args.args[0] == "gemini/gemini-3-flash-preview"


def test_empty_text_is_an_error(provider):
    with patch("quire.providers.litellm_provider.complete", return_value="   "):
        with pytest.raises(ProviderResponseError, match="empty response"):
            provider.generate_from_single_prompt("q")


def test_text_failure_not_retried(provider):
    with patch(
        "quire.providers.litellm_provider.complete", side_effect=TimeoutError("deadline")
    ) as c:
        with pytest.raises(ProviderError, match="deadline"):
            provider.generate_from_single_prompt("q")
    assert c.call_count == 1
