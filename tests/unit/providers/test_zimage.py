"""Tests for the Z-Image backend."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest

from quire.errors import (
    ProviderError,
    ProviderNotConfiguredError,
    ProviderResponseError,
    UnsupportedOperationError,
)
from quire.providers.base import RetryPolicy
from quire.providers.zimage import ZIMAGE_URL, ZImageProvider


@pytest.fixture
def provider(tmp_path: Path):
    return ZImageProvider(
        "zk-123", output_dir=tmp_path, policy=RetryPolicy(), sleep=lambda _s: None
    )


def _ok(url: str = "https://oss.example/z.png") -> dict:
    return {"output": {"results": [{"url": url}]}}


def test_generate_image_success(provider):
    with patch("quire.providers.zimage.post_json", return_value=_ok()) as post, patch(
        "quire.providers.zimage.download", return_value=b"Z"
    ):
        path = provider.generate_image("z-image-turbo", "a cat")

    url, payload, headers, _timeout = post.call_args.args
    assert url == ZIMAGE_URL
    assert payload == {
        "model": "z-image-turbo",
        "input": {"prompt": "a cat"},
        "parameters": {"size": "1280*1280"},
    }
    assert headers == {"Authorization": "Bearer zk-123"}
    assert Path(path).read_bytes() == b"Z"


def test_code_200_is_success(provider):
    body = {"code": "200", **_ok()}
    with patch("quire.providers.zimage.post_json", return_value=body), patch(
        "quire.providers.zimage.download", return_value=b"Z"
    ):
        provider.generate_image("z-image-turbo", "p")


def test_api_error_code_retried(provider):
    body = {"code": "InvalidParameter", "message": "bad size"}
    with patch("quire.providers.zimage.post_json", return_value=body) as post:
        with pytest.raises(ProviderError) as excinfo:
            provider.generate_image("z-image-turbo", "p")
    assert post.call_count == 3
    assert isinstance(excinfo.value.__cause__, ProviderResponseError)
    assert "InvalidParameter" in str(excinfo.value.__cause__)


def test_transport_failure_then_success(provider):
    with patch(
        "quire.providers.zimage.post_json", side_effect=[OSError("reset"), _ok()]
    ) as post, patch("quire.providers.zimage.download", return_value=b"Z"):
        provider.generate_image("z-image-turbo", "p")
    assert post.call_count == 2


def test_missing_key_fails_fast(tmp_path):
    with pytest.raises(ProviderNotConfiguredError, match="ZIMAGE_API_KEY"):
        ZImageProvider("", output_dir=tmp_path).generate_image("z-image-turbo", "p")


def test_text_generation_unsupported(provider):
    with pytest.raises(UnsupportedOperationError, match="Z-Image client"):
        provider.generate_from_single_prompt("hi")
