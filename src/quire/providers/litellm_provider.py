"""Default hosted backend: text and image generation through LiteLLM.

Text goes through ``litellm.completion``; images through
``litellm.image_generation``, accepting either an inline base64 payload or a
URL that is downloaded. Credentials are whatever LiteLLM reads for the
model's provider (GEMINI_API_KEY for ``gemini/...`` models).
"""

from __future__ import annotations

import base64
from collections.abc import Callable
from pathlib import Path
from typing import Any

import litellm

from quire.errors import ProviderError, ProviderNotConfiguredError, ProviderResponseError
from quire.log import get_logger
from quire.providers.base import Provider, RetryPolicy, run_with_retries, save_image
from quire.providers.http import download
from quire.rag.llm_client import complete, validate_api_key

log = get_logger(__name__)


class LiteLLMProvider(Provider):
    """Hosted text + image provider.

    Args:
        text_model: Default model for ``generate_from_single_prompt``.
        output_dir: Root directory for generated images.
        policy: Image retry policy.
        text_timeout: Timeout for one text generation call.
        sleep: Backoff sleep function (injectable for tests).
    """

    name = "litellm"

    def __init__(
        self,
        text_model: str,
        output_dir: str | Path = "data/uploads",
        policy: RetryPolicy | None = None,
        text_timeout: float = 300.0,
        sleep: Callable[[float], None] | None = None,
    ) -> None:
        self.text_model = text_model
        self.output_dir = output_dir
        self.policy = policy or RetryPolicy()
        self.text_timeout = text_timeout
        self._sleep = sleep

    # ------------------------------------------------------------------
    # Images
    # ------------------------------------------------------------------

    def generate_image(self, model: str, prompt: str, user_id: str = "") -> str:
        self._check_credentials(model)
        kwargs = {"sleep": self._sleep} if self._sleep else {}
        data = run_with_retries(
            lambda timeout: self._fetch_image(model, prompt, timeout),
            self.policy,
            label=f"{self.name}:{model}",
            **kwargs,
        )
        return save_image(data, self.output_dir, user_id)

    def _fetch_image(self, model: str, prompt: str, timeout: float) -> bytes:
        response = litellm.image_generation(model=model, prompt=prompt, timeout=timeout)
        items = list(getattr(response, "data", None) or [])
        if not items:
            raise ProviderResponseError("no candidates generated")

        b64 = _field(items[0], "b64_json")
        if b64:
            return base64.b64decode(b64)
        url = _field(items[0], "url")
        if url:
            return download(url, timeout)
        raise ProviderResponseError("no image data in response")

    # ------------------------------------------------------------------
    # Text
    # ------------------------------------------------------------------

    def generate_text_with_model(self, prompt: str, model: str) -> str:
        self._check_credentials(model)
        log.info("generating text with model %s", model)
        try:
            text = complete(model, prompt, timeout=self.text_timeout)
        except Exception as exc:
            raise ProviderError(f"failed to generate text with {model}: {exc}") from exc
        if not text.strip():
            raise ProviderResponseError(f"empty response from model {model}")
        return text

    def generate_from_single_prompt(self, prompt: str) -> str:
        return self.generate_text_with_model(prompt, self.text_model)

    @staticmethod
    def _check_credentials(model: str) -> None:
        try:
            validate_api_key(model)
        except EnvironmentError as exc:
            raise ProviderNotConfiguredError(str(exc)) from exc


def _field(item: Any, name: str) -> Any:
    """Read *name* from a LiteLLM ImageObject or a plain dict."""
    if isinstance(item, dict):
        return item.get(name)
    return getattr(item, name, None)
