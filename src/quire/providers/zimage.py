"""Z-Image backend (Alibaba DashScope), image generation only.

Authentication is the raw API key as a bearer token.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

from quire.errors import ProviderNotConfiguredError, ProviderResponseError
from quire.log import get_logger
from quire.providers.base import ImageOnlyProvider, RetryPolicy, run_with_retries, save_image
from quire.providers.http import download, post_json

log = get_logger(__name__)

ZIMAGE_URL = "https://dashscope.aliyuncs.com/api/v1/services/aigc/image-generation/generation"
_IMAGE_SIZE = "1280*1280"


class ZImageProvider(ImageOnlyProvider):
    name = "Z-Image"

    def __init__(
        self,
        api_key: str,
        output_dir: str | Path = "data/uploads",
        policy: RetryPolicy | None = None,
        base_url: str = ZIMAGE_URL,
        sleep: Callable[[float], None] | None = None,
    ) -> None:
        self.api_key = api_key
        self.output_dir = output_dir
        self.policy = policy or RetryPolicy()
        self.base_url = base_url
        self._sleep = sleep

    def generate_image(self, model: str, prompt: str, user_id: str = "") -> str:
        if not self.api_key:
            raise ProviderNotConfiguredError("ZIMAGE_API_KEY is not set")

        kwargs = {"sleep": self._sleep} if self._sleep else {}
        data = run_with_retries(
            lambda timeout: self._fetch_image(model, prompt, timeout),
            self.policy,
            label=f"zimage:{model}",
            **kwargs,
        )
        return save_image(data, self.output_dir, user_id)

    def _fetch_image(self, model: str, prompt: str, timeout: float) -> bytes:
        body = post_json(
            self.base_url,
            {
                "model": model,
                "input": {"prompt": prompt},
                "parameters": {"size": _IMAGE_SIZE},
            },
            {"Authorization": f"Bearer {self.api_key}"},
            timeout,
        )

        code = str(body.get("code") or "")
        if code and code != "200":
            raise ProviderResponseError(f"Z-Image API error ({code}): {body.get('message', '')}")

        results = (body.get("output") or {}).get("results") or []
        url = results[0].get("url") if results else None
        if not url:
            raise ProviderResponseError("no image URL in response")

        log.info("Z-Image URL received, downloading")
        return download(url, timeout)
