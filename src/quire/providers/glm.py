"""GLM-Image backend (Zhipu open platform), image generation only.

Authentication: the API key has the form ``<id>.<secret>``. Each call signs a
short-lived HS256 JWT with the secret (claims ``api_key``, ``exp``,
``timestamp``) and sends it as a bearer token.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from pathlib import Path

import jwt

from quire.errors import ProviderNotConfiguredError, ProviderResponseError
from quire.log import get_logger
from quire.providers.base import ImageOnlyProvider, RetryPolicy, run_with_retries, save_image
from quire.providers.http import download, post_json

log = get_logger(__name__)

GLM_IMAGE_URL = "https://open.bigmodel.cn/api/paas/v4/images/generations"
_TOKEN_TTL_SECONDS = 3600
_IMAGE_SIZE = "1280x1280"


def generate_token(api_key: str, now: float | None = None) -> str:
    """Return a signed bearer token for a ``id.secret`` GLM API key.

    Raises:
        ProviderNotConfiguredError: The key is not in ``id.secret`` form.
    """
    parts = api_key.split(".")
    if len(parts) != 2 or not all(parts):
        raise ProviderNotConfiguredError("invalid GLM API key format, expected id.secret")
    api_id, secret = parts
    issued = int(now if now is not None else time.time())
    claims = {
        "api_key": api_id,
        "exp": issued + _TOKEN_TTL_SECONDS,
        "timestamp": issued,
    }
    return jwt.encode(claims, secret, algorithm="HS256")


class GlmImageProvider(ImageOnlyProvider):
    name = "GLM-Image"

    def __init__(
        self,
        api_key: str,
        output_dir: str | Path = "data/uploads",
        policy: RetryPolicy | None = None,
        base_url: str = GLM_IMAGE_URL,
        sleep: Callable[[float], None] | None = None,
    ) -> None:
        self.api_key = api_key
        self.output_dir = output_dir
        self.policy = policy or RetryPolicy()
        self.base_url = base_url
        self._sleep = sleep

    def generate_image(self, model: str, prompt: str, user_id: str = "") -> str:
        if not self.api_key:
            raise ProviderNotConfiguredError("GLM_API_KEY is not set")
        token = generate_token(self.api_key)

        kwargs = {"sleep": self._sleep} if self._sleep else {}
        data = run_with_retries(
            lambda timeout: self._fetch_image(model, prompt, token, timeout),
            self.policy,
            label=f"glm:{model}",
            **kwargs,
        )
        return save_image(data, self.output_dir, user_id)

    def _fetch_image(self, model: str, prompt: str, token: str, timeout: float) -> bytes:
        body = post_json(
            self.base_url,
            {"model": model, "prompt": prompt, "size": _IMAGE_SIZE},
            {"Authorization": f"Bearer {token}"},
            timeout,
        )

        error = body.get("error") or {}
        if error.get("code"):
            raise ProviderResponseError(
                f"GLM API error ({error['code']}): {error.get('message', '')}"
            )

        data = body.get("data") or []
        url = data[0].get("url") if data else None
        if not url:
            raise ProviderResponseError("no image URL in response")

        log.info("GLM image URL received, downloading")
        return download(url, timeout)
