"""Minimal JSON-over-HTTP helpers for the image backends (stdlib urllib)."""

from __future__ import annotations

import json
import urllib.error
import urllib.request
from typing import Any

from quire.errors import ProviderResponseError

_USER_AGENT = "quire/0.1"


def post_json(
    url: str,
    payload: dict[str, Any],
    headers: dict[str, str],
    timeout: float,
) -> dict[str, Any]:
    """POST *payload* as JSON and return the decoded JSON body.

    Error responses that still carry a JSON body are returned so the caller
    can report the backend's own error code; anything else raises.

    Raises:
        urllib.error.URLError: Transport failure.
        ProviderResponseError: Non-JSON body or non-2xx without a JSON body.
    """
    request = urllib.request.Request(
        url,
        data=json.dumps(payload).encode("utf-8"),
        headers={"Content-Type": "application/json", "User-Agent": _USER_AGENT, **headers},
        method="POST",
    )
    try:
        with urllib.request.urlopen(request, timeout=timeout) as response:
            raw = response.read()
    except urllib.error.HTTPError as exc:
        raw = exc.read()
        try:
            body = json.loads(raw)
        except (ValueError, TypeError):
            raise ProviderResponseError(f"HTTP {exc.code} from {url}") from exc
        if isinstance(body, dict):
            return body
        raise ProviderResponseError(f"HTTP {exc.code} from {url}") from exc

    try:
        body = json.loads(raw)
    except ValueError as exc:
        raise ProviderResponseError(f"failed to decode response: {exc}") from exc
    if not isinstance(body, dict):
        raise ProviderResponseError("failed to decode response: expected a JSON object")
    return body


def download(url: str, timeout: float) -> bytes:
    """GET *url* and return the whole body, buffered in memory.

    Raises:
        urllib.error.URLError: Transport failure or non-2xx status.
        ProviderResponseError: Empty body.
    """
    request = urllib.request.Request(url, headers={"User-Agent": _USER_AGENT})
    with urllib.request.urlopen(request, timeout=timeout) as response:
        data = response.read()
    if not data:
        raise ProviderResponseError(f"empty image download from {url}")
    return data
