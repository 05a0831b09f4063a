"""Provider capability surface and the shared image retry/save helpers.

Every backend implements the same three operations. Image generation runs
each attempt under its own timeout and retries with a fixed backoff (tenacity);
missing credentials fail fast and are never retried. Text generation is a
single timed call.
"""

from __future__ import annotations

import re
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from tenacity import (
    RetryCallState,
    RetryError,
    Retrying,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from quire.errors import ProviderError, ProviderNotConfiguredError, UnsupportedOperationError
from quire.log import get_logger

log = get_logger(__name__)

_UNSAFE_PATH_CHARS = re.compile(r"[^A-Za-z0-9_\-]")


@dataclass
class RetryPolicy:
    """Bounded retry for image generation.

    Attributes:
        attempts: Total attempts including the first.
        backoff_seconds: Fixed delay before every attempt after the first.
        attempt_timeout: Timeout applied to each attempt on its own.
    """

    attempts: int = 3
    backoff_seconds: float = 2.0
    attempt_timeout: float = 300.0


class Provider(ABC):
    """A text and/or image generation backend."""

    name: str = "provider"

    @abstractmethod
    def generate_image(self, model: str, prompt: str, user_id: str = "") -> str:
        """Generate an image for *prompt* and return the saved file path.

        Raises:
            ProviderNotConfiguredError: Credentials are missing.
            ProviderError: All attempts failed; chains the last error.
        """

    @abstractmethod
    def generate_text_with_model(self, prompt: str, model: str) -> str:
        """Single-shot text generation against *model*."""

    @abstractmethod
    def generate_from_single_prompt(self, prompt: str) -> str:
        """Single-shot text generation against the provider's default model."""


class ImageOnlyProvider(Provider):
    """Base for HTTP image backends that have no text capability."""

    def generate_text_with_model(self, prompt: str, model: str) -> str:
        raise UnsupportedOperationError(f"{self.name} client does not support text generation")

    def generate_from_single_prompt(self, prompt: str) -> str:
        raise UnsupportedOperationError(f"{self.name} client does not support text generation")


# ---------------------------------------------------------------------------
# Retry
# ---------------------------------------------------------------------------


def run_with_retries(
    attempt_fn: Callable[[float], bytes],
    policy: RetryPolicy,
    label: str,
    sleep: Callable[[float], None] = time.sleep,
) -> bytes:
    """Call ``attempt_fn(attempt_timeout)`` until it returns image bytes.

    Every exception except ``ProviderNotConfiguredError`` is retried: transport
    failures, non-2xx responses, API error codes, empty candidate lists and
    missing payloads all look the same from here.

    Raises:
        ProviderNotConfiguredError: Immediately, without further attempts.
        ProviderError: After ``policy.attempts`` failures, chained to the last one.
    """

    def _before_sleep(state: RetryCallState) -> None:
        exc = state.outcome.exception() if state.outcome else None
        log.warning(
            "%s: attempt %d/%d failed: %s; retrying in %.1fs",
            label,
            state.attempt_number,
            policy.attempts,
            exc,
            policy.backoff_seconds,
        )

    retrying = Retrying(
        stop=stop_after_attempt(policy.attempts),
        wait=wait_fixed(policy.backoff_seconds),
        retry=retry_if_not_exception_type(ProviderNotConfiguredError),
        before_sleep=_before_sleep,
        sleep=sleep,
    )
    try:
        for attempt in retrying:
            with attempt:
                if attempt.retry_state.attempt_number == 1:
                    log.info("%s: generating image", label)
                return attempt_fn(policy.attempt_timeout)
    except RetryError as exc:
        last = exc.last_attempt.exception()
        log.error("%s: giving up after %d attempts: %s", label, policy.attempts, last)
        raise ProviderError(
            f"failed to generate image after {policy.attempts} attempts: {last}"
        ) from last
    raise AssertionError("unreachable")  # pragma: no cover


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------


def image_dir(output_dir: str | Path, user_id: str = "") -> Path:
    """Return the per-user image directory (shared root when *user_id* is empty)."""
    root = Path(output_dir)
    if not user_id:
        return root
    return root / _UNSAFE_PATH_CHARS.sub("_", user_id)


def save_image(data: bytes, output_dir: str | Path, user_id: str = "") -> str:
    """Write *data* to ``<output_dir>[/<user_id>]/infograph_<ns>.png`` and return the path."""
    target_dir = image_dir(output_dir, user_id)
    try:
        target_dir.mkdir(parents=True, exist_ok=True)
        path = target_dir / f"infograph_{time.time_ns()}.png"
        path.write_bytes(data)
    except OSError as exc:
        raise ProviderError(f"failed to save image: {exc}") from exc
    log.info("image saved to %s (%d bytes)", path, len(data))
    return str(path)
