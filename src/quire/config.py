"""quire configuration loader.

Priority (high → low):
  1. CLI flags              (handled at call site, not in this module)
  2. Environment variables  (QUIRE_GENERATION_MODEL, QUIRE_EMBEDDING_MODEL,
                             QUIRE_IMAGE_PROVIDER, QUIRE_LOG_LEVEL)
  3. Per-project quire.yaml
  4. Global ~/.quire/config.yaml  (model defaults only, no API keys)
  5. Hardcoded defaults

Credentials (GLM_API_KEY, ZIMAGE_API_KEY, GEMINI_API_KEY, OPENAI_API_KEY, ...)
are read from the environment only; the global config rejects them.
All YAML reads use yaml.safe_load().
"""

from __future__ import annotations

import os
import re
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_GLOBAL_CONFIG_DIR: Path = Path.home() / ".quire"
_GLOBAL_CONFIG_PATH: Path = _GLOBAL_CONFIG_DIR / "config.yaml"
_PROJECT_CONFIG_NAME: str = "quire.yaml"

# Key names that look like credentials. Does not match max_tokens, ttl_seconds.
_API_KEY_RE: re.Pattern[str] = re.compile(
    r"api[_\-]?(?:key|secret)"
    r"|_token$"
    r"|^token$"
    r"|_secret$"
    r"|^secret$"
    r"|passw(?:ord|d)"
    r"|credential",
    re.IGNORECASE,
)

_KNOWN_SECTIONS: frozenset[str] = frozenset(
    [
        "embedding",
        "generation",
        "retrieval",
        "chunking",
        "cache",
        "images",
        "insight",
        "store",
        "index",
        "logging",
    ]
)

IMAGE_PROVIDERS: frozenset[str] = frozenset(["litellm", "gemini", "glm", "zimage"])


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(ValueError):
    """Raised when a config file contains an invalid or forbidden value."""


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass
class EmbeddingCfg:
    """Embedding model configuration (quire.yaml: embedding:)."""

    model: str = "gemini/text-embedding-004"


@dataclass
class GenerationCfg:
    """Text generation configuration (quire.yaml: generation:).

    Attributes:
        model: Default LiteLLM model for single-prompt generation.
        slides_model: Model used for slide-deck (``ppt``) transformations.
        max_context_length: Per-source character limit in transformation prompts.
        timeout_seconds: Timeout for a single text generation call.
        allow_multiple_notes_of_same_type: When False, a second note of the
            same transformation type is refused.
        image_prompt_suffix: Extra instruction appended to every image prompt.
    """

    model: str = "gemini/gemini-2.5-flash"
    slides_model: str = "gemini/gemini-3-flash-preview"
    max_context_length: int = 100_000
    timeout_seconds: float = 300.0
    allow_multiple_notes_of_same_type: bool = True
    image_prompt_suffix: str = ""


@dataclass
class RetrievalCfg:
    """Chat retrieval configuration (quire.yaml: retrieval:)."""

    max_sources: int = 5
    history_turns: int = 10


@dataclass
class ChunkingCfg:
    """Chunk size (tokens, 4 chars each) and overlap fraction."""

    chunk_size: int = 512
    overlap: float = 0.10


@dataclass
class CacheCfg:
    """Metadata store cache (quire.yaml: cache:)."""

    ttl_seconds: float = 300.0
    max_entries: int = 10_000


@dataclass
class ImagesCfg:
    """Image generation backends (quire.yaml: images:).

    Attributes:
        provider: One of ``litellm`` (alias ``gemini``), ``glm`` or ``zimage``.
        litellm_model: Image model for the default hosted backend.
        glm_model: GLM-Image model identifier.
        zimage_model: Z-Image model identifier.
        output_dir: Root directory for generated images (per-user subdirs).
        attempts: Total attempts per image, including the first.
        backoff_seconds: Fixed delay before each retry.
        attempt_timeout: Timeout for each individual attempt.
    """

    provider: str = "litellm"
    litellm_model: str = "gemini/imagen-4.0-generate-001"
    glm_model: str = "glm-image"
    zimage_model: str = "z-image-turbo"
    output_dir: str = "data/uploads"
    attempts: int = 3
    backoff_seconds: float = 2.0
    attempt_timeout: float = 300.0


@dataclass
class InsightCfg:
    """External insight analysis tool (quire.yaml: insight:)."""

    command: str = "./DeepInsight"
    output_dir: str = "tmp"
    timeout_seconds: float = 600.0


@dataclass
class StoreCfg:
    """Persistent metadata store (quire.yaml: store:)."""

    path: str = ".quire.db"


@dataclass
class IndexCfg:
    """Vector index database; ``:memory:`` keeps it process-local."""

    path: str = ":memory:"


@dataclass
class LoggingCfg:
    level: str = "INFO"


@dataclass
class QuireConfig:
    """Root configuration object, built by load_config() from merged YAML layers."""

    embedding: EmbeddingCfg = field(default_factory=EmbeddingCfg)
    generation: GenerationCfg = field(default_factory=GenerationCfg)
    retrieval: RetrievalCfg = field(default_factory=RetrievalCfg)
    chunking: ChunkingCfg = field(default_factory=ChunkingCfg)
    cache: CacheCfg = field(default_factory=CacheCfg)
    images: ImagesCfg = field(default_factory=ImagesCfg)
    insight: InsightCfg = field(default_factory=InsightCfg)
    store: StoreCfg = field(default_factory=StoreCfg)
    index: IndexCfg = field(default_factory=IndexCfg)
    logging: LoggingCfg = field(default_factory=LoggingCfg)


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _check_no_api_keys(data: dict[str, Any], source: Path) -> None:
    """Raise ConfigError if *data* contains any API-key-like key names."""

    def _scan(obj: Any, path: str) -> None:
        if isinstance(obj, dict):
            for k, v in obj.items():
                full = f"{path}.{k}" if path else k
                if _API_KEY_RE.search(str(k)):
                    raise ConfigError(
                        f"Global config '{source}' contains a forbidden key '{full}'.\n"
                        f"  API keys must be set via environment variables, not config files.\n"
                        f"  Remove '{full}' from {source.name} and use:\n"
                        f"    export {str(k).upper().replace('-', '_')}=<value>"
                    )
                _scan(v, full)

    _scan(data, "")


def _warn_unknown_keys(data: dict[str, Any], source: Path) -> None:
    """Emit a UserWarning for unrecognised top-level keys."""
    for key in data:
        if key not in _KNOWN_SECTIONS:
            warnings.warn(
                f"Unknown config key '{key}' in '{source}', ignored.",
                UserWarning,
                stacklevel=4,
            )


def _validate(cfg: QuireConfig) -> None:
    if cfg.images.provider not in IMAGE_PROVIDERS:
        raise ConfigError(
            f"images.provider must be one of {sorted(IMAGE_PROVIDERS)}, "
            f"got '{cfg.images.provider}'"
        )
    if cfg.images.attempts < 1:
        raise ConfigError(f"images.attempts must be >= 1, got {cfg.images.attempts}")
    if cfg.cache.ttl_seconds <= 0:
        raise ConfigError(f"cache.ttl_seconds must be > 0, got {cfg.cache.ttl_seconds}")


# ---------------------------------------------------------------------------
# Merge + build
# ---------------------------------------------------------------------------


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return a new dict that is *base* deep-merged with *override*."""
    result = dict(base)
    for k, v in override.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


def _cfg_from_dict(data: dict[str, Any]) -> QuireConfig:
    """Build a *QuireConfig* from a merged raw YAML dict."""
    cfg = QuireConfig()

    if "embedding" in data:
        e = data["embedding"]
        cfg.embedding = EmbeddingCfg(model=str(e.get("model", cfg.embedding.model)))

    if "generation" in data:
        g = data["generation"]
        d = cfg.generation
        cfg.generation = GenerationCfg(
            model=str(g.get("model", d.model)),
            slides_model=str(g.get("slides_model", d.slides_model)),
            max_context_length=int(g.get("max_context_length", d.max_context_length)),
            timeout_seconds=float(g.get("timeout_seconds", d.timeout_seconds)),
            allow_multiple_notes_of_same_type=bool(
                g.get(
                    "allow_multiple_notes_of_same_type",
                    d.allow_multiple_notes_of_same_type,
                )
            ),
            image_prompt_suffix=str(g.get("image_prompt_suffix", d.image_prompt_suffix)),
        )

    if "retrieval" in data:
        r = data["retrieval"]
        cfg.retrieval = RetrievalCfg(
            max_sources=int(r.get("max_sources", cfg.retrieval.max_sources)),
            history_turns=int(r.get("history_turns", cfg.retrieval.history_turns)),
        )

    if "chunking" in data:
        ch = data["chunking"]
        cfg.chunking = ChunkingCfg(
            chunk_size=int(ch.get("chunk_size", cfg.chunking.chunk_size)),
            overlap=float(ch.get("overlap", cfg.chunking.overlap)),
        )

    if "cache" in data:
        c = data["cache"]
        cfg.cache = CacheCfg(
            ttl_seconds=float(c.get("ttl_seconds", cfg.cache.ttl_seconds)),
            max_entries=int(c.get("max_entries", cfg.cache.max_entries)),
        )

    if "images" in data:
        i = data["images"]
        d = cfg.images
        cfg.images = ImagesCfg(
            provider=str(i.get("provider", d.provider)).lower(),
            litellm_model=str(i.get("litellm_model", d.litellm_model)),
            glm_model=str(i.get("glm_model", d.glm_model)),
            zimage_model=str(i.get("zimage_model", d.zimage_model)),
            output_dir=str(i.get("output_dir", d.output_dir)),
            attempts=int(i.get("attempts", d.attempts)),
            backoff_seconds=float(i.get("backoff_seconds", d.backoff_seconds)),
            attempt_timeout=float(i.get("attempt_timeout", d.attempt_timeout)),
        )

    if "insight" in data:
        ins = data["insight"]
        cfg.insight = InsightCfg(
            command=str(ins.get("command", cfg.insight.command)),
            output_dir=str(ins.get("output_dir", cfg.insight.output_dir)),
            timeout_seconds=float(ins.get("timeout_seconds", cfg.insight.timeout_seconds)),
        )

    if "store" in data:
        cfg.store = StoreCfg(path=str(data["store"].get("path", cfg.store.path)))

    if "index" in data:
        cfg.index = IndexCfg(path=str(data["index"].get("path", cfg.index.path)))

    if "logging" in data:
        cfg.logging = LoggingCfg(level=str(data["logging"].get("level", cfg.logging.level)))

    return cfg


def _apply_env_overrides(cfg: QuireConfig) -> QuireConfig:
    """Apply QUIRE_* environment variable overrides."""
    if model := os.environ.get("QUIRE_GENERATION_MODEL"):
        cfg.generation.model = model
    if model := os.environ.get("QUIRE_EMBEDDING_MODEL"):
        cfg.embedding.model = model
    if provider := os.environ.get("QUIRE_IMAGE_PROVIDER"):
        cfg.images.provider = provider.lower()
    if level := os.environ.get("QUIRE_LOG_LEVEL"):
        cfg.logging.level = level
    return cfg


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(
    project_dir: Path | None = None,
    *,
    global_config_path: Path | None = None,
) -> QuireConfig:
    """Load and return a merged *QuireConfig*.

    Applies layers in order: global → per-project → env vars.

    Args:
        project_dir: Directory to search for *quire.yaml*. Defaults to CWD.
        global_config_path: Override the global config path (for testing).

    Raises:
        ConfigError: If global config contains API-key-like fields or a value
            is out of range.
    """
    global_path = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    search_dir = project_dir if project_dir is not None else Path.cwd()

    merged: dict[str, Any] = {}

    if global_path.exists():
        raw_global = yaml.safe_load(global_path.read_text(encoding="utf-8")) or {}
        _check_no_api_keys(raw_global, global_path)
        _warn_unknown_keys(raw_global, global_path)
        merged = _deep_merge(merged, raw_global)

    project_cfg_path = search_dir / _PROJECT_CONFIG_NAME
    if project_cfg_path.exists():
        raw_project = yaml.safe_load(project_cfg_path.read_text(encoding="utf-8")) or {}
        _warn_unknown_keys(raw_project, project_cfg_path)
        merged = _deep_merge(merged, raw_project)

    cfg = _apply_env_overrides(_cfg_from_dict(merged))
    _validate(cfg)
    return cfg
