"""tenantkb configuration loader.

Priority (high → low):
  1. CLI flags           (handled at call site — not in this module)
  2. Environment variables  (TENANTKB_GENERATION_MODEL, TENANTKB_EMBEDDING_SMALL_MODEL,
                             TENANTKB_EMBEDDING_LARGE_MODEL, TENANTKB_LOG_LEVEL)
  3. Per-project tenantkb.yaml  (working directory)
  4. Global ~/.tenantkb/config.yaml  (model defaults only — no API keys)
  5. Hardcoded defaults

Global config must never contain API keys; use environment variables instead.
All YAML reads use yaml.safe_load() — never yaml.load().
"""

from __future__ import annotations

import os
import re
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from tenantkb.errors import ConfigError

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_GLOBAL_CONFIG_DIR: Path = Path.home() / ".tenantkb"
_GLOBAL_CONFIG_PATH: Path = _GLOBAL_CONFIG_DIR / "config.yaml"
_PROJECT_CONFIG_NAME: str = "tenantkb.yaml"

# Matches api_key, api-key, api_secret, *_token, token, *_secret, secret,
# password/passwd and credential(s). Does NOT match max_tokens.
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
    ["embedding", "generation", "chunking", "ingest", "logging"]
)


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass
class EmbeddingCfg:
    """Embedding models and batch sizes (tenantkb.yaml: embedding:).

    ``small_model`` feeds the ``embedding`` field, ``large_model`` feeds
    ``embedding_large``. A tenant picks one of the two by key.
    """

    small_model: str = "openai/text-embedding-3-small"
    large_model: str = "openai/text-embedding-3-large"
    small_dimensions: int = 1536
    large_dimensions: int = 3072
    batch_size: int = 5
    reembed_batch_size: int = 10
    num_retries: int = 3


@dataclass
class GenerationCfg:
    """Q&A synthesis model configuration (tenantkb.yaml: generation:)."""

    model: str = "openai/gpt-4o-mini"
    max_tokens: int = 4096
    temperature: float = 0.2
    num_retries: int = 3


@dataclass
class ChunkingCfg:
    """Size thresholds for splitting and Q&A synthesis (tenantkb.yaml: chunking:)."""

    presplit_size: int = 3000
    presplit_window: int = 200
    qa_min_chars: int = 800
    qa_part_limit: int = 6000
    qa_part_size: int = 5000
    fallback_size: int = 800
    fallback_window: int = 100
    min_block_chars: int = 11


@dataclass
class IngestCfg:
    """Caller-side macro-batching (tenantkb.yaml: ingest:)."""

    macro_batch_chars: int = 50_000


@dataclass
class LoggingCfg:
    """Log output configuration (tenantkb.yaml: logging:)."""

    level: str = "WARNING"
    json: bool = False


@dataclass
class TenantKBConfig:
    """Root configuration object, built by load_config() from merged YAML layers."""

    embedding: EmbeddingCfg = field(default_factory=EmbeddingCfg)
    generation: GenerationCfg = field(default_factory=GenerationCfg)
    chunking: ChunkingCfg = field(default_factory=ChunkingCfg)
    ingest: IngestCfg = field(default_factory=IngestCfg)
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
                f"Unknown config key '{key}' in '{source}' — ignored.",
                UserWarning,
                stacklevel=4,
            )


def _positive(section: str, name: str, value: Any) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{section}.{name} must be an integer, got {value!r}") from exc
    if number < 1:
        raise ConfigError(f"{section}.{name} must be >= 1, got {number}")
    return number


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


def _cfg_from_dict(data: dict[str, Any]) -> TenantKBConfig:
    """Build a *TenantKBConfig* from a merged raw YAML dict."""
    cfg = TenantKBConfig()

    if "embedding" in data:
        e = data["embedding"] or {}
        d = cfg.embedding
        cfg.embedding = EmbeddingCfg(
            small_model=str(e.get("small_model", d.small_model)),
            large_model=str(e.get("large_model", d.large_model)),
            small_dimensions=_positive("embedding", "small_dimensions", e.get("small_dimensions", d.small_dimensions)),
            large_dimensions=_positive("embedding", "large_dimensions", e.get("large_dimensions", d.large_dimensions)),
            batch_size=_positive("embedding", "batch_size", e.get("batch_size", d.batch_size)),
            reembed_batch_size=_positive(
                "embedding", "reembed_batch_size", e.get("reembed_batch_size", d.reembed_batch_size)
            ),
            num_retries=int(e.get("num_retries", d.num_retries)),
        )

    if "generation" in data:
        g = data["generation"] or {}
        d = cfg.generation
        cfg.generation = GenerationCfg(
            model=str(g.get("model", d.model)),
            max_tokens=_positive("generation", "max_tokens", g.get("max_tokens", d.max_tokens)),
            temperature=float(g.get("temperature", d.temperature)),
            num_retries=int(g.get("num_retries", d.num_retries)),
        )

    if "chunking" in data:
        c = data["chunking"] or {}
        d = cfg.chunking
        cfg.chunking = ChunkingCfg(
            **{
                name: _positive("chunking", name, c.get(name, getattr(d, name)))
                for name in (
                    "presplit_size",
                    "presplit_window",
                    "qa_min_chars",
                    "qa_part_limit",
                    "qa_part_size",
                    "fallback_size",
                    "fallback_window",
                    "min_block_chars",
                )
            }
        )

    if "ingest" in data:
        i = data["ingest"] or {}
        cfg.ingest = IngestCfg(
            macro_batch_chars=_positive(
                "ingest", "macro_batch_chars", i.get("macro_batch_chars", cfg.ingest.macro_batch_chars)
            ),
        )

    if "logging" in data:
        lg = data["logging"] or {}
        cfg.logging = LoggingCfg(
            level=str(lg.get("level", cfg.logging.level)).upper(),
            json=bool(lg.get("json", cfg.logging.json)),
        )

    return cfg


def _apply_env_overrides(cfg: TenantKBConfig) -> TenantKBConfig:
    """Apply TENANTKB_* environment variable overrides."""
    if model := os.environ.get("TENANTKB_GENERATION_MODEL"):
        cfg.generation.model = model
    if model := os.environ.get("TENANTKB_EMBEDDING_SMALL_MODEL"):
        cfg.embedding.small_model = model
    if model := os.environ.get("TENANTKB_EMBEDDING_LARGE_MODEL"):
        cfg.embedding.large_model = model
    if level := os.environ.get("TENANTKB_LOG_LEVEL"):
        cfg.logging.level = level.upper()
    return cfg


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(
    project_dir: Path | None = None,
    *,
    global_config_path: Path | None = None,
) -> TenantKBConfig:
    """Load and return a merged *TenantKBConfig*.

    Applies layers in order: global → per-project → env vars.

    Args:
        project_dir: Directory to search for *tenantkb.yaml*. Defaults to CWD.
        global_config_path: Override the global config path (for testing).

    Raises:
        ConfigError: If global config contains API-key-like fields or a
            numeric setting is not a positive integer.
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

    cfg = _cfg_from_dict(merged)
    return _apply_env_overrides(cfg)
