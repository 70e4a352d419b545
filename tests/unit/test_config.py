"""Tests for the tenantkb config loader."""

from __future__ import annotations

import warnings
from pathlib import Path

import pytest
import yaml

from tenantkb.config import ConfigError, TenantKBConfig, load_config

_ENV_VARS = (
    "TENANTKB_GENERATION_MODEL",
    "TENANTKB_EMBEDDING_SMALL_MODEL",
    "TENANTKB_EMBEDDING_LARGE_MODEL",
    "TENANTKB_LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def _write_yaml(path: Path, data: dict) -> None:
    path.write_text(yaml.dump(data), encoding="utf-8")


def _load(tmp_path: Path, global_cfg: Path | None = None) -> TenantKBConfig:
    return load_config(
        project_dir=tmp_path,
        global_config_path=global_cfg or tmp_path / "nonexistent" / "config.yaml",
    )


# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------


def test_load_config_defaults_no_files(tmp_path: Path) -> None:
    cfg = _load(tmp_path)

    assert cfg.embedding.small_model == "openai/text-embedding-3-small"
    assert cfg.embedding.large_model == "openai/text-embedding-3-large"
    assert cfg.embedding.batch_size == 5
    assert cfg.embedding.reembed_batch_size == 10
    assert cfg.generation.model == "openai/gpt-4o-mini"
    assert cfg.chunking.presplit_size == 3000
    assert cfg.chunking.presplit_window == 200
    assert cfg.chunking.qa_min_chars == 800
    assert cfg.chunking.qa_part_limit == 6000
    assert cfg.chunking.qa_part_size == 5000
    assert cfg.chunking.fallback_size == 800
    assert cfg.chunking.fallback_window == 100
    assert cfg.ingest.macro_batch_chars == 50_000
    assert cfg.logging.level == "WARNING"


# ---------------------------------------------------------------------------
# Layering
# ---------------------------------------------------------------------------


def test_global_config_overrides_defaults(tmp_path: Path) -> None:
    global_cfg = tmp_path / "config.yaml"
    _write_yaml(global_cfg, {"generation": {"model": "anthropic/claude-3-5-haiku-20241022"}})

    cfg = _load(tmp_path, global_cfg)
    assert cfg.generation.model == "anthropic/claude-3-5-haiku-20241022"
    assert cfg.embedding.small_model == "openai/text-embedding-3-small"


def test_project_config_overrides_global(tmp_path: Path) -> None:
    global_cfg = tmp_path / "global.yaml"
    _write_yaml(global_cfg, {"chunking": {"presplit_size": 2000, "fallback_size": 500}})
    _write_yaml(tmp_path / "tenantkb.yaml", {"chunking": {"presplit_size": 1000}})

    cfg = _load(tmp_path, global_cfg)
    assert cfg.chunking.presplit_size == 1000
    assert cfg.chunking.fallback_size == 500


def test_empty_project_file_gives_defaults(tmp_path: Path) -> None:
    (tmp_path / "tenantkb.yaml").write_text("", encoding="utf-8")
    assert _load(tmp_path).ingest.macro_batch_chars == 50_000


def test_env_overrides_files(tmp_path: Path, monkeypatch) -> None:
    _write_yaml(tmp_path / "tenantkb.yaml", {"generation": {"model": "openai/gpt-4o"}})
    monkeypatch.setenv("TENANTKB_GENERATION_MODEL", "groq/llama-3.1-8b-instant")
    monkeypatch.setenv("TENANTKB_EMBEDDING_LARGE_MODEL", "openai/custom-large")
    monkeypatch.setenv("TENANTKB_LOG_LEVEL", "debug")

    cfg = _load(tmp_path)
    assert cfg.generation.model == "groq/llama-3.1-8b-instant"
    assert cfg.embedding.large_model == "openai/custom-large"
    assert cfg.logging.level == "DEBUG"


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def test_global_config_with_api_key_rejected(tmp_path: Path) -> None:
    global_cfg = tmp_path / "config.yaml"
    _write_yaml(global_cfg, {"generation": {"api_key": "sk-secret"}})
    with pytest.raises(ConfigError, match="api_key"):
        _load(tmp_path, global_cfg)


def test_max_tokens_is_not_treated_as_secret(tmp_path: Path) -> None:
    global_cfg = tmp_path / "config.yaml"
    _write_yaml(global_cfg, {"generation": {"max_tokens": 1000}})
    assert _load(tmp_path, global_cfg).generation.max_tokens == 1000


@pytest.mark.parametrize("value", [0, -5, "many"])
def test_non_positive_batch_size_rejected(tmp_path: Path, value) -> None:
    _write_yaml(tmp_path / "tenantkb.yaml", {"embedding": {"batch_size": value}})
    with pytest.raises(ConfigError, match="embedding.batch_size"):
        _load(tmp_path)


def test_config_error_is_value_error(tmp_path: Path) -> None:
    _write_yaml(tmp_path / "tenantkb.yaml", {"ingest": {"macro_batch_chars": 0}})
    with pytest.raises(ValueError):
        _load(tmp_path)


def test_unknown_key_warns(tmp_path: Path) -> None:
    _write_yaml(tmp_path / "tenantkb.yaml", {"retrieval": {"top_k": 5}})
    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        _load(tmp_path)
    assert any("retrieval" in str(w.message) for w in caught)
