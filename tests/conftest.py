"""Shared pytest fixtures."""

from __future__ import annotations

import logging
import os

# Use litellm's bundled model cost map; its network fetch races on import offline.
os.environ.setdefault("LITELLM_LOCAL_MODEL_COST_MAP", "True")

import pytest
import structlog

from helpers import LARGE_DIMS, SMALL_DIMS
from tenantkb.db.connection import Database
from tenantkb.db.models import EmbeddingModel, Tenant
from tenantkb.db.repository import Repository
from tenantkb.db.schema import initialize


@pytest.fixture(autouse=True)
def _reset_logging():
    """Undo configure_logging() after CLI tests; it binds the runner's stderr."""
    yield
    structlog.reset_defaults()
    logging.getLogger().handlers.clear()


@pytest.fixture
def tmp_db(tmp_path):
    """File-based DB in tmp_path with schema initialized, closed after test."""
    db = Database(tmp_path / ".tenantkb.db")
    conn = db.connect()
    initialize(conn, small_dimensions=SMALL_DIMS, large_dimensions=LARGE_DIMS)
    yield conn
    conn.close()


@pytest.fixture
def repo(tmp_db):
    """Repository with tenant 'acme' (small model) and 'globex' (large model)."""
    r = Repository(tmp_db)
    r.add_tenant(Tenant(tenant_id="acme", embedding_model=EmbeddingModel.SMALL))
    r.add_tenant(Tenant(tenant_id="globex", embedding_model=EmbeddingModel.LARGE))
    return r


@pytest.fixture
def cli_env(tmp_path, monkeypatch):
    """Run CLI commands from tmp_path with small test vectors and a fake API key.

    Writes a tenantkb.yaml sized to SMALL_DIMS/LARGE_DIMS and points the
    global config at a missing file.
    """
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr("tenantkb.config._GLOBAL_CONFIG_PATH", tmp_path / "no-global" / "config.yaml")
    for name in ("TENANTKB_GENERATION_MODEL", "TENANTKB_EMBEDDING_SMALL_MODEL",
                 "TENANTKB_EMBEDDING_LARGE_MODEL", "TENANTKB_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    (tmp_path / "tenantkb.yaml").write_text(
        f"embedding:\n  small_dimensions: {SMALL_DIMS}\n  large_dimensions: {LARGE_DIMS}\n",
        encoding="utf-8",
    )
    return tmp_path
