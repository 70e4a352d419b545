"""Tests for connection setup, migrations, and vec table creation."""

from __future__ import annotations

import sqlite3

import pytest

from tenantkb.db.connection import Database
from tenantkb.db.migrations import MIGRATIONS, run_migrations
from tenantkb.db.models import VectorField
from tenantkb.db.schema import CURRENT_VERSION, initialize
from tenantkb.db.vectors import ensure_vec_tables, vec_table_name


def _table_exists(conn, name: str) -> bool:
    return conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' AND name=?", (name,)
    ).fetchone() is not None


def _columns(conn, table: str) -> set[str]:
    return {row["name"] for row in conn.execute(f"PRAGMA table_info({table})").fetchall()}


# --- Connection ---

def test_connection_loads_sqlite_vec_and_pragmas(tmp_path):
    with Database(tmp_path / "kb.db") as conn:
        assert conn.execute("SELECT vec_version()").fetchone()[0].startswith("v")
        assert conn.execute("PRAGMA foreign_keys").fetchone()[0] == 1
        assert conn.execute("PRAGMA journal_mode").fetchone()[0] == "wal"


# --- Migrations ---

def test_migrations_create_tables(tmp_db):
    assert _table_exists(tmp_db, "tenants")
    assert _table_exists(tmp_db, "knowledge_chunks")
    assert _columns(tmp_db, "knowledge_chunks") == {"id", "tenant_id", "category", "content", "created_at"}
    assert _columns(tmp_db, "tenants") == {"tenant_id", "display_name", "embedding_model", "created_at"}


def test_migrations_record_current_version(tmp_db):
    version = tmp_db.execute("SELECT MAX(version) FROM schema_version").fetchone()[0]
    assert version == CURRENT_VERSION == MIGRATIONS[-1][0]


def test_initialize_is_idempotent(tmp_db):
    initialize(tmp_db, small_dimensions=3, large_dimensions=4)
    run_migrations(tmp_db)
    count = tmp_db.execute("SELECT COUNT(*) FROM schema_version").fetchone()[0]
    assert count == len(MIGRATIONS)


def test_category_check_constraint(tmp_db):
    tmp_db.execute("INSERT INTO tenants (tenant_id) VALUES ('acme')")
    with pytest.raises(sqlite3.IntegrityError):
        tmp_db.execute(
            "INSERT INTO knowledge_chunks (tenant_id, category, content) VALUES ('acme', 'MENU', 'x')"
        )


def test_embedding_model_check_constraint(tmp_db):
    with pytest.raises(sqlite3.IntegrityError):
        tmp_db.execute("INSERT INTO tenants (tenant_id, embedding_model) VALUES ('acme', 'huge')")


def test_unique_content_per_tenant(tmp_db):
    tmp_db.execute("INSERT INTO tenants (tenant_id) VALUES ('acme')")
    tmp_db.execute("INSERT INTO tenants (tenant_id) VALUES ('globex')")
    sql = "INSERT INTO knowledge_chunks (tenant_id, content) VALUES (?, ?)"
    tmp_db.execute(sql, ("acme", "same text"))
    tmp_db.execute(sql, ("globex", "same text"))  # other tenant: allowed
    with pytest.raises(sqlite3.IntegrityError):
        tmp_db.execute(sql, ("acme", "same text"))


# --- Vec tables ---

def test_vec_table_names():
    assert vec_table_name(VectorField.EMBEDDING) == "vec_knowledge_embedding"
    assert vec_table_name(VectorField.EMBEDDING_LARGE) == "vec_knowledge_embedding_large"


def test_vec_tables_created(tmp_db):
    for field in VectorField:
        assert _table_exists(tmp_db, vec_table_name(field))


def test_vec_table_rejects_wrong_dimensions(tmp_db):
    table = vec_table_name(VectorField.EMBEDDING)
    with pytest.raises(sqlite3.OperationalError):
        tmp_db.execute(f"INSERT INTO {table}(rowid, embedding) VALUES (1, '[0.1, 0.2]')")


def test_ensure_vec_tables_invalid_dimensions(tmp_path):
    conn = Database(tmp_path / "kb.db").connect()
    with pytest.raises(ValueError, match="dimensions"):
        ensure_vec_tables(conn, 0, 4)
    conn.close()
