"""Database schema initialization."""

from __future__ import annotations

import sqlite3

from tenantkb.db.migrations import MIGRATIONS, run_migrations
from tenantkb.db.vectors import ensure_vec_tables

CURRENT_VERSION = MIGRATIONS[-1][0]


def initialize(
    conn: sqlite3.Connection, small_dimensions: int = 1536, large_dimensions: int = 3072
) -> None:
    """Run migrations and create the vec tables (idempotent)."""
    run_migrations(conn)
    ensure_vec_tables(conn, small_dimensions, large_dimensions)
