"""sqlite-vec virtual tables backing the two vector fields."""

from __future__ import annotations

import sqlite3

from tenantkb.db.models import VectorField


def vec_table_name(field: VectorField) -> str:
    """Return the vec0 table that stores *field* (rowid = knowledge_chunks.id)."""
    return f"vec_knowledge_{field.value}"


def ensure_vec_tables(
    conn: sqlite3.Connection, small_dimensions: int, large_dimensions: int
) -> dict[VectorField, str]:
    """Create both vec tables if they don't already exist.

    Existing tables keep the dimensions they were created with; sqlite-vec
    rejects vectors of any other length on insert.

    Returns:
        Mapping of vector field to table name.
    """
    dims = {
        VectorField.EMBEDDING: small_dimensions,
        VectorField.EMBEDDING_LARGE: large_dimensions,
    }
    tables: dict[VectorField, str] = {}
    for field, dimensions in dims.items():
        if dimensions < 1:
            raise ValueError(f"dimensions must be >= 1, got {dimensions}")
        table = vec_table_name(field)
        existing = conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name=?", (table,)
        ).fetchone()
        if existing is None:
            conn.execute(
                f"CREATE VIRTUAL TABLE {table} USING vec0(embedding float[{dimensions}])"
            )
        tables[field] = table
    conn.commit()
    return tables
