"""Repository pattern for all knowledge store operations.

Single interface for: tenants (embedding-model config), knowledge records,
and their vectors. Every record query is scoped by tenant_id; nothing here
reads or writes across tenants. Vec tables are created by ensure_vec_tables();
the repository handles read + write.
"""

from __future__ import annotations

import json
import sqlite3

from tenantkb.categories import Category
from tenantkb.db.models import EmbeddingModel, KnowledgeChunk, Tenant, VectorField
from tenantkb.db.vectors import vec_table_name
from tenantkb.errors import TenantNotFoundError

_SMALL_TABLE = vec_table_name(VectorField.EMBEDDING)
_LARGE_TABLE = vec_table_name(VectorField.EMBEDDING_LARGE)

_CHUNK_COLUMNS = f"""
    k.id, k.tenant_id, k.category, k.content, k.created_at,
    CASE
        WHEN k.id IN (SELECT rowid FROM {_SMALL_TABLE}) THEN 'embedding'
        WHEN k.id IN (SELECT rowid FROM {_LARGE_TABLE}) THEN 'embedding_large'
    END AS vector_field
"""


class Repository:
    """Data access layer for tenants and knowledge records.

    Wraps an open sqlite3.Connection. The connection is owned by the caller
    and must be closed after use.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        """Initialise with an open database connection.

        Args:
            conn: An open sqlite3.Connection with sqlite-vec loaded and schema
                initialised (see tenantkb.db.schema.initialize).
        """
        self._conn = conn

    # ------------------------------------------------------------------
    # Tenants
    # ------------------------------------------------------------------

    def add_tenant(self, tenant: Tenant) -> None:
        """Register a tenant with its embedding-model setting."""
        self._conn.execute(
            "INSERT INTO tenants (tenant_id, display_name, embedding_model) VALUES (?, ?, ?)",
            (tenant.tenant_id, tenant.display_name, tenant.embedding_model.value),
        )
        self._conn.commit()

    def get_tenant(self, tenant_id: str) -> Tenant | None:
        row = self._conn.execute(
            "SELECT tenant_id, display_name, embedding_model, created_at FROM tenants WHERE tenant_id = ?",
            (tenant_id,),
        ).fetchone()
        return _row_to_tenant(row) if row else None

    def list_tenants(self) -> list[Tenant]:
        rows = self._conn.execute(
            "SELECT tenant_id, display_name, embedding_model, created_at FROM tenants ORDER BY tenant_id"
        ).fetchall()
        return [_row_to_tenant(r) for r in rows]

    def get_embedding_model(self, tenant_id: str) -> EmbeddingModel:
        """Return the tenant's configured embedding model.

        Raises:
            TenantNotFoundError: If *tenant_id* is not registered.
        """
        tenant = self.get_tenant(tenant_id)
        if tenant is None:
            raise TenantNotFoundError(tenant_id)
        return tenant.embedding_model

    def set_embedding_model(self, tenant_id: str, model: EmbeddingModel) -> None:
        """Change the tenant's embedding model. Stored vectors are untouched.

        Raises:
            TenantNotFoundError: If *tenant_id* is not registered.
        """
        cur = self._conn.execute(
            "UPDATE tenants SET embedding_model = ? WHERE tenant_id = ?",
            (model.value, tenant_id),
        )
        self._conn.commit()
        if cur.rowcount == 0:
            raise TenantNotFoundError(tenant_id)

    # ------------------------------------------------------------------
    # Knowledge records
    # ------------------------------------------------------------------

    def find_by_exact_content(self, tenant_id: str, content: str) -> KnowledgeChunk | None:
        """Return the tenant's record whose content equals *content*, or None."""
        row = self._conn.execute(
            f"SELECT {_CHUNK_COLUMNS} FROM knowledge_chunks k WHERE k.tenant_id = ? AND k.content = ?",
            (tenant_id, content),
        ).fetchone()
        return _row_to_chunk(row) if row else None

    def get_chunk(self, tenant_id: str, chunk_id: int) -> KnowledgeChunk | None:
        row = self._conn.execute(
            f"SELECT {_CHUNK_COLUMNS} FROM knowledge_chunks k WHERE k.tenant_id = ? AND k.id = ?",
            (tenant_id, chunk_id),
        ).fetchone()
        return _row_to_chunk(row) if row else None

    def insert_many(
        self, records: list[tuple[KnowledgeChunk, list[float]]], field: VectorField
    ) -> list[int]:
        """Insert records with their vectors in *field* as one transaction.

        A record whose (tenant_id, content) already exists is skipped rather
        than raising; it is absent from the returned ids.

        Returns:
            Ids of the rows actually inserted, in input order.

        Raises:
            sqlite3.Error: On any store failure; the whole call is rolled back.
        """
        table = vec_table_name(field)
        inserted: list[int] = []
        try:
            for chunk, vector in records:
                cur = self._conn.execute(
                    """
                    INSERT INTO knowledge_chunks (tenant_id, category, content)
                    VALUES (?, ?, ?)
                    ON CONFLICT (tenant_id, content) DO NOTHING
                    """,
                    (chunk.tenant_id, chunk.category.value, chunk.content),
                )
                if cur.rowcount == 0:
                    continue
                rowid = cur.lastrowid
                self._conn.execute(
                    f"INSERT INTO {table}(rowid, embedding) VALUES (?, ?)",
                    (rowid, json.dumps(vector)),
                )
                chunk.id = rowid
                chunk.vector_field = field
                inserted.append(rowid)
        except sqlite3.Error:
            self._conn.rollback()
            raise
        self._conn.commit()
        return inserted

    def list_all(self, tenant_id: str) -> list[KnowledgeChunk]:
        """Return all of the tenant's records ordered by id."""
        rows = self._conn.execute(
            f"SELECT {_CHUNK_COLUMNS} FROM knowledge_chunks k WHERE k.tenant_id = ? ORDER BY k.id",
            (tenant_id,),
        ).fetchall()
        return [_row_to_chunk(r) for r in rows]

    def update_vector(self, chunk_id: int, field: VectorField, vector: list[float]) -> None:
        """Replace the record's vector, writing *field* and clearing the other one."""
        try:
            for table in (_SMALL_TABLE, _LARGE_TABLE):
                self._conn.execute(f"DELETE FROM {table} WHERE rowid = ?", (chunk_id,))
            self._conn.execute(
                f"INSERT INTO {vec_table_name(field)}(rowid, embedding) VALUES (?, ?)",
                (chunk_id, json.dumps(vector)),
            )
        except sqlite3.Error:
            self._conn.rollback()
            raise
        self._conn.commit()

    def get_vector(self, chunk_id: int, field: VectorField) -> list[float] | None:
        """Return the stored vector for *chunk_id* in *field*, or None."""
        row = self._conn.execute(
            f"SELECT vec_to_json(embedding) AS v FROM {vec_table_name(field)} WHERE rowid = ?",
            (chunk_id,),
        ).fetchone()
        return json.loads(row["v"]) if row else None

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    def count_chunks(self, tenant_id: str) -> int:
        return self._conn.execute(
            "SELECT COUNT(*) FROM knowledge_chunks WHERE tenant_id = ?", (tenant_id,)
        ).fetchone()[0]

    def count_by_category(self, tenant_id: str) -> dict[Category, int]:
        """Return {category: record count} for every category (zeros included)."""
        counts = {cat: 0 for cat in Category}
        rows = self._conn.execute(
            "SELECT category, COUNT(*) AS n FROM knowledge_chunks WHERE tenant_id = ? GROUP BY category",
            (tenant_id,),
        ).fetchall()
        for row in rows:
            counts[Category(row["category"])] = row["n"]
        return counts

    def count_by_field(self, tenant_id: str) -> dict[VectorField | None, int]:
        """Return record counts keyed by vector field; None = no vector stored."""
        counts: dict[VectorField | None, int] = {
            VectorField.EMBEDDING: 0,
            VectorField.EMBEDDING_LARGE: 0,
            None: 0,
        }
        rows = self._conn.execute(
            f"""
            SELECT vector_field, COUNT(*) AS n
            FROM (SELECT {_CHUNK_COLUMNS} FROM knowledge_chunks k WHERE k.tenant_id = ?)
            GROUP BY vector_field
            """,
            (tenant_id,),
        ).fetchall()
        for row in rows:
            key = VectorField(row["vector_field"]) if row["vector_field"] else None
            counts[key] = row["n"]
        return counts


# ------------------------------------------------------------------
# Row → model helpers
# ------------------------------------------------------------------


def _row_to_tenant(row: sqlite3.Row) -> Tenant:
    return Tenant(
        tenant_id=row["tenant_id"],
        display_name=row["display_name"],
        embedding_model=EmbeddingModel(row["embedding_model"]),
        created_at=row["created_at"],
    )


def _row_to_chunk(row: sqlite3.Row) -> KnowledgeChunk:
    return KnowledgeChunk(
        id=row["id"],
        tenant_id=row["tenant_id"],
        category=Category(row["category"]),
        content=row["content"],
        vector_field=VectorField(row["vector_field"]) if row["vector_field"] else None,
        created_at=row["created_at"],
    )
