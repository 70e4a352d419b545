"""tenantkb knowledge store layer."""

from tenantkb.db.connection import Database
from tenantkb.db.migrations import MIGRATIONS, run_migrations
from tenantkb.db.models import EmbeddingModel, KnowledgeChunk, Tenant, VectorField
from tenantkb.db.repository import Repository
from tenantkb.db.schema import initialize
from tenantkb.db.vectors import ensure_vec_tables, vec_table_name

__all__ = [
    "Database",
    "EmbeddingModel",
    "KnowledgeChunk",
    "MIGRATIONS",
    "Repository",
    "Tenant",
    "VectorField",
    "ensure_vec_tables",
    "initialize",
    "run_migrations",
    "vec_table_name",
]
