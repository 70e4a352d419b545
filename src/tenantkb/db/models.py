"""Domain models for the knowledge store."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from tenantkb.categories import Category


class VectorField(str, Enum):
    """The two mutually exclusive vector columns of a knowledge record."""

    EMBEDDING = "embedding"
    EMBEDDING_LARGE = "embedding_large"


class EmbeddingModel(str, Enum):
    """A tenant's embedding-model setting.

    ``small`` vectors live in ``embedding``; ``large`` in ``embedding_large``.
    """

    SMALL = "small"
    LARGE = "large"

    @property
    def field(self) -> VectorField:
        if self is EmbeddingModel.SMALL:
            return VectorField.EMBEDDING
        return VectorField.EMBEDDING_LARGE


@dataclass
class Tenant:
    tenant_id: str
    embedding_model: EmbeddingModel = EmbeddingModel.SMALL
    display_name: str = ""
    created_at: str | None = None


@dataclass
class KnowledgeChunk:
    tenant_id: str
    category: Category
    content: str
    id: int | None = None  # set after insert; None for unsaved records
    vector_field: VectorField | None = None
    created_at: str | None = None
