"""Embedding batcher — batched LiteLLM embeddings routed to the tenant's vector field.

Each batch is one embedding request. Inputs are whitespace-normalised
(newlines → spaces); stored content keeps its newlines. Vectors come back
paired with the item they were computed for (see ``llm_client.embed_many``);
a batch whose response cannot be paired is skipped, never partially used.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator, Sequence
from dataclasses import dataclass
from typing import Generic, Protocol, TypeVar

import structlog

from tenantkb import llm_client
from tenantkb.config import EmbeddingCfg
from tenantkb.db.models import EmbeddingModel, VectorField

logger = structlog.get_logger(logger_name=__name__)


class HasContent(Protocol):
    @property
    def content(self) -> str: ...


T = TypeVar("T", bound=HasContent)


@dataclass
class EmbeddedBatch(Generic[T]):
    """One successfully embedded batch: ``pairs[i] = (item, vector)`` in input order."""

    index: int
    field: VectorField
    pairs: list[tuple[T, list[float]]]


def normalize_for_embedding(text: str) -> str:
    """Collapse line breaks to spaces for the embedding request."""
    return text.replace("\r\n", " ").replace("\n", " ").replace("\r", " ")


class EmbeddingBatcher:
    """Compute embeddings in fixed-size batches for a tenant's embedding model.

    Args:
        config:     Embedding model names and retry settings.
        batch_size: Items per embedding request (5 for ingestion, 10 for
                    re-embedding).
    """

    def __init__(self, config: EmbeddingCfg | None = None, batch_size: int | None = None) -> None:
        self._config = config or EmbeddingCfg()
        self.batch_size = batch_size or self._config.batch_size
        if self.batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        self.skipped = 0

    def model_name(self, model: EmbeddingModel) -> str:
        """Return the LiteLLM model string for the tenant setting *model*."""
        if model is EmbeddingModel.SMALL:
            return self._config.small_model
        return self._config.large_model

    def batch_count(self, n_items: int) -> int:
        return (n_items + self.batch_size - 1) // self.batch_size

    def batches(
        self,
        model: EmbeddingModel,
        items: Sequence[T],
        on_batch: Callable[[int, int], None] | None = None,
    ) -> Iterator[EmbeddedBatch[T]]:
        """Yield embedded batches in input order; failed batches are logged and skipped.

        ``on_batch(done, total)`` is called after every batch, successful or not.
        ``self.skipped`` counts the failed batches of this batcher.
        """
        field = model.field
        model_name = self.model_name(model)
        total = self.batch_count(len(items))

        for batch_index, start in enumerate(range(0, len(items), self.batch_size)):
            batch = list(items[start : start + self.batch_size])
            inputs = [normalize_for_embedding(item.content) for item in batch]
            try:
                vectors = llm_client.embed_many(
                    model_name, inputs, num_retries=self._config.num_retries
                )
            except Exception:
                self.skipped += 1
                logger.warning(
                    "embedding_batch_failed",
                    batch=batch_index,
                    size=len(batch),
                    model=model_name,
                    exc_info=True,
                )
                if on_batch is not None:
                    on_batch(batch_index + 1, total)
                continue

            yield EmbeddedBatch(batch_index, field, list(zip(batch, vectors)))
            if on_batch is not None:
                on_batch(batch_index + 1, total)
