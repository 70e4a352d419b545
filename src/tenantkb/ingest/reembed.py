"""Re-embedder — recompute every stored vector after a tenant's model change.

Rows are updated in place by id: the vector moves to the field of the
tenant's current model and the stale field is cleared. No row is created or
deleted.
"""

from __future__ import annotations

import sqlite3
from collections.abc import Callable
from dataclasses import dataclass

import structlog

from tenantkb.config import EmbeddingCfg
from tenantkb.db.repository import Repository
from tenantkb.ingest.embedding_batcher import EmbeddingBatcher

logger = structlog.get_logger(logger_name=__name__)


@dataclass
class ReEmbedReport:
    total: int = 0
    updated: int = 0
    batches_skipped: int = 0


class ReEmbedder:
    """Re-derive embeddings for all of a tenant's records.

    Args:
        repo:   Open Repository.
        config: Embedding configuration; ``reembed_batch_size`` sets the batch size.
    """

    def __init__(self, repo: Repository, config: EmbeddingCfg | None = None) -> None:
        self._repo = repo
        self._config = config or EmbeddingCfg()

    def run(self, tenant_id: str, on_batch: Callable[[int, int], None] | None = None) -> ReEmbedReport:
        """Re-embed every record of *tenant_id* with its configured model.

        Raises:
            TenantNotFoundError: If *tenant_id* is not registered.
        """
        model = self._repo.get_embedding_model(tenant_id)
        chunks = self._repo.list_all(tenant_id)
        report = ReEmbedReport(total=len(chunks))
        log = logger.bind(tenant_id=tenant_id, model=model.value)
        log.info("reembed_started", records=len(chunks))

        batcher = EmbeddingBatcher(self._config, self._config.reembed_batch_size)
        for batch in batcher.batches(model, chunks, on_batch=on_batch):
            try:
                for chunk, vector in batch.pairs:
                    self._repo.update_vector(chunk.id, batch.field, vector)
                    report.updated += 1
            except sqlite3.Error:
                report.batches_skipped += 1
                log.warning("reembed_batch_persist_failed", batch=batch.index, exc_info=True)
        report.batches_skipped += batcher.skipped

        log.info("reembed_done", updated=report.updated, batches_skipped=report.batches_skipped)
        return report
