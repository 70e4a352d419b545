"""Ingestion orchestrator — segment, split, synthesize, deduplicate, embed, store.

One ``ingest_text`` call runs every stage once, strictly in order, for one
tenant. ``ingest_macro`` cuts inputs over ``macro_batch_chars`` into hard
character slices and runs the pipeline once per slice; slices commit
independently, so a failed slice leaves earlier slices' records in place.
"""

from __future__ import annotations

import sqlite3
from collections.abc import Callable
from dataclasses import dataclass, field

import structlog

from tenantkb.categories import Category
from tenantkb.config import TenantKBConfig
from tenantkb.db.models import EmbeddingModel, KnowledgeChunk
from tenantkb.db.repository import Repository
from tenantkb.ingest.base import Candidate
from tenantkb.ingest.dedup import Deduplicator
from tenantkb.ingest.embedding_batcher import EmbeddingBatcher
from tenantkb.ingest.extract import extract_text
from tenantkb.ingest.qa_synthesizer import QASynthesizer
from tenantkb.ingest.segmenter import Segmenter
from tenantkb.ingest.splitter import ChunkSplitter

logger = structlog.get_logger(logger_name=__name__)

BatchCallback = Callable[[int, int], None]


@dataclass
class IngestReport:
    """Counts for one pipeline run."""

    blocks: int = 0
    candidates: int = 0
    duplicates: int = 0
    written: int = 0
    batches_skipped: int = 0
    synthesis_fallbacks: int = 0

    def add(self, other: IngestReport) -> None:
        self.blocks += other.blocks
        self.candidates += other.candidates
        self.duplicates += other.duplicates
        self.written += other.written
        self.batches_skipped += other.batches_skipped
        self.synthesis_fallbacks += other.synthesis_fallbacks


@dataclass
class MacroReport:
    """Outcome of a macro-batched run: one report per completed slice."""

    slices_total: int = 0
    completed: list[IngestReport] = field(default_factory=list)
    failed_slice: int | None = None
    error: str | None = None

    @property
    def totals(self) -> IngestReport:
        total = IngestReport()
        for report in self.completed:
            total.add(report)
        return total

    @property
    def ok(self) -> bool:
        return self.failed_slice is None


def macro_slices(text: str, slice_chars: int) -> list[str]:
    """Cut *text* into consecutive *slice_chars*-sized pieces (no sentence awareness)."""
    if slice_chars < 1:
        raise ValueError("slice_chars must be >= 1")
    return [text[i : i + slice_chars] for i in range(0, len(text), slice_chars)]


class IngestionOrchestrator:
    """Run the ingestion pipeline for a tenant against a Repository.

    Args:
        repo:        Open Repository; also the tenant config reader.
        config:      Loaded configuration (defaults when None).
        synthesizer: Q&A synthesizer override (tests inject one).
    """

    def __init__(
        self,
        repo: Repository,
        config: TenantKBConfig | None = None,
        synthesizer: QASynthesizer | None = None,
    ) -> None:
        self._repo = repo
        self._config = config or TenantKBConfig()
        chunking = self._config.chunking
        self._segmenter = Segmenter(min_block_chars=chunking.min_block_chars)
        self._splitter = ChunkSplitter(chunking.presplit_size, chunking.presplit_window)
        self._synthesizer = synthesizer or QASynthesizer(self._config.generation, chunking)
        self._dedup = Deduplicator(repo)

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def ingest_text(
        self,
        tenant_id: str,
        text: str,
        default_category: Category = Category.FAQ,
        on_batch: BatchCallback | None = None,
    ) -> IngestReport:
        """Run the full pipeline once over *text*.

        Empty or whitespace-only text is a no-op.

        Raises:
            TenantNotFoundError: If *tenant_id* is not registered (nothing written).
        """
        if not text or not text.strip():
            return IngestReport()
        model = self._repo.get_embedding_model(tenant_id)
        return self._run(tenant_id, model, text, default_category, on_batch)

    def ingest_macro(
        self,
        tenant_id: str,
        text: str,
        default_category: Category = Category.FAQ,
        on_slice: Callable[[int, int, IngestReport], None] | None = None,
        on_batch: BatchCallback | None = None,
    ) -> MacroReport:
        """Run the pipeline once per ``macro_batch_chars`` slice, in input order.

        ``on_slice(slice_no, slices_total, report)`` is called after each
        completed slice (1-based). The first failing slice stops the run;
        its error is recorded on the returned report.

        Raises:
            TenantNotFoundError: If *tenant_id* is not registered (nothing written).
        """
        if not text or not text.strip():
            return MacroReport()
        model = self._repo.get_embedding_model(tenant_id)
        slices = macro_slices(text, self._config.ingest.macro_batch_chars)
        report = MacroReport(slices_total=len(slices))

        for number, piece in enumerate(slices, start=1):
            log = logger.bind(tenant_id=tenant_id, slice=number, slices=len(slices))
            try:
                result = self._run(tenant_id, model, piece, default_category, on_batch)
            except Exception as exc:
                log.error("macro_slice_failed", exc_info=True)
                report.failed_slice = number
                report.error = str(exc) or type(exc).__name__
                break
            report.completed.append(result)
            log.info("macro_slice_done", written=result.written)
            if on_slice is not None:
                on_slice(number, len(slices), result)
        return report

    def ingest_file(
        self,
        tenant_id: str,
        file_bytes: bytes,
        file_kind: str,
        category: Category = Category.FAQ,
        on_slice: Callable[[int, int, IngestReport], None] | None = None,
        on_batch: BatchCallback | None = None,
    ) -> MacroReport:
        """Extract text from an uploaded file and ingest it macro-batched.

        Raises:
            TenantNotFoundError: If *tenant_id* is not registered.
            ExtractionError: If the file cannot be read as *file_kind*.
        """
        self._repo.get_embedding_model(tenant_id)
        text = extract_text(file_bytes, file_kind)
        return self.ingest_macro(tenant_id, text, category, on_slice=on_slice, on_batch=on_batch)

    def add_entry(self, tenant_id: str, category: Category, content: str) -> IngestReport:
        """Store one manually entered record without segmentation or synthesis."""
        content = content.strip() if content else ""
        if not content:
            return IngestReport()
        model = self._repo.get_embedding_model(tenant_id)
        report = IngestReport(blocks=1, candidates=1)
        self._store(tenant_id, model, [Candidate(category, content)], report, None)
        return report

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    def _run(
        self,
        tenant_id: str,
        model: EmbeddingModel,
        text: str,
        default_category: Category,
        on_batch: BatchCallback | None,
    ) -> IngestReport:
        report = IngestReport()
        blocks = self._segmenter.segment(text, default_category)
        report.blocks = len(blocks)
        if not blocks:
            return report

        chunks = self._splitter.presplit(blocks)
        outcome = self._synthesizer.process(chunks)
        report.candidates = len(outcome.candidates)
        report.synthesis_fallbacks = outcome.fallback_parts

        self._store(tenant_id, model, outcome.candidates, report, on_batch)
        logger.info(
            "ingest_done",
            tenant_id=tenant_id,
            blocks=report.blocks,
            candidates=report.candidates,
            duplicates=report.duplicates,
            written=report.written,
            batches_skipped=report.batches_skipped,
        )
        return report

    def _store(
        self,
        tenant_id: str,
        model: EmbeddingModel,
        candidates: list[Candidate],
        report: IngestReport,
        on_batch: BatchCallback | None,
    ) -> None:
        """Deduplicate, embed in batches, and persist each batch as it arrives."""
        dedup = self._dedup.filter(tenant_id, candidates)
        report.duplicates += dedup.duplicates

        batcher = EmbeddingBatcher(self._config.embedding, self._config.embedding.batch_size)
        for batch in batcher.batches(model, dedup.unique, on_batch=on_batch):
            records = [
                (KnowledgeChunk(tenant_id=tenant_id, category=c.category, content=c.content), vector)
                for c, vector in batch.pairs
            ]
            try:
                ids = self._repo.insert_many(records, batch.field)
            except sqlite3.Error:
                report.batches_skipped += 1
                logger.warning(
                    "persist_batch_failed",
                    tenant_id=tenant_id,
                    batch=batch.index,
                    size=len(records),
                    exc_info=True,
                )
                continue
            report.written += len(ids)
            report.duplicates += len(records) - len(ids)
        report.batches_skipped += batcher.skipped
