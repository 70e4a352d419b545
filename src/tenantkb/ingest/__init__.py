"""tenantkb ingest pipeline — segmentation, splitting, Q&A synthesis, dedup, embedding."""

from tenantkb.ingest.base import Candidate
from tenantkb.ingest.dedup import Deduplicator
from tenantkb.ingest.embedding_batcher import EmbeddingBatcher
from tenantkb.ingest.pipeline import IngestionOrchestrator, IngestReport, MacroReport
from tenantkb.ingest.qa_synthesizer import QASynthesizer
from tenantkb.ingest.reembed import ReEmbedder, ReEmbedReport
from tenantkb.ingest.segmenter import Segmenter
from tenantkb.ingest.splitter import ChunkSplitter, split_text

__all__ = [
    "Candidate",
    "ChunkSplitter",
    "Deduplicator",
    "EmbeddingBatcher",
    "IngestReport",
    "IngestionOrchestrator",
    "MacroReport",
    "QASynthesizer",
    "ReEmbedReport",
    "ReEmbedder",
    "Segmenter",
    "split_text",
]
