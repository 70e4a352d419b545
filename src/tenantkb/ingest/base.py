"""Candidate records passed between ingestion stages."""

from __future__ import annotations

from dataclasses import dataclass

from tenantkb.categories import Category


@dataclass(frozen=True)
class Candidate:
    """A (category, content) pair on its way to the knowledge store.

    Segmenter blocks, splitter chunks, and synthesized Q&A units all travel
    as Candidates; the stage that produced one is not recorded.
    """

    category: Category
    content: str

    def __len__(self) -> int:
        return len(self.content)
