"""Segmenter — split raw text into category-tagged blocks by header lines."""

from __future__ import annotations

from tenantkb.categories import Category, detect_header
from tenantkb.ingest.base import Candidate


class Segmenter:
    """Split pasted or extracted text into blocks, one per category header.

    Strategy:
    - Work line by line; blank lines are dropped.
    - A header line (``FAQ``, ``[PRICE]``, ``policy: ...``) closes the open
      block under its category and opens a new block under the detected
      category. The header line itself is the first line of the new block.
    - Other lines are appended to the open block with a newline. Lines before
      the first header open a block under ``default_category``.
    - Blocks shorter than ``min_block_chars`` are header-only noise and are
      discarded.
    """

    def __init__(self, min_block_chars: int = 11) -> None:
        if min_block_chars < 1:
            raise ValueError("min_block_chars must be >= 1")
        self.min_block_chars = min_block_chars

    def segment(self, text: str, default_category: Category = Category.FAQ) -> list[Candidate]:
        blocks: list[Candidate] = []
        buffer: list[str] = []
        category = default_category

        def _flush() -> None:
            if buffer:
                blocks.append(Candidate(category, "\n".join(buffer)))

        for line in text.splitlines():
            trimmed = line.strip()
            if not trimmed:
                continue
            detected = detect_header(trimmed)
            if detected is not None:
                _flush()
                buffer = [trimmed]
                category = detected
            else:
                buffer.append(trimmed)
        _flush()

        return [b for b in blocks if len(b.content) >= self.min_block_chars]
