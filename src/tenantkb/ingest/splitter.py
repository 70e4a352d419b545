"""Chunk splitter — paragraph-aware recursive splitting with sentence-end cuts.

Every chunk produced by ``split_text(text, target_size, window)`` satisfies
``0 < len(chunk) <= target_size + window``.
"""

from __future__ import annotations

import re

from tenantkb.ingest.base import Candidate

# Cut points for oversized paragraphs: Japanese/full-width sentence endings and newline.
SENTENCE_ENDINGS = frozenset("。！？．、\n")

_PARAGRAPH_RE = re.compile(r"\n\s*\n")


def split_text(text: str, target_size: int, window: int) -> list[str]:
    """Split *text* into chunks of at most ``target_size + window`` characters.

    Paragraphs (blank-line separated) are packed into a running buffer while
    the buffer stays within *target_size*; the buffer is flushed on overflow.
    A paragraph longer than *target_size* is sliced by ``_slice_paragraph``.
    """
    if target_size < 1:
        raise ValueError("target_size must be >= 1")
    if window < 0:
        raise ValueError("window must be >= 0")

    chunks: list[str] = []
    buffer = ""

    def _flush() -> None:
        nonlocal buffer
        if buffer.strip():
            chunks.append(buffer.strip())
        buffer = ""

    for paragraph in _PARAGRAPH_RE.split(text):
        paragraph = paragraph.strip()
        if not paragraph:
            continue
        if len(paragraph) > target_size:
            _flush()
            pieces = _slice_paragraph(paragraph, target_size, window)
            chunks.extend(pieces[:-1])
            buffer = pieces[-1] if pieces else ""
            continue
        if buffer and len(buffer) + 2 + len(paragraph) > target_size:
            _flush()
        buffer = f"{buffer}\n\n{paragraph}" if buffer else paragraph

    _flush()
    return chunks


def _slice_paragraph(paragraph: str, target_size: int, window: int) -> list[str]:
    """Slice a single oversized paragraph at sentence endings where possible.

    From offset *target_size* the search walks backward, at most *window*
    characters, for the nearest sentence-ending character and cuts just after
    it. With no sentence ending in range the cut is at *target_size*.
    """
    pieces: list[str] = []
    rest = paragraph
    while len(rest) > target_size:
        cut = target_size
        floor = max(0, target_size - window)
        for pos in range(target_size - 1, floor - 1, -1):
            if rest[pos] in SENTENCE_ENDINGS:
                cut = pos + 1
                break
        piece = rest[:cut].strip()
        if piece:
            pieces.append(piece)
        rest = rest[cut:]
    if rest.strip():
        pieces.append(rest.strip())
    return pieces


class ChunkSplitter:
    """Bound block size before Q&A synthesis and embedding.

    Blocks longer than ``presplit_size`` are split with ``split_text`` using
    ``presplit_window`` as tolerance; shorter blocks pass through unchanged.
    Output order follows input order and each piece keeps its block's category.
    """

    def __init__(self, presplit_size: int = 3000, presplit_window: int = 200) -> None:
        if presplit_size < 1:
            raise ValueError("presplit_size must be >= 1")
        self.presplit_size = presplit_size
        self.presplit_window = presplit_window

    def presplit(self, blocks: list[Candidate]) -> list[Candidate]:
        out: list[Candidate] = []
        for block in blocks:
            if len(block.content) <= self.presplit_size:
                out.append(block)
                continue
            out.extend(
                Candidate(block.category, piece)
                for piece in split_text(block.content, self.presplit_size, self.presplit_window)
            )
        return out

    @staticmethod
    def split(text: str, target_size: int, window: int) -> list[str]:
        return split_text(text, target_size, window)
