"""Q&A synthesizer — rewrite long prose blocks into question/answer units via LiteLLM.

Raw prose retrieves poorly, so chunks longer than ``qa_min_chars`` are sent
to the generation model and replaced by ``Q: …\\nA: …`` candidates. The
synthesizer never drops input: every part it receives comes back as
synthesized Q&A, salvaged Q/A blocks, or the part text itself.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import structlog

from tenantkb import llm_client
from tenantkb.categories import Category
from tenantkb.config import ChunkingCfg, GenerationCfg
from tenantkb.ingest.base import Candidate
from tenantkb.ingest.qa_parser import (
    Unparseable,
    items_to_candidates,
    parse_payload,
    payload_items,
    salvage_marked_blocks,
)
from tenantkb.ingest.splitter import split_text

logger = structlog.get_logger(logger_name=__name__)

_SYSTEM_PROMPT = """\
You turn business documents into a knowledge base for a customer-facing chat assistant.
Rewrite the user's text as {min_items} to {max_items} self-contained question/answer pairs \
that a customer might ask. Keep every fact (prices, times, conditions, names); do not invent \
anything. Write in the same language as the source text.

Respond with JSON only: an array of objects with the keys
  "q": the question,
  "a": the answer,
  "category": one of {categories}.
A top-level object of the form {{"items": [...]}} is also accepted."""

_MIN_ITEMS = 3
_MAX_ITEMS = 10


@dataclass
class SynthesisOutcome:
    """Candidates produced for one input chunk, plus how they were obtained."""

    candidates: list[Candidate] = field(default_factory=list)
    parts: int = 0
    synthesized_parts: int = 0
    salvaged_parts: int = 0
    verbatim_parts: int = 0
    failed_parts: int = 0

    @property
    def fallback_parts(self) -> int:
        return self.salvaged_parts + self.verbatim_parts + self.failed_parts

    def absorb(self, other: SynthesisOutcome) -> None:
        self.candidates.extend(other.candidates)
        self.parts += other.parts
        self.synthesized_parts += other.synthesized_parts
        self.salvaged_parts += other.salvaged_parts
        self.verbatim_parts += other.verbatim_parts
        self.failed_parts += other.failed_parts


class QASynthesizer:
    """Convert long chunks into Q&A candidates with a guaranteed non-empty result.

    Args:
        generation: Model settings for the structured generation request.
        chunking:   Size thresholds (trigger length, part sizes, fallback split).
    """

    def __init__(
        self,
        generation: GenerationCfg | None = None,
        chunking: ChunkingCfg | None = None,
    ) -> None:
        self._generation = generation or GenerationCfg()
        self._chunking = chunking or ChunkingCfg()

    def process(self, chunks: list[Candidate]) -> SynthesisOutcome:
        """Synthesize every chunk longer than ``qa_min_chars``; pass the rest through.

        Output order follows input order.
        """
        outcome = SynthesisOutcome()
        for chunk in chunks:
            if len(chunk.content) > self._chunking.qa_min_chars:
                outcome.absorb(self.synthesize(chunk))
            else:
                outcome.candidates.append(chunk)
        return outcome

    def synthesize(self, chunk: Candidate) -> SynthesisOutcome:
        """Synthesize Q&A candidates for one chunk, part by part."""
        outcome = SynthesisOutcome()
        for part in self._parts(chunk.content):
            outcome.absorb(self._synthesize_part(Candidate(chunk.category, part)))
        return outcome

    def _parts(self, text: str) -> list[str]:
        """Split texts over ``qa_part_limit`` into ``qa_part_size`` parts."""
        if len(text) <= self._chunking.qa_part_limit:
            return [text]
        return split_text(text, self._chunking.qa_part_size, self._chunking.presplit_window) or [text]

    def _synthesize_part(self, part: Candidate) -> SynthesisOutcome:
        outcome = SynthesisOutcome(parts=1)
        try:
            raw = self._generate(part.content)
        except Exception:
            logger.warning(
                "qa_generation_failed",
                chars=len(part.content),
                category=part.category.value,
                exc_info=True,
            )
            outcome.failed_parts = 1
            outcome.candidates = [
                Candidate(part.category, piece)
                for piece in split_text(
                    part.content, self._chunking.fallback_size, self._chunking.fallback_window
                )
            ] or [part]
            return outcome

        result = parse_payload(raw)
        candidates = items_to_candidates(payload_items(result))
        if candidates:
            logger.debug(
                "qa_synthesized",
                shape=type(result).__name__,
                items=len(candidates),
            )
            outcome.synthesized_parts = 1
            outcome.candidates = candidates
            return outcome

        if isinstance(result, Unparseable):
            logger.info("qa_payload_unparseable", reason=result.reason)

        salvaged = salvage_marked_blocks(raw, part.category)
        if salvaged:
            logger.info("qa_salvaged_marked_blocks", blocks=len(salvaged))
            outcome.salvaged_parts = 1
            outcome.candidates = salvaged
            return outcome

        logger.info("qa_verbatim_fallback", chars=len(part.content))
        outcome.verbatim_parts = 1
        outcome.candidates = [part]
        return outcome

    def _generate(self, text: str) -> str:
        system_prompt = _SYSTEM_PROMPT.format(
            min_items=_MIN_ITEMS,
            max_items=_MAX_ITEMS,
            categories=", ".join(c.value for c in Category),
        )
        return llm_client.generate_structured(
            model=self._generation.model,
            system_prompt=system_prompt,
            user_text=text,
            max_tokens=self._generation.max_tokens,
            temperature=self._generation.temperature,
            num_retries=self._generation.num_retries,
        )
