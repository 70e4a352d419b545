"""Parse model output for Q&A synthesis into an explicit payload shape.

The model is asked for a JSON array of ``{q, a, category}`` objects but JSON
mode often returns an object instead. ``parse_payload`` classifies the raw
text into exactly one of:

    ArrayPayload    root is already an array
    WrappedArray    root object holds the array under a known wrapper key
    ScannedArray    first array-valued field of the root object
    SingleObject    root object is itself one ``{q, a}`` pair
    Unparseable     invalid JSON, or nothing usable in it

The stages are tried in that order; ``payload_items`` maps every variant to
a list of raw items deterministically.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, Union

from tenantkb.categories import Category
from tenantkb.ingest.base import Candidate

# Checked in this order before falling back to a scan of all values.
WRAPPER_KEYS: tuple[str, ...] = ("items", "data", "results", "qa", "questions", "faqs", "entries")

_QUESTION_KEYS = ("q", "question")
_ANSWER_KEYS = ("a", "answer")

_FENCE_RE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL | re.IGNORECASE)
_BLANK_LINE_RE = re.compile(r"\n\s*\n")


@dataclass(frozen=True)
class ArrayPayload:
    items: list[Any]


@dataclass(frozen=True)
class WrappedArray:
    key: str
    items: list[Any]


@dataclass(frozen=True)
class ScannedArray:
    key: str
    items: list[Any]


@dataclass(frozen=True)
class SingleObject:
    item: dict[str, Any]


@dataclass(frozen=True)
class Unparseable:
    reason: str


ParseResult = Union[ArrayPayload, WrappedArray, ScannedArray, SingleObject, Unparseable]


def parse_payload(raw: str) -> ParseResult:
    """Classify *raw* model output. Never raises."""
    text = raw.strip()
    fenced = _FENCE_RE.match(text)
    if fenced:
        text = fenced.group(1)

    try:
        data = json.loads(text)
    except (json.JSONDecodeError, ValueError) as exc:
        return Unparseable(f"invalid json: {exc}")

    if isinstance(data, list):
        return ArrayPayload(data)
    if not isinstance(data, dict):
        return Unparseable(f"unexpected root type {type(data).__name__}")

    for key in WRAPPER_KEYS:
        if isinstance(data.get(key), list):
            return WrappedArray(key, data[key])

    for key, value in data.items():
        if isinstance(value, list):
            return ScannedArray(str(key), value)

    if _pick(data, _QUESTION_KEYS) and _pick(data, _ANSWER_KEYS):
        return SingleObject(data)

    return Unparseable("object without an array or a q/a pair")


def payload_items(result: ParseResult) -> list[Any]:
    """Return the raw items carried by *result* (empty for Unparseable)."""
    if isinstance(result, (ArrayPayload, WrappedArray, ScannedArray)):
        return list(result.items)
    if isinstance(result, SingleObject):
        return [result.item]
    return []


def items_to_candidates(items: list[Any]) -> list[Candidate]:
    """Convert usable ``{q, a, category}`` items to ``Q: …\\nA: …`` candidates.

    Items that are not objects or lack a non-empty question or answer are
    skipped. An absent or unknown category becomes FAQ.
    """
    out: list[Candidate] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        question = _pick(item, _QUESTION_KEYS)
        answer = _pick(item, _ANSWER_KEYS)
        if not question or not answer:
            continue
        category = Category.parse(item.get("category"))
        out.append(Candidate(category, f"Q: {question}\nA: {answer}"))
    return out


def salvage_marked_blocks(raw: str, category: Category) -> list[Candidate]:
    """Keep blank-line separated blocks of *raw* that contain both ``Q:`` and ``A:``."""
    out: list[Candidate] = []
    for block in _BLANK_LINE_RE.split(raw):
        block = block.strip()
        if "Q:" in block and "A:" in block:
            out.append(Candidate(category, block))
    return out


def _pick(item: dict[str, Any], keys: tuple[str, ...]) -> str:
    for key in keys:
        value = item.get(key)
        if isinstance(value, (str, int, float)) and not isinstance(value, bool):
            text = str(value).strip()
            if text:
                return text
    return ""
