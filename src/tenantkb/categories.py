"""Knowledge categories shared by segmentation, Q&A synthesis, and storage."""

from __future__ import annotations

import re
from enum import Enum


class Category(str, Enum):
    """The fixed set of knowledge categories.

    Declaration order is the header-detection order: when a line matches more
    than one category prefix, the first member listed here wins.
    """

    FAQ = "FAQ"
    OFFER = "OFFER"
    PRICE = "PRICE"
    PROCESS = "PROCESS"
    POLICY = "POLICY"
    CONTEXT = "CONTEXT"

    @classmethod
    def parse(cls, value: object, default: Category | None = None) -> Category:
        """Return the category named by *value* (case-insensitive), else *default*.

        *default* falls back to FAQ.
        """
        fallback = default if default is not None else cls.FAQ
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return fallback
        try:
            return cls(value.strip().upper())
        except ValueError:
            return fallback


DEFAULT_CATEGORY = Category.FAQ

# One pattern per category, in declaration order. Brackets are optional.
_HEADER_PATTERNS: tuple[tuple[Category, re.Pattern[str]], ...] = tuple(
    (cat, re.compile(rf"^\[?{cat.value}", re.IGNORECASE)) for cat in Category
)


def detect_header(line: str) -> Category | None:
    """Return the category whose header prefix *line* starts with, or None."""
    trimmed = line.strip()
    for cat, pattern in _HEADER_PATTERNS:
        if pattern.match(trimmed):
            return cat
    return None
