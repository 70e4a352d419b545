"""Fake LiteLLM responses and vector sizes shared by the test modules."""

from __future__ import annotations

from unittest.mock import MagicMock

# Tiny vector sizes keep test vectors readable; the large field is wider than
# the small one so dimension mismatches are detectable.
SMALL_DIMS = 3
LARGE_DIMS = 4


def embedding_response(n: int, dims: int, reverse: bool = False, base: float = 0.0) -> MagicMock:
    """Fake litellm.embedding() response with *n* indexed vectors.

    Vector i is ``[base + i, 0, 0, ...]``. With *reverse* the items arrive in
    reverse order but keep their ``index``.
    """
    data = [
        {"object": "embedding", "index": i, "embedding": [base + float(i)] + [0.0] * (dims - 1)}
        for i in range(n)
    ]
    if reverse:
        data.reverse()
    response = MagicMock()
    response.data = data
    return response


def completion_response(content: str | None) -> MagicMock:
    """Fake litellm.completion() response carrying *content*."""
    response = MagicMock()
    response.choices = [MagicMock()]
    response.choices[0].message.content = content
    return response


def fake_embedding(fail_on: str | None = None):
    """side_effect for litellm.embedding sized by model name ("large" → LARGE_DIMS)."""

    def _side_effect(model, input, num_retries):
        if fail_on is not None and any(fail_on in text for text in input):
            raise RuntimeError("provider error")
        dims = LARGE_DIMS if "large" in model else SMALL_DIMS
        return embedding_response(len(input), dims, base=1.0)

    return _side_effect
