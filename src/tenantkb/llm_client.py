"""LiteLLM client wrapper for Q&A generation and batched embeddings.

All generation and embedding calls in the ingestion pipeline route through
this module. LiteLLM's built-in retry is used (num_retries, exponential
backoff). Vectors are reassembled by the ``index`` the provider returns with
each item, not by arrival order.
"""

from __future__ import annotations

import os
from typing import Any

import litellm

litellm.suppress_debug_info = True
litellm.set_verbose = False  # type: ignore[assignment]


_PROVIDER_ENV: dict[str, str | None] = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "azure": "AZURE_API_KEY",
    "cohere": "COHERE_API_KEY",
    "gemini": "GEMINI_API_KEY",
    "mistral": "MISTRAL_API_KEY",
    "groq": "GROQ_API_KEY",
    "together_ai": "TOGETHERAI_API_KEY",
    "ollama": None,  # Local, no key required
    "ollama_chat": None,
}


class EmbeddingShapeError(RuntimeError):
    """The provider returned a different number of vectors than inputs."""


def required_env_var(model: str) -> str | None:
    """Return the API key env var needed for *model*, or None if none is needed."""
    provider = model.split("/")[0].lower() if "/" in model else "openai"
    return _PROVIDER_ENV.get(provider)


def validate_api_key(model: str) -> None:
    """Check that the required API key env var is set for *model*.

    Raises:
        EnvironmentError: If the required key is missing from environment.
    """
    env_var = required_env_var(model)
    if env_var is None:
        return
    if not os.getenv(env_var):
        provider = model.split("/")[0].lower() if "/" in model else "openai"
        raise EnvironmentError(
            f"API key not found for provider '{provider}'. "
            f"Set the {env_var} environment variable."
        )


def generate_structured(
    model: str,
    system_prompt: str,
    user_text: str,
    max_tokens: int = 4096,
    temperature: float = 0.2,
    num_retries: int = 3,
) -> str:
    """Request a JSON object response and return the raw content string.

    The caller owns parsing; malformed JSON is returned as-is.

    Raises:
        litellm.exceptions.APIError: On persistent API failure after retries.
    """
    response = litellm.completion(
        model=model,
        messages=[
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_text},
        ],
        response_format={"type": "json_object"},
        max_tokens=max_tokens,
        temperature=temperature,
        num_retries=num_retries,
    )
    return response.choices[0].message.content or ""


def embed_many(model: str, texts: list[str], num_retries: int = 3) -> list[list[float]]:
    """Embed *texts* in one request. Returns vectors aligned with *texts*.

    Raises:
        EmbeddingShapeError: If the vector count or indices do not match the inputs.
    """
    response = litellm.embedding(model=model, input=texts, num_retries=num_retries)
    items = list(response.data)
    if len(items) != len(texts):
        raise EmbeddingShapeError(
            f"Expected {len(texts)} embeddings, provider returned {len(items)}."
        )

    vectors: list[list[float] | None] = [None] * len(texts)
    for position, item in enumerate(items):
        index = _item_field(item, "index")
        if index is None:
            index = position
        if not 0 <= index < len(texts) or vectors[index] is not None:
            raise EmbeddingShapeError(f"Provider returned invalid embedding index {index}.")
        vectors[index] = list(_item_field(item, "embedding"))
    return vectors  # type: ignore[return-value]


def _item_field(item: Any, name: str) -> Any:
    if isinstance(item, dict):
        return item.get(name)
    return getattr(item, name, None)
