"""Embedding client wrapping OpenAI's embeddings API.

Provides:
- Embedder: order-preserving single/batch/query embedding with a fixed model and
  dimensionality, validated on every response.
- EmbeddingBatch: vectors plus the provider's token-usage accounting.

Provider failures surface as foundry_rag.errors.EmbeddingError with the original
exception chained; partial results are never returned. Retries with exponential
backoff are delegated to the OpenAI SDK (max_retries), bounded per request by
the client timeout.
"""
import logging
from dataclasses import dataclass
from typing import List, Optional

import openai
from openai import OpenAI

from foundry_rag.cache import QueryEmbeddingCache
from foundry_rag.errors import EmbeddingError
from foundry_rag.obs import span

logger = logging.getLogger(__name__)

# Per-request input limit of the OpenAI embeddings endpoint.
OPENAI_BATCH_LIMIT = 2048


def _supports_dimensions(model: str) -> bool:
    # Only the text-embedding-3 family accepts the "dimensions" request field.
    return model.lower().startswith("text-embedding-3")


@dataclass
class EmbeddingBatch:
    """Vectors for a batch of inputs, in input order, plus token usage."""
    vectors: List[List[float]]
    prompt_tokens: int = 0
    total_tokens: int = 0


class Embedder:
    """Converts text into fixed-dimension vectors via the embedding provider.

    Args:
        client: An OpenAI client (or any object exposing embeddings.create).
        model: Embedding model identifier.
        dimensions: Expected vector length; every returned vector is checked.
        max_batch_size: Largest number of inputs sent in one provider call.
        cache: Optional query-embedding cache consulted by embed_query.
    """

    def __init__(
        self,
        client: OpenAI,
        model: str,
        dimensions: int,
        max_batch_size: int = OPENAI_BATCH_LIMIT,
        cache: Optional[QueryEmbeddingCache] = None,
    ):
        self._client = client
        self.model = model
        self.dimensions = dimensions
        self._max_batch_size = max(1, min(max_batch_size, OPENAI_BATCH_LIMIT))
        self._cache = cache

    @classmethod
    def from_settings(cls, settings, cache: Optional[QueryEmbeddingCache] = None) -> "Embedder":
        """Build an Embedder and its OpenAI client from application settings."""
        client_kwargs = {
            "api_key": settings.OPENAI_API_KEY,
            "timeout": settings.EMBED_TIMEOUT_SECONDS,
            "max_retries": settings.EMBED_MAX_RETRIES,
        }
        if settings.OPENAI_BASE_URL:
            client_kwargs["base_url"] = settings.OPENAI_BASE_URL
        return cls(
            OpenAI(**client_kwargs),
            model=settings.OPENAI_EMBEDDING_MODEL,
            dimensions=settings.EMBEDDING_DIM,
            cache=cache,
        )

    def _request(self, texts: List[str]) -> EmbeddingBatch:
        """Issue one provider call and validate the response.

        Args:
            texts: Inputs for a single request (at most max_batch_size).

        Returns:
            EmbeddingBatch: Vectors re-ordered by the provider's index field.

        Raises:
            EmbeddingError: On provider failure, count mismatch or wrong dimensionality.
        """
        kwargs = {"model": self.model, "input": texts}
        if _supports_dimensions(self.model):
            kwargs["dimensions"] = self.dimensions
        with span("embedding.request", {"model": self.model, "batch_size": len(texts)}):
            try:
                resp = self._client.embeddings.create(**kwargs)
            except openai.OpenAIError as exc:
                raise EmbeddingError(f"Embedding request failed for {len(texts)} input(s): {exc}") from exc

        data = sorted(resp.data, key=lambda d: d.index)
        if len(data) != len(texts):
            raise EmbeddingError(f"Provider returned {len(data)} embeddings for {len(texts)} input(s)")
        vectors = [list(d.embedding) for d in data]
        for i, vec in enumerate(vectors):
            if len(vec) != self.dimensions:
                raise EmbeddingError(
                    f"Embedding {i} has {len(vec)} dimensions, expected {self.dimensions}"
                )

        usage = getattr(resp, "usage", None)
        prompt_tokens = getattr(usage, "prompt_tokens", 0) or 0
        total_tokens = getattr(usage, "total_tokens", 0) or 0
        logger.debug("Embedded %d input(s) with %s (tokens=%d)", len(texts), self.model, total_tokens)
        return EmbeddingBatch(vectors=vectors, prompt_tokens=prompt_tokens, total_tokens=total_tokens)

    def embed_batch_with_usage(self, texts: List[str]) -> EmbeddingBatch:
        """Embed texts in order, splitting into provider-sized requests.

        Args:
            texts: Input strings.

        Returns:
            EmbeddingBatch: One vector per input (i-th vector for i-th text) and
                summed token usage.
        """
        out = EmbeddingBatch(vectors=[])
        for start in range(0, len(texts), self._max_batch_size):
            part = self._request(texts[start : start + self._max_batch_size])
            out.vectors.extend(part.vectors)
            out.prompt_tokens += part.prompt_tokens
            out.total_tokens += part.total_tokens
        return out

    def embed_batch(self, texts: List[str]) -> List[List[float]]:
        """Embed a batch of texts; output is 1:1 and order-preserving with input."""
        if not texts:
            return []
        return self.embed_batch_with_usage(texts).vectors

    def embed(self, text: str) -> List[float]:
        """Embed a single text."""
        return self._request([text]).vectors[0]

    def embed_query(self, text: str) -> List[float]:
        """Embed a search query.

        Same vector as embed(text); served from the query cache when one is configured.
        """
        if self._cache is not None:
            cached = self._cache.get(text)
            if cached is not None:
                return cached
        vec = self.embed(text)
        if self._cache is not None:
            self._cache.set(text, vec)
        return vec
