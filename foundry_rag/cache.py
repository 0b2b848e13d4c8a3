"""Query-embedding cache backed by Redis.

Provides:
- QueryEmbeddingCache: get/set of query vectors under a stable key derived from
  (model, dimensions, normalized query text), stored as JSON with a TTL.
- from_url: Build a cache from a Redis URL, or None when no URL is configured.

The cache is best-effort: Redis failures are logged and treated as misses so a
cache outage never fails a query.
"""
import hashlib
import json
import logging
from typing import List, Optional

import redis

logger = logging.getLogger(__name__)


class QueryEmbeddingCache:
    """Redis-backed cache of query embeddings."""

    def __init__(self, client: redis.Redis, model: str, dimensions: int, ttl_seconds: int = 600):
        self._client = client
        self._model = model
        self._dimensions = dimensions
        self._ttl = ttl_seconds

    @classmethod
    def from_url(cls, url: str, model: str, dimensions: int, ttl_seconds: int = 600) -> Optional["QueryEmbeddingCache"]:
        """Return a cache bound to the Redis at url, or None if url is empty."""
        if not url:
            return None
        return cls(redis.from_url(url, decode_responses=True), model, dimensions, ttl_seconds)

    def _key(self, text: str) -> str:
        """Compute a stable, namespaced cache key for a query string.

        Args:
            text: Raw query text; surrounding whitespace is ignored.

        Returns:
            str: Key of the form rag:qemb:v1:<sha256>.
        """
        norm = text.strip()
        h = hashlib.sha256(f"{self._model}|{self._dimensions}|{norm}".encode("utf-8")).hexdigest()
        return f"rag:qemb:v1:{h}"

    def get(self, text: str) -> Optional[List[float]]:
        """Cached vector for text, or None on miss, bad payload or Redis error."""
        try:
            raw = self._client.get(self._key(text))
        except redis.RedisError as exc:
            logger.warning("Query cache read failed: %s", exc)
            return None
        if not raw:
            return None
        try:
            vec = json.loads(raw)
        except ValueError:
            return None
        if not isinstance(vec, list) or len(vec) != self._dimensions:
            return None
        return [float(x) for x in vec]

    def set(self, text: str, vector: List[float]) -> None:
        """Store vector for text with the configured TTL."""
        try:
            self._client.setex(self._key(text), self._ttl, json.dumps(vector))
        except redis.RedisError as exc:
            logger.warning("Query cache write failed: %s", exc)
