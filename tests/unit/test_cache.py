"""Unit tests for the Redis query-embedding cache."""
import json
from unittest.mock import MagicMock

import redis

from foundry_rag.cache import QueryEmbeddingCache


def _cache(client, dimensions=3):
    return QueryEmbeddingCache(client, model="text-embedding-3-small", dimensions=dimensions, ttl_seconds=60)


class TestKeys:
    def test_key_ignores_surrounding_whitespace(self):
        cache = _cache(MagicMock())
        assert cache._key("  reset password ") == cache._key("reset password")

    def test_key_depends_on_model_and_dimensions(self):
        a = QueryEmbeddingCache(MagicMock(), model="m1", dimensions=3)
        b = QueryEmbeddingCache(MagicMock(), model="m2", dimensions=3)
        c = QueryEmbeddingCache(MagicMock(), model="m1", dimensions=4)
        assert len({a._key("q"), b._key("q"), c._key("q")}) == 3
        assert a._key("q").startswith("rag:qemb:v1:")


class TestReadWrite:
    def test_set_writes_json_with_ttl(self):
        client = MagicMock()
        cache = _cache(client)

        cache.set("q", [0.1, 0.2, 0.3])

        key, ttl, payload = client.setex.call_args.args
        assert key == cache._key("q")
        assert ttl == 60
        assert json.loads(payload) == [0.1, 0.2, 0.3]

    def test_get_returns_cached_vector(self):
        client = MagicMock()
        client.get.return_value = json.dumps([1, 2, 3])
        assert _cache(client).get("q") == [1.0, 2.0, 3.0]

    def test_miss_returns_none(self):
        client = MagicMock()
        client.get.return_value = None
        assert _cache(client).get("q") is None

    def test_malformed_payload_is_a_miss(self):
        client = MagicMock()
        client.get.return_value = "not json"
        assert _cache(client).get("q") is None

    def test_wrong_length_payload_is_a_miss(self):
        client = MagicMock()
        client.get.return_value = json.dumps([1.0, 2.0])
        assert _cache(client).get("q") is None


class TestOutages:
    """Redis failures degrade to cache misses."""

    def test_read_error_is_a_miss(self):
        client = MagicMock()
        client.get.side_effect = redis.ConnectionError("down")
        assert _cache(client).get("q") is None

    def test_write_error_is_swallowed(self):
        client = MagicMock()
        client.setex.side_effect = redis.ConnectionError("down")
        _cache(client).set("q", [0.0, 0.0, 0.0])

    def test_no_url_means_no_cache(self):
        assert QueryEmbeddingCache.from_url("", model="m", dimensions=3) is None
