"""
Shared test fixtures for the RAG core.

Provides: a stub OpenAI client returning deterministic per-text vectors, an
Embedder bound to it, an InMemoryStore, and a pipeline/retriever wired together.
"""
import hashlib
from types import SimpleNamespace
from typing import Dict, List, Optional

import openai
import pytest

from foundry_rag.chunking import Chunker
from foundry_rag.embedding import Embedder
from foundry_rag.ingestion.pipeline import IngestionPipeline
from foundry_rag.memory_store import InMemoryStore
from foundry_rag.retrieval import HybridRetriever

DIM = 8
ORG_ID = "00000000-0000-0000-0000-000000000001"
OTHER_ORG_ID = "00000000-0000-0000-0000-000000000002"


def text_vector(text: str, dim: int = DIM) -> List[float]:
    """Deterministic, distinguishable, non-zero vector for a text."""
    digest = hashlib.sha256(text.encode("utf-8")).digest()
    return [(digest[i % len(digest)] + 1) / 256.0 for i in range(dim)]


class StubEmbeddings:
    """Stands in for OpenAI().embeddings.

    Args:
        dim: Length of returned vectors.
        vectors: Explicit text -> vector overrides.
        fail_on: Raise openai.OpenAIError when any input contains this substring.
            Empty inputs are always rejected, as by the real endpoint.
        reverse: Return data items in reverse order (index field stays correct).
    """

    def __init__(
        self,
        dim: int = DIM,
        vectors: Optional[Dict[str, List[float]]] = None,
        fail_on: Optional[str] = None,
        reverse: bool = False,
    ):
        self.dim = dim
        self.vectors = vectors or {}
        self.fail_on = fail_on
        self.reverse = reverse
        self.calls: List[dict] = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        inputs = kwargs["input"]
        if any(not t for t in inputs):
            # The embeddings endpoint rejects empty strings.
            raise openai.OpenAIError("'$.input' is invalid")
        if self.fail_on and any(self.fail_on in t for t in inputs):
            raise openai.OpenAIError("provider unavailable")
        data = [
            SimpleNamespace(index=i, embedding=self.vectors.get(t) or text_vector(t, self.dim))
            for i, t in enumerate(inputs)
        ]
        if self.reverse:
            data = list(reversed(data))
        tokens = sum(max(1, len(t.split())) for t in inputs)
        return SimpleNamespace(
            data=data,
            model=kwargs["model"],
            usage=SimpleNamespace(prompt_tokens=tokens, total_tokens=tokens),
        )


class StubOpenAI:
    def __init__(self, **kwargs):
        self.embeddings = StubEmbeddings(**kwargs)


@pytest.fixture
def stub_client():
    return StubOpenAI()


@pytest.fixture
def embedder(stub_client):
    return Embedder(stub_client, model="text-embedding-3-small", dimensions=DIM)


@pytest.fixture
def store():
    return InMemoryStore(dimensions=DIM)


@pytest.fixture
def small_chunker():
    """Chunker with small windows so short fixtures produce several chunks."""
    return Chunker(chunk_tokens=40, overlap_tokens=8)


@pytest.fixture
def pipeline(store, embedder, small_chunker):
    return IngestionPipeline(store=store, embedder=embedder, chunker=small_chunker, embed_batch_size=100)


@pytest.fixture
def retriever(store, embedder):
    return HybridRetriever(embedder, store, default_top_k=12, default_org_id=ORG_ID)
