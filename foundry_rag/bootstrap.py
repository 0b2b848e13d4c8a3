"""Process-start wiring of the RAG components.

build_services constructs the store, embedder, ingestion pipeline and retriever
once and returns them together; callers (CLIs, the API) pass these objects
around explicitly instead of reaching for module-level client handles.

Missing credentials or an unreachable datastore raise ConfigurationError here,
before any work starts.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from foundry_rag.cache import QueryEmbeddingCache
from foundry_rag.config import Settings
from foundry_rag.db import init_db, make_engine, make_session_factory
from foundry_rag.embedding import Embedder
from foundry_rag.errors import ConfigurationError, StoreError
from foundry_rag.ingestion.pipeline import IngestionPipeline
from foundry_rag.memory_store import InMemoryStore
from foundry_rag.obs import configure_tracing
from foundry_rag.retrieval import HybridRetriever
from foundry_rag.store import DocumentStore, PgVectorStore

logger = logging.getLogger(__name__)


@dataclass
class Services:
    settings: Settings
    store: DocumentStore
    embedder: Embedder
    pipeline: IngestionPipeline
    retriever: HybridRetriever
    engine: Optional[Engine] = None

    def close(self) -> None:
        if self.engine is not None:
            self.engine.dispose()


def build_store(settings: Settings, init_schema: bool = False):
    """Create the configured DocumentStore and verify it is reachable.

    Returns:
        Tuple[DocumentStore, Optional[Engine]]: The store and, for PostgreSQL,
            the engine backing it.

    Raises:
        ConfigurationError: Unknown backend, missing DATABASE_URL or unreachable database.
    """
    backend = settings.STORE_BACKEND.lower()
    if backend == "memory":
        return InMemoryStore(dimensions=settings.EMBEDDING_DIM), None
    if backend != "postgres":
        raise ConfigurationError(f"Unknown STORE_BACKEND {settings.STORE_BACKEND!r}")

    settings.require("DATABASE_URL")
    engine = make_engine(settings.DATABASE_URL, settings.DB_STATEMENT_TIMEOUT_MS)
    store = PgVectorStore(make_session_factory(engine))
    try:
        if init_schema:
            init_db(engine)
        store.ping()
    except (SQLAlchemyError, StoreError) as exc:
        engine.dispose()
        raise ConfigurationError(f"Datastore unreachable: {exc}", provider_name="postgres") from exc
    return store, engine


def build_services(settings: Settings, init_schema: bool = False) -> Services:
    """Construct every component from settings.

    Args:
        settings: Application settings.
        init_schema: Create the extension, tables, indexes and ranking functions first.

    Returns:
        Services: The wired components.

    Raises:
        ConfigurationError: Missing credentials, invalid chunking settings or unusable datastore.
    """
    settings.require("OPENAI_API_KEY")
    configure_tracing(console_export=settings.OTEL_CONSOLE_EXPORT)

    store, engine = build_store(settings, init_schema=init_schema)
    cache = QueryEmbeddingCache.from_url(
        settings.REDIS_URL,
        model=settings.OPENAI_EMBEDDING_MODEL,
        dimensions=settings.EMBEDDING_DIM,
        ttl_seconds=settings.CACHE_TTL_SECONDS,
    )
    embedder = Embedder.from_settings(settings, cache=cache)
    try:
        pipeline = IngestionPipeline.from_settings(settings, store=store, embedder=embedder)
    except ValueError as exc:
        if engine is not None:
            engine.dispose()
        raise ConfigurationError(f"Invalid chunking settings: {exc}") from exc
    retriever = HybridRetriever(
        embedder,
        store,
        default_top_k=settings.TOP_K,
        default_org_id=settings.DEFAULT_ORG_ID,
    )
    logger.info(
        "Services ready (store=%s, model=%s, dim=%d, cache=%s)",
        settings.STORE_BACKEND,
        settings.OPENAI_EMBEDDING_MODEL,
        settings.EMBEDDING_DIM,
        "on" if cache is not None else "off",
    )
    return Services(
        settings=settings,
        store=store,
        embedder=embedder,
        pipeline=pipeline,
        retriever=retriever,
        engine=engine,
    )
