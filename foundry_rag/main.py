"""FastAPI application exposing retrieval to the generation agents and search UI.

Exposes /health and POST /rag/search. Components are built once at startup by
foundry_rag.bootstrap (or injected via create_app for tests) and reached through
app.state; no request handler constructs its own clients.
"""
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import Depends, FastAPI, HTTPException, Request

from foundry_rag.bootstrap import Services, build_services
from foundry_rag.config import Settings
from foundry_rag.errors import EmbeddingError, StoreError
from foundry_rag.obs import span
from foundry_rag.schemas import SearchRequest, SearchResponse

logger = logging.getLogger(__name__)


def get_services(request: Request) -> Services:
    """FastAPI dependency returning the process-wide Services."""
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise HTTPException(status_code=503, detail="service not initialized")
    return services


def create_app(services: Optional[Services] = None) -> FastAPI:
    """Build the API.

    Args:
        services: Pre-built components; when omitted they are built from
            environment settings at startup, failing startup on configuration errors.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if app.state.services is None:
            app.state.services = build_services(Settings())
        yield
        if app.state.services is not None:
            app.state.services.close()

    app = FastAPI(title="Foundry RAG API", version="0.1.0", lifespan=lifespan)
    app.state.services = services

    @app.get("/health")
    def health():
        """Liveness check endpoint.

        Returns:
            dict: {"status": "ok"} when the service is running.
        """
        return {"status": "ok"}

    @app.post("/rag/search", response_model=SearchResponse)
    def search(req: SearchRequest, services: Services = Depends(get_services)) -> SearchResponse:
        """Rank an organization's chunks for a query.

        Workflow:
        - Embed the query and run hybrid (default) or vector-only ranking
        - Attach parent-document summaries when requested
        - Log the query when LOG_QUERIES is enabled

        Returns:
            SearchResponse: Results best-first, at most top_k of them.

        Raises:
            HTTPException: 502 when the embedding provider fails, 503 when the
                datastore fails, 400 on an unusable query.
        """
        org_id = str(req.org_id)
        top_k = req.top_k or services.settings.TOP_K
        retrieve = (
            services.retriever.retrieve_hybrid if req.mode == "hybrid" else services.retriever.retrieve_vector
        )
        with span("api.search", {"mode": req.mode, "top_k": top_k}):
            try:
                results = retrieve(req.query, org_id=org_id, top_k=top_k, include_documents=req.include_documents)
            except ValueError as exc:
                raise HTTPException(status_code=400, detail=str(exc))
            except EmbeddingError as exc:
                logger.error("Search embedding failed: %s", exc)
                raise HTTPException(status_code=502, detail="embedding provider error")
            except StoreError as exc:
                logger.error("Search ranking failed: %s", exc)
                raise HTTPException(status_code=503, detail="datastore error")

        if services.settings.LOG_QUERIES:
            try:
                services.store.log_query(org_id, req.query, top_k, req.mode == "hybrid")
            except StoreError as exc:
                logger.warning("Query log write failed: %s", exc)

        return SearchResponse(results=results, query=req.query, org_id=org_id, count=len(results))

    return app


app = create_app()
