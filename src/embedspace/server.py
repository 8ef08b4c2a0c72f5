"""
FastAPI server exposing the search session as JSON.

The corpus layout, query projection, and ranked results are returned as
plain data for whatever front end draws them.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import Callable

from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .config import resolve_corpus_path, resolve_settings
from .errors import EmbedspaceError, SearchUnavailableError, StateError
from .models import vector_preview
from .search import SearchOrchestrator, load_corpus
from .session import open_session

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], AbstractAsyncContextManager[SearchOrchestrator]]


class SearchRequest(BaseModel):
    """Request model for search queries."""

    query: str
    limit: int | None = Field(default=None, ge=1)


def _default_session() -> AbstractAsyncContextManager[SearchOrchestrator]:
    corpus = load_corpus(resolve_corpus_path())
    return open_session(resolve_settings(), corpus, index=False)


async def _index_in_background(orchestrator: SearchOrchestrator) -> None:
    try:
        await orchestrator.index()
    except EmbedspaceError as exc:
        logger.error("Indexing failed: %s", exc)


router = APIRouter(prefix="/api")


def _orchestrator(request: Request) -> SearchOrchestrator:
    return request.app.state.orchestrator


@router.get("/status")
async def status(request: Request):
    """Report worker readiness and the search state."""
    orchestrator = _orchestrator(request)
    readiness = orchestrator.broker.readiness
    return {
        "readiness": readiness.state.value,
        "state": orchestrator.state.value,
        "error": orchestrator.error or readiness.error,
        "corpus_size": len(orchestrator.corpus),
        "indexed": orchestrator.indexed,
    }


@router.get("/corpus")
async def corpus(request: Request):
    """Return corpus texts with their 3-D coordinates."""
    orchestrator = _orchestrator(request)
    embedding = orchestrator.corpus_embedding
    if embedding is None:
        return JSONResponse(
            {"error": "Corpus is not indexed yet.", "state": orchestrator.state.value},
            status_code=503,
        )
    return {
        "dimension": embedding.dimension,
        "items": [
            {
                "index": index,
                "text": text,
                "point": list(point),
                "preview": vector_preview(embedding.vector(index)),
            }
            for index, (text, point) in enumerate(
                zip(orchestrator.corpus, orchestrator.corpus_3d)
            )
        ],
    }


@router.post("/search")
async def search(request: Request, body: SearchRequest):
    """Project a query into the corpus space and rank the corpus."""
    orchestrator = _orchestrator(request)
    try:
        outcome = await orchestrator.search(body.query)
    except ValueError as exc:
        return JSONResponse({"error": str(exc)}, status_code=400)
    except SearchUnavailableError as exc:
        return JSONResponse({"error": str(exc)}, status_code=503)
    except StateError as exc:
        return JSONResponse({"error": str(exc)}, status_code=409)
    except EmbedspaceError as exc:
        return JSONResponse({"error": str(exc)}, status_code=500)

    results = outcome.results if body.limit is None else outcome.results[: body.limit]
    return {
        "query": outcome.query,
        "query_3d": list(outcome.query_3d),
        "preview": vector_preview(outcome.embedding.vector(0)),
        "results": [
            {"index": hit.index, "score": hit.score, "text": hit.text} for hit in results
        ],
    }


def create_app(session_factory: SessionFactory | None = None) -> FastAPI:
    """Build the API; the worker starts with the app and stops with it."""
    factory = session_factory or _default_session

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        async with factory() as orchestrator:
            app.state.orchestrator = orchestrator
            indexing = asyncio.create_task(_index_in_background(orchestrator))
            try:
                yield
            finally:
                indexing.cancel()
                await asyncio.gather(indexing, return_exceptions=True)

    app = FastAPI(
        title="embedspace",
        description="Semantic search over a corpus projected into 3-D",
        lifespan=lifespan,
    )
    app.include_router(router)
    return app


app = create_app()


def run_server(host: str = "127.0.0.1", port: int = 8000):
    """Run the FastAPI server."""
    import uvicorn

    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    run_server()
