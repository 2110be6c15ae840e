# DocHarbor – Auto-discovering documentation search for AI coding agents
# Copyright (c) 2026 4rce.com Digital Technologies GmbH.
# Use of this software is governed by the Business Source License 1.1. See LICENSE.md.

"""
HTTP API (FastAPI) – corpus browsing, search, discovery and refresh.
Served on the same event loop as the MCP server.

All state (manager, health) is injected via create_web_app().
"""
from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel, Field

from . import __version__
from .errors import (
    AuthRequired,
    CorpusNotFound,
    DocHarborError,
    InvalidSourceUrl,
    InvalidStructure,
    NotFound,
    SourceUnreachable,
)
from .health import HealthTracker
from .manager import CorpusManager


class SearchRequest(BaseModel):
    query: str = Field(min_length=1)
    corpus_id: Optional[str] = None
    limit: int = Field(default=10, ge=1, le=100)
    auto_detect: bool = True


class DiscoverRequest(BaseModel):
    url: str
    path: Optional[str] = None


def _status_for(error: DocHarborError) -> int:
    if isinstance(error, (CorpusNotFound, NotFound)):
        return 404
    if isinstance(error, AuthRequired):
        return 401
    if isinstance(error, SourceUnreachable):
        return 502
    if isinstance(error, (InvalidStructure, InvalidSourceUrl)):
        return 422
    return 500


def create_web_app(
    manager: CorpusManager,
    health: HealthTracker | None = None,
) -> FastAPI:
    """Factory: returns a FastAPI app that shares state with the MCP server."""

    app = FastAPI(
        title="DocHarbor",
        description="Auto-discovering documentation search for AI coding agents",
        version=__version__,
    )

    @app.exception_handler(DocHarborError)
    async def docharbor_error(_request: Request, exc: DocHarborError):
        return JSONResponse(status_code=_status_for(exc), content={"detail": str(exc)})

    # ── Health ───────────────────────────────────────

    @app.get("/health")
    async def health_check():
        status = health.status if health else {}
        return {
            "status": "ok" if (not health or health.is_healthy) else "degraded",
            "version": __version__,
            "initialized": manager.initialized,
            "corpora": len(manager),
            "documents": manager.cache.stats()["documents"],
            "cache_loaded": status.get("cache_loaded"),
            "last_index_at": status.get("last_index_at"),
            "last_index_ok": status.get("last_index_ok"),
            "last_refresh_at": status.get("last_refresh_at"),
            "last_refresh_ok": status.get("last_refresh_ok"),
        }

    # ── Corpora ──────────────────────────────────────

    @app.get("/api/corpora")
    async def list_corpora(q: Optional[str] = None):
        if q:
            return {"corpora": manager.search_corpora(q)}
        return {"corpora": manager.get_hierarchy()}

    @app.get("/api/corpora/{corpus_id}")
    async def get_corpus(corpus_id: str):
        return manager.get_hierarchy(corpus_id)

    @app.get("/api/corpora/{corpus_id}/structure")
    async def get_structure(corpus_id: str):
        corpus = manager.require_corpus(corpus_id)
        if corpus.structure is None:
            raise HTTPException(
                status_code=409,
                detail=corpus.validation_error or f"Corpus '{corpus_id}' is not validated",
            )
        return {
            "id": corpus.id,
            "metadata": corpus.metadata.to_dict(),
            "structure": corpus.structure.to_dict(),
        }

    @app.post("/api/corpora/{corpus_id}/refresh")
    async def refresh_corpus(corpus_id: str):
        return await manager.refresh(corpus_id)

    @app.post("/api/refresh")
    async def refresh_all():
        results = await manager.refresh_all()
        return {
            "refreshed": sum(1 for r in results if r["success"]),
            "total": len(results),
            "results": results,
        }

    # ── Discovery / Search / Documents ───────────────

    @app.post("/api/discover")
    async def discover(req: DiscoverRequest):
        return await manager.discover(req.url, req.path)

    @app.post("/api/search")
    async def search(req: SearchRequest):
        response = manager.search(
            req.query, corpus_id=req.corpus_id, limit=req.limit, auto_detect=req.auto_detect,
        )
        if health:
            health.record_search("api_search", bool(response.results))
        return response.to_dict()

    @app.get("/api/documents/{corpus_id}/{path:path}", response_class=PlainTextResponse)
    async def get_document(corpus_id: str, path: str):
        return await manager.load_document(corpus_id, path)

    # ── Stats ────────────────────────────────────────

    @app.get("/api/stats")
    async def stats():
        data = manager.index_stats()
        if health:
            data["health"] = health.status
        return data

    return app
