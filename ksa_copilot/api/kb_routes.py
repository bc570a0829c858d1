"""
KSA Copilot KB API Routes
=========================

Knowledge base search and citation endpoints.

    GET /api/kb/search?q=saudization&pack=nitaqat&version=v2025.10&k=5
    GET /api/kb/search                      (no q: statistics)
    GET /api/citations/{chunk_id}
"""

import logging
import uuid
from typing import Any, Dict, Optional

from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse

from ..rag.errors import KBConfigurationError, KBError, RetrievalTimeoutError
from ..rag.retriever import KBRetriever
from .models import KBStatsModel, SearchResultModel

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Knowledge Base"])

SEARCH_USAGE = {
    "q": "Search query text",
    "pack": "Pack ID (nitaqat, zatca_phase2, etc.)",
    "version": "Version (v2025.10)",
    "k": "Number of results (default 10)",
    "min_similarity": "Minimum similarity score 0-1 (default 0)",
}


def error_response(status_code: int, message: str, code: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": {"message": message, "code": code}},
    )


def get_retriever(request: Request) -> Optional[KBRetriever]:
    return getattr(request.app.state, "retriever", None)


@router.get("/api/kb/search")
def search_kb(
    request: Request,
    q: Optional[str] = Query(None, description="Search query"),
    pack: Optional[str] = Query(None, description="Pack id"),
    version: Optional[str] = Query(None, description="Pack version"),
    k: int = Query(10, ge=1, le=50, description="Number of results"),
    min_similarity: float = Query(0.0, ge=0.0, le=1.0, description="Similarity floor"),
):
    """
    Search the knowledge base.

    Without `q`, returns aggregate statistics (optionally filtered by pack/version).
    """
    retriever = get_retriever(request)
    if retriever is None:
        return error_response(503, "Knowledge base not configured", "KB_UNAVAILABLE")

    try:
        if not q:
            stats = retriever.stats(pack or None, version or None)
            return {
                "success": True,
                "data": {
                    "stats": [KBStatsModel.from_stats(s).model_dump() for s in stats],
                    "usage": SEARCH_USAGE,
                },
            }

        if not pack or not version:
            return error_response(400, "Missing required parameters: pack, version", "MISSING_PARAMS")

        logger.info(f"KB Search: \"{q[:80]}\" in {pack}/{version} (k={k})")
        results = retriever.search(pack, version, q, k=k, min_similarity=min_similarity)

    except KBConfigurationError as e:
        logger.error(f"KB misconfigured: {e}")
        return error_response(503, str(e), "KB_UNAVAILABLE")
    except RetrievalTimeoutError as e:
        logger.warning(f"KB search timed out: {e}")
        return error_response(504, str(e), "SEARCH_TIMEOUT")
    except KBError as e:
        logger.error(f"KB search error: {e}")
        return error_response(500, str(e), "SEARCH_ERROR")

    return {
        "success": True,
        "data": {
            "query": q,
            "packId": pack,
            "version": version,
            "resultCount": len(results),
            "results": [SearchResultModel.from_result(r).model_dump() for r in results],
        },
    }


@router.get("/api/citations/{chunk_id}")
def get_citation(request: Request, chunk_id: str):
    """Full text and source metadata for one cited chunk."""
    try:
        uuid.UUID(chunk_id)
    except ValueError:
        return error_response(400, "Invalid chunk ID format", "INVALID_ID")

    retriever = get_retriever(request)
    if retriever is None:
        return error_response(503, "Knowledge base not configured", "KB_UNAVAILABLE")

    try:
        chunk = retriever.get_chunk(chunk_id)
    except KBError as e:
        logger.error(f"Error fetching citation {chunk_id}: {e}")
        return error_response(500, "Failed to fetch citation", "CITATION_ERROR")

    if chunk is None:
        return error_response(404, "Citation not found", "NOT_FOUND")

    citation: Dict[str, Any] = {
        "id": chunk.id,
        "text": chunk.text,
        "section": chunk.section,
        "article": chunk.article,
        "regCode": chunk.reg_code,
        "url": chunk.url,
        "sourceTitle": chunk.title,
        "packId": chunk.pack_id,
        "version": chunk.version,
        "publishedOn": chunk.published_on.isoformat() if chunk.published_on else None,
    }
    return {"success": True, "citation": citation}
