"""
KSA Copilot FastAPI Application
===============================

REST API for the KSA compliance copilot.

Endpoints:
    GET  /api/health                    - Health check
    GET  /api/packs                     - Registered policy packs
    POST /api/packs/{pack_id}/analyze   - Run a pack
    GET  /api/kb/search                 - Knowledge base search / stats
    GET  /api/citations/{chunk_id}      - Full text of a cited chunk

Usage:
    uvicorn ksa_copilot.api.main:app --reload --port 8000
"""

from contextlib import asynccontextmanager
import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ..config import Settings, get_env, get_settings
from ..logging_config import setup_logging
from ..packs import PackEngine
from ..rag.retriever import KBRetriever, build_retriever
from .kb_routes import router as kb_router
from .models import HealthResponse
from .pack_routes import router as pack_router

logger = logging.getLogger(__name__)

DEFAULT_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:5173",
    "http://127.0.0.1:3000",
    "http://127.0.0.1:5173",
]


def cors_origins() -> list:
    origins = list(DEFAULT_ORIGINS)
    extra = get_env("CORS_ORIGINS", "")
    if extra:
        origins.extend([o.strip() for o in extra.split(",") if o.strip()])
    return origins


def create_app(
    settings: Optional[Settings] = None,
    retriever: Optional[KBRetriever] = None,
    connect_kb: bool = True,
) -> FastAPI:
    """
    Build the application.

    Args:
        settings: Settings to use (defaults to the global instance)
        retriever: Pre-built retriever; when None and connect_kb is set,
            one is built from settings at startup
        connect_kb: Build the pgvector-backed retriever during startup
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager."""
        setup_logging(settings.logging)
        logger.info(f"Starting {settings.app_name} API ({settings.environment})...")

        if connect_kb and app.state.retriever is None:
            app.state.retriever = build_retriever(settings)
            app.state.engine = PackEngine(app.state.retriever, settings.retrieval)

        logger.info(f"Knowledge base {'enabled' if app.state.retriever else 'disabled'}")

        yield

        if app.state.retriever is not None:
            app.state.retriever.store.close()
        logger.info(f"Shutting down {settings.app_name} API...")

    app = FastAPI(
        title="KSA Compliance Copilot API",
        description="Citation-backed compliance checks for Saudi regulations",
        version=settings.app_version,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.retriever = retriever
    app.state.engine = PackEngine(retriever, settings.retrieval)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(pack_router)
    app.include_router(kb_router)

    # ============================================================================
    # HEALTH ENDPOINT
    # ============================================================================

    @app.get("/api/health", response_model=HealthResponse)
    def health_check():
        """
        Health check endpoint.

        Reports KB store connectivity and embedding key presence. The API is
        still usable without the KB (packs run without citations).
        """
        kb: Optional[KBRetriever] = app.state.retriever
        embeddings = "configured" if settings.embedding.is_configured else "not_configured"

        if kb is None:
            return HealthResponse(
                status="degraded",
                version=settings.app_version,
                knowledgeBase="disabled",
                embeddings=embeddings,
            )

        store_health = kb.store.health()
        connected = store_health.get("status") == "connected"
        return HealthResponse(
            status="healthy" if connected else "degraded",
            version=settings.app_version,
            knowledgeBase=store_health.get("status", "unknown"),
            embeddings=embeddings,
            store=store_health,
        )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("ksa_copilot.api.main:app", host="0.0.0.0", port=8000, reload=True)
