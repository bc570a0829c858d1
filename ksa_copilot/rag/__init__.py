"""
KSA Copilot Knowledge Base
==========================

Retrieval over regulation documents for citation-backed compliance checks.

Architecture:
- Markdown regulations chunked per heading (700 tokens, 80 overlap)
- OpenAI text-embedding-3-small embeddings (1536 dims)
- pgvector storage with HNSW cosine index (in-memory store for tests/local)
- Semantic, hybrid (keyword-boosted) and exact-article retrieval

Citation attachment lives in `ksa_copilot.rag.citations`, ingestion in
`ksa_copilot.rag.ingestion`.
"""

from .chunker import RegulationChunker, chunk_markdown, estimate_tokens, extract_article_number
from .embedder import EmbeddingProvider, OpenAIEmbedder
from .errors import (
    EmbeddingError,
    KBConfigurationError,
    KBError,
    RetrievalError,
    RetrievalTimeoutError,
    VectorStoreError,
)
from .models import Chunk, CitationRef, KBSource, KBStats, SearchResult
from .retriever import KBRetriever, build_retriever
from .store import InMemoryVectorStore, VectorStore

__all__ = [
    "RegulationChunker",
    "chunk_markdown",
    "estimate_tokens",
    "extract_article_number",
    "EmbeddingProvider",
    "OpenAIEmbedder",
    "KBError",
    "KBConfigurationError",
    "EmbeddingError",
    "VectorStoreError",
    "RetrievalError",
    "RetrievalTimeoutError",
    "Chunk",
    "CitationRef",
    "KBSource",
    "KBStats",
    "SearchResult",
    "KBRetriever",
    "build_retriever",
    "InMemoryVectorStore",
    "VectorStore",
]
