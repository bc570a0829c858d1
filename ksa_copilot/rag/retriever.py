"""
KB Retriever
============

Search over the regulation knowledge base:
1. Semantic search: embed query, k-NN by cosine distance within (pack, version)
2. Hybrid search: semantic results re-ranked with a keyword-match share
3. Exact-article lookup: strict article equality, similarity fixed at 1.0

Returns ranked SearchResult with similarity in [0, 1].
"""

import logging
import time
from dataclasses import replace
from typing import List, Optional, Sequence

from ..config import Settings, get_settings
from .embedder import EmbeddingProvider, OpenAIEmbedder
from .errors import KBError, RetrievalError, RetrievalTimeoutError
from .models import ChunkDetail, KBStats, SearchResult
from .pg_store import PgVectorStore
from .store import VectorStore

logger = logging.getLogger(__name__)


def keyword_score(text: str, keywords: Sequence[str]) -> float:
    """
    Fraction of keywords found in text (case-insensitive substring match).

    Blank keywords are ignored and do not count toward the denominator.
    """
    terms = [k.lower() for k in keywords if k and k.strip()]
    if not terms:
        return 0.0
    lower_text = text.lower()
    found = sum(1 for term in terms if term in lower_text)
    return max(0.0, min(1.0, found / len(terms)))


class KBRetriever:
    """
    Retrieves relevant chunks from the KB.

    Embedding provider and vector store are injected; provider and store
    failures surface as RetrievalError subclasses.
    """

    def __init__(
        self,
        embedder: EmbeddingProvider,
        store: VectorStore,
        keyword_weight: float = 0.3,
    ):
        self.embedder = embedder
        self.store = store
        self.keyword_weight = keyword_weight

    def search(
        self,
        pack_id: str,
        version: str,
        query: str,
        k: int = 10,
        min_similarity: float = 0.0,
        timeout: Optional[float] = None,
    ) -> List[SearchResult]:
        """
        Semantic search within one pack version.

        Args:
            pack_id: Pack identifier (nitaqat, zatca_phase2, ...)
            version: Regulation version (v2025.10)
            query: Search text
            k: Max results
            min_similarity: Similarity floor in [0, 1]
            timeout: Overall budget in seconds

        Returns:
            List of SearchResult ordered by descending similarity, len <= k
        """
        if k <= 0 or not query or not query.strip():
            return []

        started = time.monotonic()
        try:
            embedding = self.embedder.embed(query, timeout=timeout)
            remaining = None
            if timeout is not None:
                remaining = timeout - (time.monotonic() - started)
                if remaining <= 0:
                    raise RetrievalTimeoutError(timeout)
            results = self.store.query(
                embedding,
                pack_id=pack_id,
                version=version,
                k=k,
                min_similarity=min_similarity,
                timeout=remaining,
            )
        except RetrievalError:
            raise
        except KBError as e:
            raise RetrievalError(f"Search failed for {pack_id}/{version}: {e.message}", e.error_code) from e

        duration = round(time.monotonic() - started, 3)
        logger.info(
            f"KB search returned {len(results)} results for query: {query[:50]}...",
            extra={"pack_id": pack_id, "version": version, "duration": duration, "result_count": len(results)},
        )
        return results[:k]

    def hybrid_search(
        self,
        pack_id: str,
        version: str,
        query: str,
        keywords: Sequence[str],
        k: int = 10,
        min_similarity: float = 0.0,
        keyword_weight: Optional[float] = None,
        timeout: Optional[float] = None,
    ) -> List[SearchResult]:
        """
        Semantic search re-ranked by keyword matches.

        score = (1 - w) * similarity + w * keyword_score, re-sorted descending.
        Without keywords the semantic ranking is returned unchanged.
        """
        results = self.search(pack_id, version, query, k=k, min_similarity=min_similarity, timeout=timeout)
        return self.rerank_with_keywords(results, keywords, keyword_weight)

    def rerank_with_keywords(
        self,
        results: List[SearchResult],
        keywords: Sequence[str],
        keyword_weight: Optional[float] = None,
    ) -> List[SearchResult]:
        """Blend keyword coverage into the similarity of existing results."""
        if not keywords or not any(k and k.strip() for k in keywords):
            return results

        weight = self.keyword_weight if keyword_weight is None else keyword_weight
        rescored = []
        for result in results:
            combined = (1 - weight) * result.similarity + weight * keyword_score(result.text, keywords)
            rescored.append(replace(result, similarity=max(0.0, min(1.0, combined))))

        rescored.sort(key=lambda r: r.similarity, reverse=True)
        return rescored

    def search_by_article(self, pack_id: str, version: str, article: str) -> List[SearchResult]:
        """Exact clause lookup; similarity is always 1.0."""
        try:
            return self.store.find_by_article(pack_id, version, article)
        except KBError as e:
            raise RetrievalError(f"Article lookup failed: {e.message}") from e

    def stats(self, pack_id: Optional[str] = None, version: Optional[str] = None) -> List[KBStats]:
        return self.store.stats(pack_id, version)

    def get_chunk(self, chunk_id: str) -> Optional[ChunkDetail]:
        return self.store.get_chunk(chunk_id)


def build_retriever(settings: Optional[Settings] = None) -> Optional[KBRetriever]:
    """
    Wire a retriever from configuration.

    Returns None when DATABASE_URL is not set (KB disabled). A set database
    without an embedding key is a configuration error.
    """
    settings = settings or get_settings()
    if not settings.database.is_configured:
        logger.warning("DATABASE_URL not configured, KB retrieval disabled")
        return None

    embedder = OpenAIEmbedder(settings.embedding)
    store = PgVectorStore(settings.database, dimensions=settings.embedding.dimensions)
    return KBRetriever(embedder, store, keyword_weight=settings.retrieval.keyword_weight)
