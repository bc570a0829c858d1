"""
Citation Attacher
=================

Attaches regulation citations to checklist items.

For each item: query = (title + " " + description)[:500], top-2 matches
with similarity >= 0.65, each mapped to a CitationRef with
confidence = similarity.

Best effort: a missing KB, a provider/store failure or a timeout yields
an item with no citations. It never fails the checklist.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import replace
from typing import List, Optional, Sequence

from ..scoring.models import ChecklistItem
from .models import CitationRef, SearchResult
from .retriever import KBRetriever

logger = logging.getLogger(__name__)

DEFAULT_CITATION_K = 2
DEFAULT_MIN_SIMILARITY = 0.65
DEFAULT_QUERY_MAX_CHARS = 500


class CitationAttacher:
    """
    Converts retrieval results into checklist citations.

    Args:
        retriever: KB retriever, or None when the KB is not configured
        pack_id: Pack whose regulations are searched
        version: Regulation version
        k: Max citations per item
        min_similarity: Confidence floor
        max_query_chars: Query truncation length
        timeout: Per-item retrieval budget in seconds
    """

    def __init__(
        self,
        retriever: Optional[KBRetriever],
        pack_id: str,
        version: str,
        k: int = DEFAULT_CITATION_K,
        min_similarity: float = DEFAULT_MIN_SIMILARITY,
        max_query_chars: int = DEFAULT_QUERY_MAX_CHARS,
        timeout: Optional[float] = None,
    ):
        self.retriever = retriever
        self.pack_id = pack_id
        self.version = version
        self.k = k
        self.min_similarity = min_similarity
        self.max_query_chars = max_query_chars
        self.timeout = timeout

    @property
    def enabled(self) -> bool:
        return self.retriever is not None

    def build_query(self, item: ChecklistItem) -> str:
        return f"{item.title} {item.description}"[:self.max_query_chars]

    def fetch(self, item: ChecklistItem) -> List[CitationRef]:
        """Citations for one item. Never raises."""
        if self.retriever is None:
            return []

        try:
            results = self.retriever.search(
                self.pack_id,
                self.version,
                self.build_query(item),
                k=self.k,
                min_similarity=self.min_similarity,
                timeout=self.timeout,
            )
        except Exception as e:
            logger.warning(
                f"Citation retrieval failed for {item.key}: {e}",
                extra={"pack_id": self.pack_id, "version": self.version, "item_key": item.key},
            )
            return []

        citations = [
            self._to_citation(result)
            for result in results
            if result.similarity >= self.min_similarity
        ][:self.k]

        if citations:
            logger.debug(f"Found {len(citations)} citation(s) for {item.key}")
        return citations

    def attach(self, item: ChecklistItem) -> ChecklistItem:
        """Copy of the item with its citations replaced."""
        return replace(item, citations=self.fetch(item))

    def attach_all(
        self,
        items: Sequence[ChecklistItem],
        workers: int = 4,
        timeout: Optional[float] = None,
    ) -> List[ChecklistItem]:
        """
        Attach citations to every item with bounded concurrency.

        Item order is preserved. An item whose lookup exceeds `timeout`
        seconds keeps an empty citation list.
        """
        if not items:
            return []
        if self.retriever is None:
            return [replace(item, citations=[]) for item in items]

        executor = ThreadPoolExecutor(max_workers=max(1, workers), thread_name_prefix="citations")
        try:
            futures = [executor.submit(self.fetch, item) for item in items]
            attached = []
            for item, future in zip(items, futures):
                try:
                    citations = future.result(timeout=timeout)
                except FutureTimeoutError:
                    logger.warning(
                        f"Citation retrieval timed out for {item.key}",
                        extra={"pack_id": self.pack_id, "item_key": item.key},
                    )
                    future.cancel()
                    citations = []
                attached.append(replace(item, citations=citations))
            return attached
        finally:
            # Do not block on lookups that already timed out
            executor.shutdown(wait=False)

    def _to_citation(self, result: SearchResult) -> CitationRef:
        return CitationRef(
            chunk_id=result.id,
            reg_code=result.reg_code,
            version=self.version,
            confidence=result.similarity,
            url=result.url or "",
            article=result.article,
            published_on=result.published_on,
        )
