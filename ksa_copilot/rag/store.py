"""
KB Vector Store
===============

Storage interface for regulation chunks and their embeddings, plus an
in-process implementation used for tests, local runs and small corpora.

The PostgreSQL + pgvector implementation lives in pg_store.
"""

import logging
import math
import threading
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .models import ChunkDetail, EmbeddedChunk, KBSource, KBStats, SearchResult

logger = logging.getLogger(__name__)


def clamp_similarity(value: float) -> float:
    """Similarity is 1 - cosine distance, bounded to [0, 1]."""
    return max(0.0, min(1.0, float(value)))


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity of two vectors (0.0 when either is all zeros)."""
    if len(a) != len(b):
        raise ValueError(f"Vector dimension mismatch: {len(a)} != {len(b)}")
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (norm_a * norm_b)


class VectorStore(ABC):
    """
    Persists chunks with embeddings and answers k-NN queries.

    Implementations own their isolation: replace_source must be atomic per
    source, and queries only ever see a complete set of chunks.
    """

    @abstractmethod
    def replace_source(self, source: KBSource, chunks: List[EmbeddedChunk]) -> str:
        """Upsert the source by (pack_id, version, reg_code) and swap in its chunks. Returns source_id."""

    @abstractmethod
    def query(
        self,
        embedding: Sequence[float],
        pack_id: str,
        version: str,
        k: int = 10,
        min_similarity: float = 0.0,
        timeout: Optional[float] = None,
    ) -> List[SearchResult]:
        """Nearest chunks by cosine distance, filtered by pack/version and similarity floor."""

    @abstractmethod
    def find_by_article(self, pack_id: str, version: str, article: str) -> List[SearchResult]:
        """All chunks with this exact article, in insertion order."""

    @abstractmethod
    def get_chunk(self, chunk_id: str) -> Optional[ChunkDetail]:
        """One chunk with its source metadata, or None."""

    @abstractmethod
    def stats(self, pack_id: Optional[str] = None, version: Optional[str] = None) -> List[KBStats]:
        """Source/chunk counts grouped by (pack_id, version)."""

    @abstractmethod
    def delete_pack_version(self, pack_id: str, version: str) -> int:
        """Remove every source (and chunk) of a pack version. Returns sources removed."""

    def health(self) -> Dict[str, Any]:
        return {"status": "connected", "backend": type(self).__name__}

    def close(self) -> None:
        pass


@dataclass
class _Row:
    id: str
    source_id: str
    pack_id: str
    version: str
    section: Optional[str]
    article: Optional[str]
    text: str
    embedding: List[float]
    token_count: int
    seq: int


class InMemoryVectorStore(VectorStore):
    """
    Vector store kept in process memory.

    Exact (brute force) cosine search. A lock guards every read and write so
    replacing a source is atomic with respect to queries.
    """

    def __init__(self, dimensions: Optional[int] = None):
        self.dimensions = dimensions
        self._lock = threading.Lock()
        self._sources: Dict[Tuple[str, str, str], KBSource] = {}
        self._rows: Dict[str, List[_Row]] = {}  # source_id -> chunks
        self._seq = 0

    def replace_source(self, source: KBSource, chunks: List[EmbeddedChunk]) -> str:
        for staged in chunks:
            self._check_dimensions(staged.embedding)

        key = (source.pack_id, source.version, source.reg_code)
        with self._lock:
            existing = self._sources.get(key)
            source_id = existing.source_id if existing else str(uuid.uuid4())

            rows = []
            for staged in chunks:
                self._seq += 1
                rows.append(_Row(
                    id=str(uuid.uuid4()),
                    source_id=source_id,
                    pack_id=source.pack_id,
                    version=source.version,
                    section=staged.chunk.section,
                    article=staged.chunk.article,
                    text=staged.chunk.text,
                    embedding=list(staged.embedding),
                    token_count=staged.chunk.token_count,
                    seq=self._seq,
                ))

            self._sources[key] = replace(source, source_id=source_id)
            self._rows[source_id] = rows

        logger.debug(f"Stored {len(chunks)} chunks for {source.reg_code} ({source.pack_id}/{source.version})")
        return source_id

    def query(
        self,
        embedding: Sequence[float],
        pack_id: str,
        version: str,
        k: int = 10,
        min_similarity: float = 0.0,
        timeout: Optional[float] = None,
    ) -> List[SearchResult]:
        self._check_dimensions(embedding)

        with self._lock:
            scored = []
            for source, row in self._iter_rows(pack_id, version):
                similarity = clamp_similarity(cosine_similarity(embedding, row.embedding))
                if similarity >= min_similarity:
                    scored.append((similarity, row.seq, source, row))

        scored.sort(key=lambda item: (-item[0], item[1]))
        return [self._to_result(row, source, similarity) for similarity, _, source, row in scored[:k]]

    def find_by_article(self, pack_id: str, version: str, article: str) -> List[SearchResult]:
        with self._lock:
            matches = [
                (row.seq, source, row)
                for source, row in self._iter_rows(pack_id, version)
                if row.article == article
            ]
        matches.sort(key=lambda item: item[0])
        return [self._to_result(row, source, 1.0) for _, source, row in matches]

    def get_chunk(self, chunk_id: str) -> Optional[ChunkDetail]:
        with self._lock:
            for source in self._sources.values():
                for row in self._rows.get(source.source_id, []):
                    if row.id == chunk_id:
                        return ChunkDetail(
                            id=row.id,
                            text=row.text,
                            pack_id=row.pack_id,
                            version=row.version,
                            reg_code=source.reg_code,
                            title=source.title,
                            section=row.section,
                            article=row.article,
                            url=source.url,
                            published_on=source.published_on,
                        )
        return None

    def stats(self, pack_id: Optional[str] = None, version: Optional[str] = None) -> List[KBStats]:
        groups: Dict[Tuple[str, str], List[_Row]] = {}
        with self._lock:
            for rows in self._rows.values():
                for row in rows:
                    if pack_id is not None and row.pack_id != pack_id:
                        continue
                    if version is not None and row.version != version:
                        continue
                    groups.setdefault((row.pack_id, row.version), []).append(row)

        result = []
        for (group_pack, group_version), rows in sorted(groups.items()):
            avg = sum(r.token_count for r in rows) / len(rows)
            result.append(KBStats(
                pack_id=group_pack,
                version=group_version,
                source_count=len({r.source_id for r in rows}),
                chunk_count=len(rows),
                avg_chunk_tokens=int(avg + 0.5),
            ))
        return result

    def delete_pack_version(self, pack_id: str, version: str) -> int:
        with self._lock:
            keys = [key for key in self._sources if key[0] == pack_id and key[1] == version]
            for key in keys:
                source = self._sources.pop(key)
                self._rows.pop(source.source_id, None)
        return len(keys)

    def health(self) -> Dict[str, Any]:
        with self._lock:
            chunk_count = sum(len(rows) for rows in self._rows.values())
        return {"status": "connected", "backend": "memory", "chunks": chunk_count}

    def _iter_rows(self, pack_id: str, version: str):
        for key, source in self._sources.items():
            if key[0] != pack_id or key[1] != version:
                continue
            for row in self._rows.get(source.source_id, []):
                yield source, row

    def _check_dimensions(self, embedding: Sequence[float]) -> None:
        if self.dimensions is not None and len(embedding) != self.dimensions:
            raise ValueError(f"Expected {self.dimensions}-dim embedding, got {len(embedding)}")

    @staticmethod
    def _to_result(row: _Row, source: KBSource, similarity: float) -> SearchResult:
        return SearchResult(
            id=row.id,
            text=row.text,
            reg_code=source.reg_code,
            similarity=similarity,
            url=source.url,
            article=row.article,
            section=row.section,
            published_on=source.published_on,
        )
