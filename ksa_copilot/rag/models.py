"""
KB Data Models
==============

Dataclasses shared by the chunker, vector stores, retriever and citations.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class Chunk:
    """A bounded span of regulation text, before embedding."""
    text: str
    token_count: int
    section: Optional[str] = None
    article: Optional[str] = None


@dataclass
class ChunkStats:
    """Summary of one chunked document."""
    total_chunks: int = 0
    avg_tokens: int = 0
    min_tokens: int = 0
    max_tokens: int = 0
    chunks_with_articles: int = 0


@dataclass
class KBSource:
    """Metadata envelope for one regulation document."""
    pack_id: str
    version: str
    title: str
    reg_code: str
    url: Optional[str] = None
    storage_url: Optional[str] = None
    published_on: Optional[date] = None
    retrieved_on: Optional[date] = None
    files: List[str] = field(default_factory=list)

    # Assigned by the store on upsert
    source_id: Optional[str] = None

    @classmethod
    def from_manifest(cls, pack_id: str, version: str, entry: Dict[str, Any]) -> "KBSource":
        """Build a source from one `sources.yml` entry."""
        missing = [key for key in ("title", "reg_code") if not entry.get(key)]
        if missing:
            raise ValueError(f"Source entry missing required fields: {', '.join(missing)}")
        return cls(
            pack_id=pack_id,
            version=version,
            title=str(entry["title"]),
            reg_code=str(entry["reg_code"]),
            url=entry.get("url"),
            storage_url=entry.get("storage_url"),
            published_on=_as_date(entry.get("published_on")),
            retrieved_on=_as_date(entry.get("retrieved_on")),
            files=list(entry.get("files") or []),
        )


@dataclass
class EmbeddedChunk:
    """A chunk paired with its embedding, staged for persistence."""
    chunk: Chunk
    embedding: List[float]


@dataclass
class SearchResult:
    """A ranked chunk returned by retrieval. Never persisted."""
    id: str
    text: str
    reg_code: str
    similarity: float
    url: Optional[str] = None
    article: Optional[str] = None
    section: Optional[str] = None
    published_on: Optional[date] = None

    @property
    def preview(self) -> str:
        return self.text[:200] + ("..." if len(self.text) > 200 else "")


@dataclass(frozen=True)
class CitationRef:
    """Reference from a checklist item to a KB chunk."""
    chunk_id: str
    reg_code: str
    version: str
    confidence: float
    url: str = ""
    article: Optional[str] = None
    published_on: Optional[date] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "chunk_id": self.chunk_id,
            "reg_code": self.reg_code,
            "article": self.article,
            "version": self.version,
            "url": self.url,
            "published_on": self.published_on.isoformat() if self.published_on else None,
            "confidence": round(self.confidence, 4),
        }


@dataclass
class KBStats:
    """Aggregate statistics for one (pack, version)."""
    pack_id: str
    version: str
    source_count: int
    chunk_count: int
    avg_chunk_tokens: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pack_id": self.pack_id,
            "version": self.version,
            "source_count": self.source_count,
            "chunk_count": self.chunk_count,
            "avg_chunk_tokens": self.avg_chunk_tokens,
        }


@dataclass
class ChunkDetail:
    """Full chunk text with its source metadata."""
    id: str
    text: str
    pack_id: str
    version: str
    reg_code: str
    title: str
    section: Optional[str] = None
    article: Optional[str] = None
    url: Optional[str] = None
    published_on: Optional[date] = None


def _as_date(value: Any) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value))
