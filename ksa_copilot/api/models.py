"""
KSA Copilot API Models
======================

Pydantic models for API request/response serialization.
Field names follow the frontend's camelCase types.
"""

from datetime import date
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from ..packs.models import PackResult
from ..rag.models import CitationRef, KBStats, SearchResult
from ..scoring.models import ChecklistItem


class CitationModel(BaseModel):
    """Citation attached to a checklist item."""
    chunkId: str
    regCode: str
    article: Optional[str] = None
    version: str
    url: str = ""
    publishedOn: Optional[date] = None
    confidence: float

    @classmethod
    def from_ref(cls, ref: CitationRef) -> "CitationModel":
        return cls(
            chunkId=ref.chunk_id,
            regCode=ref.reg_code,
            article=ref.article,
            version=ref.version,
            url=ref.url,
            publishedOn=ref.published_on,
            confidence=round(ref.confidence, 4),
        )


class ChecklistItemModel(BaseModel):
    """Single compliance finding."""
    key: str
    title: str
    description: str
    status: str
    criticality: int
    recommendation: Optional[str] = None
    citations: List[CitationModel] = Field(default_factory=list)

    @classmethod
    def from_item(cls, item: ChecklistItem) -> "ChecklistItemModel":
        return cls(
            key=item.key,
            title=item.title,
            description=item.description,
            status=item.status.value,
            criticality=item.criticality,
            recommendation=item.recommendation,
            citations=[CitationModel.from_ref(c) for c in item.citations],
        )


class PackResultModel(BaseModel):
    """Outcome of one pack run."""
    packId: str
    status: str
    score: int
    packVersion: str
    summary: Optional[str] = None
    errors: List[str] = Field(default_factory=list)
    checklist: List[ChecklistItemModel] = Field(default_factory=list)

    @classmethod
    def from_result(cls, pack_id: str, result: PackResult) -> "PackResultModel":
        return cls(
            packId=pack_id,
            status=result.status.value,
            score=result.score,
            packVersion=result.pack_version,
            summary=result.summary,
            errors=list(result.errors),
            checklist=[ChecklistItemModel.from_item(item) for item in result.checklist],
        )


class AnalyzeRequest(BaseModel):
    """Pack analysis request: extracted document text plus pack inputs."""
    text: str = Field("", description="Extracted document text")
    inputs: Dict[str, Any] = Field(default_factory=dict, description="Pack-specific inputs")


class PackInfoModel(BaseModel):
    id: str
    title: str
    version: str
    description: str
    inputsSchema: Dict[str, Any]


class PackListResponse(BaseModel):
    packs: List[PackInfoModel]


class SearchResultModel(BaseModel):
    """KB search hit."""
    id: str
    regCode: str
    article: Optional[str] = None
    section: Optional[str] = None
    similarity: float
    url: Optional[str] = None
    preview: str
    fullText: str

    @classmethod
    def from_result(cls, result: SearchResult) -> "SearchResultModel":
        return cls(
            id=result.id,
            regCode=result.reg_code,
            article=result.article,
            section=result.section,
            similarity=round(result.similarity, 3),
            url=result.url,
            preview=result.preview,
            fullText=result.text,
        )


class KBStatsModel(BaseModel):
    packId: str
    version: str
    sourceCount: int
    chunkCount: int
    avgChunkTokens: int

    @classmethod
    def from_stats(cls, stats: KBStats) -> "KBStatsModel":
        return cls(
            packId=stats.pack_id,
            version=stats.version,
            sourceCount=stats.source_count,
            chunkCount=stats.chunk_count,
            avgChunkTokens=stats.avg_chunk_tokens,
        )


class HealthResponse(BaseModel):
    status: str
    version: str
    knowledgeBase: str
    embeddings: str
    store: Optional[Dict[str, Any]] = None
