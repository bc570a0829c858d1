"""
Pack Engine
===========

Runs a pack end to end:
1. Validate inputs against the pack's pydantic model
2. Evaluate rules (a rule exception -> status=failed, score=0)
3. Attach citations (best effort, never fails the run)
4. Score the checklist with the pack's scoring policy
5. Summarize
"""

import logging
import time
from dataclasses import replace
from typing import Any, Dict, Optional

from pydantic import BaseModel, ValidationError

from ..config import RetrievalConfig
from ..rag.citations import CitationAttacher
from ..rag.retriever import KBRetriever
from .base import PolicyPack
from .models import PackResult, PackStatus
from .registry import get_pack

logger = logging.getLogger(__name__)


class PackInputError(ValueError):
    """Pack inputs failed validation."""

    def __init__(self, pack_id: str, errors: Any):
        self.pack_id = pack_id
        self.errors = errors
        super().__init__(f"Invalid inputs for pack {pack_id}: {errors}")


class PackEngine:
    """
    Executes policy packs with citation enrichment and scoring.

    Args:
        retriever: KB retriever, or None to run without citations
        retrieval: Citation settings (k, floor, workers, timeout)
    """

    def __init__(self, retriever: Optional[KBRetriever] = None, retrieval: Optional[RetrievalConfig] = None):
        self.retriever = retriever
        self.retrieval = retrieval or RetrievalConfig()

    def validate_inputs(self, pack: PolicyPack, inputs: Any) -> BaseModel:
        if isinstance(inputs, pack.inputs_model):
            return inputs
        try:
            return pack.inputs_model.model_validate(inputs or {})
        except ValidationError as e:
            raise PackInputError(
                pack.id,
                [{"loc": [str(part) for part in err["loc"]], "msg": err["msg"]} for err in e.errors()],
            )

    def run(self, pack_id: str, doc_text: str, inputs: Any) -> PackResult:
        """
        Run one pack against a document.

        Raises:
            UnknownPackError: pack_id not registered
            PackInputError: inputs do not match the pack's schema
        """
        pack = get_pack(pack_id)
        validated = self.validate_inputs(pack, inputs)
        extra = {"pack_id": pack.id, "version": pack.version}
        started = time.monotonic()

        try:
            result = pack.analyze(doc_text or "", validated)
        except Exception as e:
            logger.exception(f"Pack {pack.id} analysis failed: {e}", extra=extra)
            return PackResult.failed(pack.version, str(e) or type(e).__name__)

        if result.status is PackStatus.FAILED:
            return result

        checklist = self._attacher(pack).attach_all(
            result.checklist,
            workers=self.retrieval.citation_workers,
            timeout=self.retrieval.citation_timeout,
        )
        result = replace(result, checklist=checklist)
        result = replace(result, score=pack.score(result))
        result = replace(result, summary=pack.summarize(result, validated))

        cited = sum(1 for item in result.checklist if item.citations)
        logger.info(
            f"Pack {pack.id} {result.status.value}: score {result.score}, "
            f"{len(result.checklist)} items, {cited} with citations",
            extra={**extra, "duration": round(time.monotonic() - started, 3)},
        )
        return result

    def run_dict(self, pack_id: str, doc_text: str, inputs: Dict[str, Any]) -> Dict[str, Any]:
        return self.run(pack_id, doc_text, inputs).to_dict()

    def _attacher(self, pack: PolicyPack) -> CitationAttacher:
        return CitationAttacher(
            self.retriever,
            pack_id=pack.id,
            version=pack.version,
            k=self.retrieval.citation_k,
            min_similarity=self.retrieval.citation_min_similarity,
            max_query_chars=self.retrieval.citation_query_max_chars,
            timeout=self.retrieval.citation_timeout,
        )
