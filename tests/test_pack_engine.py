"""
Tests for the pack engine and registry.
"""

import pytest
from unittest.mock import MagicMock, patch

from ksa_copilot.config import RetrievalConfig
from ksa_copilot.packs import (
    PackEngine,
    PackInputError,
    PackStatus,
    UnknownPackError,
    available_pack_ids,
    get_pack,
    is_valid_pack_id,
)
from ksa_copilot.packs.nitaqat import NitaqatPack
from ksa_copilot.rag.errors import RetrievalError
from ksa_copilot.rag.models import SearchResult

NITAQAT_INPUTS = {"sector": "retail", "headcount": 100, "currentSaudiPct": 25}


def hit(chunk_id, similarity):
    return SearchResult(
        id=chunk_id,
        text="Article text",
        reg_code="HRSD-NITAQAT",
        similarity=similarity,
        url="https://hrsd.gov.sa/nitaqat",
        article="4",
    )


class TestRegistry:

    def test_registered_packs(self):
        assert available_pack_ids() == ["nitaqat", "zatca_phase2"]
        assert is_valid_pack_id("zatca_phase2")
        assert not is_valid_pack_id("pdpl")

    def test_unknown_pack(self):
        with pytest.raises(UnknownPackError):
            get_pack("pdpl")


class TestPackEngine:
    """End to end pack runs."""

    def setup_method(self):
        """Set up test fixtures."""
        self.retrieval = RetrievalConfig(citation_k=2, citation_min_similarity=0.65, citation_workers=2)

    def test_run_without_kb(self):
        engine = PackEngine(retrieval=self.retrieval)

        result = engine.run("nitaqat", "", NITAQAT_INPUTS)

        assert result.status is PackStatus.COMPLETED
        assert result.score == 16
        assert all(item.citations == [] for item in result.checklist)
        assert result.summary.startswith("Nitaqat Analysis: YELLOW band")

    def test_citations_attached(self):
        retriever = MagicMock()
        retriever.search.return_value = [hit("c1", 0.88), hit("c2", 0.7), hit("c3", 0.5)]
        engine = PackEngine(retriever, self.retrieval)

        result = engine.run("nitaqat", "", NITAQAT_INPUTS)

        assert result.score == 16
        for item in result.checklist:
            assert [c.chunk_id for c in item.citations] == ["c1", "c2"]
            assert item.citations[0].version == "v2025.10"
        assert retriever.search.call_count == len(result.checklist)

    def test_citation_lookups_carry_timeout(self):
        retrieval = RetrievalConfig(citation_k=2, citation_min_similarity=0.65, citation_timeout=3.0)
        retriever = MagicMock()
        retriever.search.return_value = []
        engine = PackEngine(retriever, retrieval)

        engine.run("nitaqat", "", NITAQAT_INPUTS)

        assert retriever.search.call_count > 0
        for call in retriever.search.call_args_list:
            assert call.kwargs["timeout"] == 3.0

    def test_kb_failure_does_not_fail_run(self):
        retriever = MagicMock()
        retriever.search.side_effect = RetrievalError("store unreachable")
        engine = PackEngine(retriever, self.retrieval)

        result = engine.run("nitaqat", "", NITAQAT_INPUTS)

        assert result.status is PackStatus.COMPLETED
        assert result.score == 16
        assert all(item.citations == [] for item in result.checklist)

    def test_zatca_summary_uses_final_score(self):
        engine = PackEngine(retrieval=self.retrieval)

        result = engine.run("zatca_phase2", "", {"erp": "SAP", "format": "PDF"})

        assert result.score == 20
        assert result.summary == "ZATCA Phase 2 Readiness: 20/100. SAP requires 6 items to be addressed."

    def test_unknown_pack(self):
        with pytest.raises(UnknownPackError):
            PackEngine().run("pdpl", "", {})

    def test_invalid_inputs(self):
        with pytest.raises(PackInputError) as exc_info:
            PackEngine().run("nitaqat", "", {"headcount": 0})

        assert exc_info.value.pack_id == "nitaqat"
        assert exc_info.value.errors[0]["loc"] == ["headcount"]

    def test_rule_defect_reports_failed(self):
        engine = PackEngine(retrieval=self.retrieval)

        with patch.object(NitaqatPack, "analyze", side_effect=RuntimeError("rule bug")):
            result = engine.run("nitaqat", "", NITAQAT_INPUTS)

        assert result.status is PackStatus.FAILED
        assert result.score == 0
        assert result.errors == ["rule bug"]
        assert result.checklist == []

    def test_partial_result(self):
        result = PackEngine().run("nitaqat", "", {"sector": "retail", "headcount": 100})

        assert result.status is PackStatus.PARTIAL
        assert result.score == 0

    def test_run_dict(self):
        data = PackEngine().run_dict("nitaqat", "", NITAQAT_INPUTS)

        assert data["status"] == "completed"
        assert data["pack_version"] == "v2025.10"
        assert data["checklist"][0]["key"] == "quota_threshold"
