"""
Tests for citation attachment.
"""

import threading
from datetime import date

import pytest
from unittest.mock import MagicMock

from ksa_copilot.rag.citations import CitationAttacher
from ksa_copilot.rag.errors import RetrievalError, RetrievalTimeoutError
from ksa_copilot.rag.models import CitationRef, SearchResult
from ksa_copilot.scoring.models import ChecklistItem, ChecklistStatus

from .conftest import make_source, make_staged


def item(key="quota_threshold", title="Minimum Saudization Quota", description="Company below target."):
    return ChecklistItem(
        key=key,
        title=title,
        description=description,
        status=ChecklistStatus.FAIL,
        criticality=5,
    )


def hit(chunk_id, similarity, article="3"):
    return SearchResult(
        id=chunk_id,
        text=f"text of {chunk_id}",
        reg_code="HRSD-NITAQAT",
        similarity=similarity,
        url="https://hrsd.gov.sa/nitaqat",
        article=article,
        published_on=date(2025, 10, 1),
    )


class TestCitationAttacherFetch:
    """Per-item retrieval."""

    def setup_method(self):
        """Set up test fixtures."""
        self.retriever = MagicMock()
        self.attacher = CitationAttacher(self.retriever, pack_id="nitaqat", version="v2025.10")

    def test_maps_results_to_citations(self):
        self.retriever.search.return_value = [hit("c1", 0.91), hit("c2", 0.72)]

        citations = self.attacher.fetch(item())

        assert citations == [
            CitationRef(
                chunk_id="c1",
                reg_code="HRSD-NITAQAT",
                version="v2025.10",
                confidence=0.91,
                url="https://hrsd.gov.sa/nitaqat",
                article="3",
                published_on=date(2025, 10, 1),
            ),
            CitationRef(
                chunk_id="c2",
                reg_code="HRSD-NITAQAT",
                version="v2025.10",
                confidence=0.72,
                url="https://hrsd.gov.sa/nitaqat",
                article="3",
                published_on=date(2025, 10, 1),
            ),
        ]

    def test_query_parameters(self):
        self.retriever.search.return_value = []

        self.attacher.fetch(item(title="Quota", description="Below target"))

        self.retriever.search.assert_called_once_with(
            "nitaqat",
            "v2025.10",
            "Quota Below target",
            k=2,
            min_similarity=0.65,
            timeout=None,
        )

    def test_query_truncated(self):
        self.retriever.search.return_value = []

        self.attacher.fetch(item(description="x" * 1000))

        query = self.retriever.search.call_args.args[2]
        assert len(query) == 500
        assert query.startswith("Minimum Saudization Quota x")

    def test_floor_and_cap(self):
        self.retriever.search.return_value = [
            hit("c1", 0.9), hit("c2", 0.8), hit("c3", 0.7), hit("c4", 0.6),
        ]

        citations = self.attacher.fetch(item())

        assert [c.chunk_id for c in citations] == ["c1", "c2"]
        assert all(c.confidence >= 0.65 for c in citations)

    def test_below_floor_dropped(self):
        self.retriever.search.return_value = [hit("c1", 0.64)]
        assert self.attacher.fetch(item()) == []

    def test_missing_url_becomes_empty_string(self):
        result = hit("c1", 0.9)
        result.url = None
        self.retriever.search.return_value = [result]

        assert self.attacher.fetch(item())[0].url == ""

    @pytest.mark.parametrize("error", [
        RetrievalError("store down"),
        RetrievalTimeoutError(1.0),
        RuntimeError("unexpected"),
    ])
    def test_failures_yield_no_citations(self, error):
        self.retriever.search.side_effect = error
        assert self.attacher.fetch(item()) == []

    def test_disabled_without_retriever(self):
        attacher = CitationAttacher(None, pack_id="nitaqat", version="v2025.10")

        assert not attacher.enabled
        assert attacher.fetch(item()) == []


class TestCitationAttacherAttachAll:
    """Bulk attachment with bounded concurrency."""

    def setup_method(self):
        """Set up test fixtures."""
        self.retriever = MagicMock()
        self.attacher = CitationAttacher(self.retriever, pack_id="nitaqat", version="v2025.10")

    def test_preserves_order(self):
        def search(pack_id, version, query, **kwargs):
            return [hit(f"chunk-{query.split()[0]}", 0.9)]

        self.retriever.search.side_effect = search
        items = [item(key=f"k{i}", title=f"item{i}") for i in range(6)]

        attached = self.attacher.attach_all(items, workers=3)

        assert [i.key for i in attached] == [f"k{i}" for i in range(6)]
        assert [i.citations[0].chunk_id for i in attached] == [f"chunk-item{i}" for i in range(6)]

    def test_replaces_existing_citations(self):
        self.retriever.search.return_value = []
        stale = CitationRef(chunk_id="old", reg_code="X", version="v1", confidence=0.9)
        original = ChecklistItem(
            key="k", title="t", description="d", status="pass", criticality=1, citations=[stale],
        )

        attached = self.attacher.attach_all([original])

        assert attached[0].citations == []
        assert original.citations == [stale]

    def test_slow_item_times_out_alone(self):
        release = threading.Event()

        def search(pack_id, version, query, **kwargs):
            if query.startswith("slow"):
                release.wait(5)
            return [hit(f"chunk-{query.split()[0]}", 0.9)]

        self.retriever.search.side_effect = search
        items = [item(key="a", title="fast"), item(key="b", title="slow"), item(key="c", title="quick")]

        try:
            attached = self.attacher.attach_all(items, workers=3, timeout=0.2)
        finally:
            release.set()

        assert [len(i.citations) for i in attached] == [1, 0, 1]

    def test_no_retriever_clears_citations(self):
        attacher = CitationAttacher(None, pack_id="nitaqat", version="v2025.10")
        attached = attacher.attach_all([item(), item(key="other")])

        assert [i.citations for i in attached] == [[], []]

    def test_empty_items(self):
        assert self.attacher.attach_all([]) == []


class TestCitationAttacherWithKB:
    """End to end with the in-memory store."""

    def test_exact_match_is_cited(self, retriever, fake_embedder, memory_store):
        finding = item()
        query_text = f"{finding.title} {finding.description}"
        memory_store.replace_source(make_source(), [
            make_staged(fake_embedder, query_text, article="5"),
            make_staged(fake_embedder, "Unrelated archiving rule for tax invoices"),
        ])

        attacher = CitationAttacher(retriever, pack_id="nitaqat", version="v2025.10")
        citations = attacher.fetch(finding)

        assert len(citations) == 1
        assert citations[0].article == "5"
        assert citations[0].confidence == pytest.approx(1.0)
        assert citations[0].reg_code == "HRSD-NITAQAT"
