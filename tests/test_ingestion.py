"""
Tests for the KB ingestion pipeline.
"""

from datetime import date

import pytest
from unittest.mock import MagicMock

from ksa_copilot.rag.errors import EmbeddingError
from ksa_copilot.rag.ingestion import KBIngestion, find_markdown_files, load_manifest
from ksa_copilot.rag.models import KBSource

from .conftest import FakeEmbedder, make_source

MANIFEST = """\
pack_id: nitaqat
version: v2025.10
sources:
  - title: Nitaqat Program Guide
    reg_code: HRSD-NITAQAT
    url: https://hrsd.gov.sa/nitaqat
    published_on: 2025-10-01
    files:
      - nitaqat_guide.md
  - title: Labor Law
    reg_code: MOL-LABOR
    files:
      - labor_law.md
"""

NITAQAT_GUIDE = """\
# Article 1 Scope
The program applies to all private sector establishments.

# Article 2 Bands
Establishments are classified into platinum, green, yellow and red bands.
"""

LABOR_LAW = """\
# Article 26 Saudization
Employers shall employ Saudi nationals at the required percentage.
"""


@pytest.fixture
def regulations_dir(tmp_path):
    pack_dir = tmp_path / "nitaqat" / "v2025.10"
    pack_dir.mkdir(parents=True)
    (pack_dir / "sources.yml").write_text(MANIFEST, encoding="utf-8")
    (pack_dir / "nitaqat_guide.md").write_text(NITAQAT_GUIDE, encoding="utf-8")
    (pack_dir / "labor_law.md").write_text(LABOR_LAW, encoding="utf-8")
    return tmp_path


class TestLoadManifest:
    """sources.yml parsing."""

    def test_parses_sources(self, regulations_dir):
        pack_id, version, sources = load_manifest(regulations_dir / "nitaqat" / "v2025.10", "x", "y")

        assert (pack_id, version) == ("nitaqat", "v2025.10")
        assert [s.reg_code for s in sources] == ["HRSD-NITAQAT", "MOL-LABOR"]
        assert sources[0].published_on == date(2025, 10, 1)
        assert sources[0].files == ["nitaqat_guide.md"]
        assert sources[1].url is None

    def test_directory_names_used_as_fallback(self, tmp_path):
        (tmp_path / "sources.yml").write_text("sources:\n  - title: T\n    reg_code: R\n", encoding="utf-8")

        pack_id, version, sources = load_manifest(tmp_path, "zatca_phase2", "v2025.10")

        assert (pack_id, version) == ("zatca_phase2", "v2025.10")
        assert sources[0].pack_id == "zatca_phase2"

    def test_missing_manifest(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_manifest(tmp_path, "nitaqat", "v2025.10")

    def test_source_missing_reg_code(self, tmp_path):
        (tmp_path / "sources.yml").write_text("sources:\n  - title: Only a title\n", encoding="utf-8")

        with pytest.raises(ValueError):
            load_manifest(tmp_path, "nitaqat", "v2025.10")

    def test_malformed_manifest(self, tmp_path):
        (tmp_path / "sources.yml").write_text("- just\n- a list\n", encoding="utf-8")

        with pytest.raises(ValueError):
            load_manifest(tmp_path, "nitaqat", "v2025.10")


class TestKBSourceFromManifest:

    def test_string_dates_parsed(self):
        source = KBSource.from_manifest("nitaqat", "v2025.10", {
            "title": "Guide",
            "reg_code": "HRSD",
            "published_on": "2024-01-15",
        })
        assert source.published_on == date(2024, 1, 15)


class TestFindMarkdownFiles:

    def test_recursive_sorted(self, tmp_path):
        (tmp_path / "b").mkdir()
        (tmp_path / "b" / "z.md").write_text("# Z\nz", encoding="utf-8")
        (tmp_path / "a.md").write_text("# A\na", encoding="utf-8")
        (tmp_path / "notes.txt").write_text("ignored", encoding="utf-8")

        assert [p.name for p in find_markdown_files(tmp_path)] == ["a.md", "z.md"]

    def test_missing_directory(self, tmp_path):
        assert find_markdown_files(tmp_path / "missing") == []


class TestKBIngestion:
    """End to end into the in-memory store."""

    @pytest.fixture(autouse=True)
    def pipeline(self, regulations_dir, memory_store):
        self.sleeps = []
        self.embedder = FakeEmbedder()
        self.store = memory_store
        self.ingestion = KBIngestion(
            self.embedder,
            self.store,
            regulations_dir=str(regulations_dir),
            embed_delay=0.05,
            sleep=self.sleeps.append,
        )

    def test_ingest_pack(self):
        report = self.ingestion.ingest_pack("nitaqat", "v2025.10")

        assert report.ok
        assert [(s.reg_code, s.chunks) for s in report.sources] == [("HRSD-NITAQAT", 2), ("MOL-LABOR", 1)]
        assert report.total_chunks == 3

        stats = self.store.stats("nitaqat", "v2025.10")[0]
        assert (stats.source_count, stats.chunk_count) == (2, 3)
        assert self.ingestion.stats == {"sources_ingested": 2, "chunks_created": 3}

    def test_articles_searchable_after_ingest(self):
        self.ingestion.ingest_pack("nitaqat", "v2025.10")

        results = self.store.find_by_article("nitaqat", "v2025.10", "26")
        assert len(results) == 1
        assert results[0].reg_code == "MOL-LABOR"

    def test_throttles_between_embeddings(self):
        self.ingestion.ingest_pack("nitaqat", "v2025.10")

        # one pause between the two chunks of the first source
        assert self.sleeps == [0.05]

    def test_reingest_replaces_chunks(self):
        self.ingestion.ingest_pack("nitaqat", "v2025.10")
        self.ingestion.ingest_pack("nitaqat", "v2025.10")

        stats = self.store.stats("nitaqat", "v2025.10")[0]
        assert (stats.source_count, stats.chunk_count) == (2, 3)

    def test_failed_source_keeps_previous_chunks(self):
        self.ingestion.ingest_pack("nitaqat", "v2025.10")

        failing = MagicMock()
        failing.embed.side_effect = EmbeddingError("provider down")
        self.ingestion.embedder = failing

        report = self.ingestion.ingest_pack("nitaqat", "v2025.10")

        assert not report.ok
        assert len(report.failures) == 2
        assert "provider down" in report.failures[0].error
        assert self.store.stats("nitaqat", "v2025.10")[0].chunk_count == 3

    def test_missing_file_fails_only_that_source(self, regulations_dir):
        (regulations_dir / "nitaqat" / "v2025.10" / "labor_law.md").unlink()

        report = self.ingestion.ingest_pack("nitaqat", "v2025.10")

        assert [s.ok for s in report.sources] == [True, False]
        assert report.total_chunks == 2

    def test_ingest_all(self, regulations_dir):
        zatca_dir = regulations_dir / "zatca_phase2" / "v2025.10"
        zatca_dir.mkdir(parents=True)
        (zatca_dir / "sources.yml").write_text(
            "sources:\n  - title: E-Invoicing Regulation\n    reg_code: ZATCA-EINV\n", encoding="utf-8"
        )
        (zatca_dir / "einvoicing.md").write_text("# Article 6\nInvoices carry a QR code.\n", encoding="utf-8")
        (regulations_dir / "drafts").mkdir()

        reports = self.ingestion.ingest_all()

        assert [(r.pack_id, r.total_chunks) for r in reports] == [("nitaqat", 3), ("zatca_phase2", 1)]

    def test_ingest_text(self):
        count = self.ingestion.ingest_text(make_source(reg_code="CUSTOM"), "# Article 9\nCustom rule text.\n")

        assert count == 1
        assert self.store.find_by_article("nitaqat", "v2025.10", "9")[0].reg_code == "CUSTOM"

    def test_purge(self):
        self.ingestion.ingest_pack("nitaqat", "v2025.10")

        assert self.ingestion.purge("nitaqat", "v2025.10") == 2
        assert self.store.stats() == []
