"""
KB Ingestion Pipeline
=====================

Pipeline for ingesting regulation packs into the knowledge base.

Layout:
    regulations/<pack_id>/<version>/sources.yml
    regulations/<pack_id>/<version>/**/*.md

Flow (per source):
1. Read its markdown files (listed in `files`, or every *.md of the pack version)
2. Chunk
3. Embed every chunk (fixed delay between calls)
4. Swap into the store in one transaction: upsert source, delete old chunks, insert new

Embedding happens before the swap, so a failing source keeps its previous
chunks and the remaining sources still ingest.
"""

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

import yaml

from .chunker import RegulationChunker, chunk_stats
from .embedder import EmbeddingProvider
from .errors import KBError
from .models import EmbeddedChunk, KBSource
from .store import VectorStore

logger = logging.getLogger(__name__)

MANIFEST_NAME = "sources.yml"


@dataclass
class SourceReport:
    """Outcome for one source."""
    reg_code: str
    chunks: int = 0
    files: List[str] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class IngestionReport:
    """Outcome for one pack version."""
    pack_id: str
    version: str
    sources: List[SourceReport] = field(default_factory=list)

    @property
    def total_chunks(self) -> int:
        return sum(s.chunks for s in self.sources)

    @property
    def failures(self) -> List[SourceReport]:
        return [s for s in self.sources if not s.ok]

    @property
    def ok(self) -> bool:
        return not self.failures


def load_manifest(pack_dir: Path, pack_id: str, version: str) -> Tuple[str, str, List[KBSource]]:
    """
    Parse `sources.yml` of a pack version.

    Returns:
        (pack_id, version, sources); manifest values override the directory names

    Raises:
        FileNotFoundError: No manifest in the directory
        ValueError: Malformed manifest
    """
    manifest_path = pack_dir / MANIFEST_NAME
    if not manifest_path.exists():
        raise FileNotFoundError(f"{MANIFEST_NAME} not found at {manifest_path}")

    with open(manifest_path, "r", encoding="utf-8") as f:
        parsed = yaml.safe_load(f) or {}

    if not isinstance(parsed, dict):
        raise ValueError(f"{manifest_path}: expected a mapping at top level")

    manifest_pack = str(parsed.get("pack_id") or pack_id)
    manifest_version = str(parsed.get("version") or version)
    entries = parsed.get("sources") or []
    if not isinstance(entries, list):
        raise ValueError(f"{manifest_path}: 'sources' must be a list")

    sources = [KBSource.from_manifest(manifest_pack, manifest_version, entry) for entry in entries]
    return manifest_pack, manifest_version, sources


def find_markdown_files(directory: Path) -> List[Path]:
    """All *.md files under a directory, recursively, in stable order."""
    if not directory.exists():
        return []
    return sorted(p for p in directory.rglob("*.md") if p.is_file())


class KBIngestion:
    """
    Ingestion pipeline for the KB.

    Handles:
    - Manifest parsing
    - Chunking
    - Throttled embedding generation
    - Atomic per-source replacement in the vector store
    """

    def __init__(
        self,
        embedder: EmbeddingProvider,
        store: VectorStore,
        chunker: Optional[RegulationChunker] = None,
        regulations_dir: str = "regulations",
        embed_delay: float = 0.05,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.embedder = embedder
        self.store = store
        self.chunker = chunker or RegulationChunker()
        self.regulations_dir = Path(regulations_dir)
        self.embed_delay = embed_delay
        self._sleep = sleep

        self._sources_ingested = 0
        self._chunks_created = 0

    def ingest_pack(self, pack_id: str, version: str) -> IngestionReport:
        """
        Ingest every source of one pack version.

        Raises:
            FileNotFoundError / ValueError: Missing or malformed manifest
        """
        pack_dir = self.regulations_dir / pack_id / version
        manifest_pack, manifest_version, sources = load_manifest(pack_dir, pack_id, version)
        report = IngestionReport(pack_id=manifest_pack, version=manifest_version)

        logger.info(
            f"Ingesting pack {manifest_pack} {manifest_version}: {len(sources)} source(s)",
            extra={"pack_id": manifest_pack, "version": manifest_version},
        )

        all_markdown = find_markdown_files(pack_dir)
        if not all_markdown:
            logger.warning(f"No markdown files found in {pack_dir}")

        for source in sources:
            files = [pack_dir / f for f in source.files] if source.files else all_markdown
            report.sources.append(self._ingest_source(source, files))

        logger.info(
            f"Ingested {report.total_chunks} chunks for {manifest_pack} {manifest_version} "
            f"({len(report.failures)} failed source(s))",
            extra={"pack_id": manifest_pack, "version": manifest_version},
        )
        return report

    def ingest_all(self) -> List[IngestionReport]:
        """Ingest every <pack>/<version> directory holding a manifest."""
        reports = []
        if not self.regulations_dir.exists():
            logger.warning(f"Regulations directory not found: {self.regulations_dir}")
            return reports

        for pack_dir in sorted(p for p in self.regulations_dir.iterdir() if p.is_dir()):
            for version_dir in sorted(p for p in pack_dir.iterdir() if p.is_dir()):
                if not (version_dir / MANIFEST_NAME).exists():
                    continue
                try:
                    reports.append(self.ingest_pack(pack_dir.name, version_dir.name))
                except (OSError, ValueError) as e:
                    logger.error(f"Failed to ingest {pack_dir.name}/{version_dir.name}: {e}")
        return reports

    def ingest_text(self, source: KBSource, markdown: str) -> int:
        """
        Ingest one in-memory markdown document as a source.

        Returns:
            Number of chunks stored

        Raises:
            KBError: Embedding or store failure (previous chunks are kept)
        """
        staged = self._embed_chunks(source, markdown)
        self.store.replace_source(source, staged)
        self._sources_ingested += 1
        self._chunks_created += len(staged)
        return len(staged)

    def purge(self, pack_id: str, version: str) -> int:
        """Remove a pack version from the store."""
        return self.store.delete_pack_version(pack_id, version)

    def _ingest_source(self, source: KBSource, files: List[Path]) -> SourceReport:
        report = SourceReport(reg_code=source.reg_code)
        extra = {"pack_id": source.pack_id, "version": source.version, "reg_code": source.reg_code}

        try:
            parts = []
            for path in files:
                if not path.exists():
                    logger.warning(f"File not found: {path}", extra=extra)
                    continue
                parts.append(path.read_text(encoding="utf-8"))
                report.files.append(str(path))

            if not parts:
                raise ValueError(f"No markdown files for source {source.reg_code}")

            markdown = "\n\n".join(parts)
            report.chunks = self.ingest_text(source, markdown)
        except (KBError, OSError, ValueError) as e:
            report.error = str(e)
            report.chunks = 0
            logger.error(f"Failed to ingest source {source.reg_code}: {e}", extra=extra)
            return report

        logger.info(f"Ingested {source.reg_code}: {report.chunks} chunks", extra=extra)
        return report

    def _embed_chunks(self, source: KBSource, markdown: str) -> List[EmbeddedChunk]:
        chunks = self.chunker.chunk(markdown)
        stats = chunk_stats(chunks)
        logger.debug(f"{source.reg_code}: {stats.total_chunks} chunks (avg {stats.avg_tokens} tokens)")

        staged = []
        for i, chunk in enumerate(chunks):
            if i > 0 and self.embed_delay > 0:
                self._sleep(self.embed_delay)
            staged.append(EmbeddedChunk(chunk=chunk, embedding=self.embedder.embed(chunk.text)))
        return staged

    @property
    def stats(self) -> Dict[str, int]:
        """Get ingestion statistics."""
        return {
            "sources_ingested": self._sources_ingested,
            "chunks_created": self._chunks_created,
        }
