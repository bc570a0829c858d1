"""
KB CLI
======

Command-line interface for knowledge base management.

Usage:
    python -m ksa_copilot.rag.cli init                                      # Create schema
    python -m ksa_copilot.rag.cli ingest --pack nitaqat --version v2025.10  # Ingest one pack
    python -m ksa_copilot.rag.cli ingest --all                              # Ingest every pack
    python -m ksa_copilot.rag.cli search "saudization quota" --pack nitaqat --version v2025.10
    python -m ksa_copilot.rag.cli stats                                     # Show statistics
    python -m ksa_copilot.rag.cli purge --pack nitaqat --version v2025.10   # Remove a pack version
"""

import argparse
import logging
import sys
from typing import List, Optional

from ..config import Settings, get_settings
from ..logging_config import setup_logging
from .chunker import ChunkConfig, RegulationChunker
from .embedder import OpenAIEmbedder
from .errors import KBError
from .ingestion import KBIngestion
from .pg_store import PgVectorStore
from .retriever import KBRetriever

logger = logging.getLogger(__name__)


def _store(settings: Settings) -> PgVectorStore:
    return PgVectorStore(settings.database, dimensions=settings.embedding.dimensions)


def _chunker(settings: Settings) -> RegulationChunker:
    return RegulationChunker(ChunkConfig(
        target_tokens=settings.chunking.target_tokens,
        overlap_tokens=settings.chunking.overlap_tokens,
    ))


def init_schema(settings: Settings) -> bool:
    """Initialize KB database schema."""
    store = _store(settings)
    try:
        store.ensure_schema()
        return True
    finally:
        store.close()


def ingest(settings: Settings, pack_id: Optional[str], version: Optional[str], ingest_all: bool) -> bool:
    """Ingest one pack version or every pack under the regulations directory."""
    store = _store(settings)
    try:
        ingestion = KBIngestion(
            embedder=OpenAIEmbedder(settings.embedding),
            store=store,
            chunker=_chunker(settings),
            regulations_dir=settings.ingestion.regulations_dir,
            embed_delay=settings.ingestion.embed_delay,
        )

        if ingest_all:
            reports = ingestion.ingest_all()
        else:
            reports = [ingestion.ingest_pack(pack_id, version)]

        print(f"\n{'='*60}")
        print("INGESTION REPORT")
        print('='*60)
        for report in reports:
            print(f"\n{report.pack_id} {report.version}: {report.total_chunks} chunks")
            for source in report.sources:
                marker = "ok" if source.ok else f"FAILED: {source.error}"
                print(f"  {source.reg_code}: {source.chunks} chunks ({marker})")

        return all(report.ok for report in reports)
    finally:
        store.close()


def search(
    settings: Settings,
    query: str,
    pack_id: str,
    version: str,
    k: int,
    min_similarity: float,
    keywords: List[str],
    article: Optional[str],
) -> bool:
    """Run a search and print ranked results."""
    store = _store(settings)
    try:
        retriever = KBRetriever(
            OpenAIEmbedder(settings.embedding),
            store,
            keyword_weight=settings.retrieval.keyword_weight,
        )
        if article:
            results = retriever.search_by_article(pack_id, version, article)
        elif keywords:
            results = retriever.hybrid_search(
                pack_id, version, query, keywords, k=k, min_similarity=min_similarity
            )
        else:
            results = retriever.search(pack_id, version, query, k=k, min_similarity=min_similarity)

        print(f"\n{'='*60}")
        print(f"Query: {article and f'article {article}' or query}")
        print(f"Pack: {pack_id} {version}")
        print(f"Results: {len(results)}")
        print('='*60)

        for i, r in enumerate(results, 1):
            print(f"\n[{i}] Similarity: {r.similarity:.3f}")
            print(f"    Source: {r.reg_code} | Article: {r.article or '-'} | Section: {r.section or '-'}")
            print(f"    Content: {r.preview}")

        return True
    finally:
        store.close()


def show_stats(settings: Settings, pack_id: Optional[str], version: Optional[str]) -> bool:
    """Show KB statistics."""
    store = _store(settings)
    try:
        stats = store.stats(pack_id, version)
    finally:
        store.close()

    print(f"\n{'='*60}")
    print("KB STATISTICS")
    print('='*60)
    if not stats:
        print("\nNo chunks ingested.")
    for row in stats:
        print(
            f"\n{row.pack_id} {row.version}: {row.source_count} sources, "
            f"{row.chunk_count} chunks (avg {row.avg_chunk_tokens} tokens)"
        )
    return True


def purge(settings: Settings, pack_id: str, version: str) -> bool:
    store = _store(settings)
    try:
        deleted = store.delete_pack_version(pack_id, version)
    finally:
        store.close()
    print(f"Removed {deleted} source(s) from {pack_id} {version}")
    return True


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="ksa-kb", description="KSA compliance knowledge base")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init", help="Initialize database schema")

    ingest_parser = sub.add_parser("ingest", help="Ingest regulation packs")
    ingest_parser.add_argument("--pack", help="Pack id (nitaqat, zatca_phase2, ...)")
    ingest_parser.add_argument("--version", help="Pack version (v2025.10)")
    ingest_parser.add_argument("--all", action="store_true", dest="ingest_all", help="Ingest every pack")

    search_parser = sub.add_parser("search", help="Search the knowledge base")
    search_parser.add_argument("query", nargs="?", default="", help="Search query")
    search_parser.add_argument("--pack", required=True)
    search_parser.add_argument("--version", required=True)
    search_parser.add_argument("-k", type=int, default=None, help="Number of results")
    search_parser.add_argument("--min-similarity", type=float, default=0.0)
    search_parser.add_argument("--keyword", action="append", default=[], help="Keyword for hybrid ranking")
    search_parser.add_argument("--article", help="Exact article lookup instead of semantic search")

    stats_parser = sub.add_parser("stats", help="Show statistics")
    stats_parser.add_argument("--pack")
    stats_parser.add_argument("--version")

    purge_parser = sub.add_parser("purge", help="Remove a pack version")
    purge_parser.add_argument("--pack", required=True)
    purge_parser.add_argument("--version", required=True)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "ingest" and not args.ingest_all and not (args.pack and args.version):
        parser.error("ingest requires --pack and --version, or --all")
    if args.command == "search" and not args.query and not args.article:
        parser.error("search requires a query or --article")

    settings = get_settings()
    setup_logging(settings.logging)

    if not settings.database.is_configured:
        logger.error("DATABASE_URL not set")
        return 1

    try:
        if args.command == "init":
            ok = init_schema(settings)
        elif args.command == "ingest":
            ok = ingest(settings, args.pack, args.version, args.ingest_all)
        elif args.command == "search":
            ok = search(
                settings,
                args.query,
                args.pack,
                args.version,
                args.k or settings.retrieval.default_k,
                args.min_similarity,
                args.keyword,
                args.article,
            )
        elif args.command == "stats":
            ok = show_stats(settings, args.pack, args.version)
        else:
            ok = purge(settings, args.pack, args.version)
    except (KBError, OSError, ValueError) as e:
        logger.error(f"{args.command} failed: {e}")
        return 1

    return 0 if ok else 1


if __name__ == "__main__":
    sys.exit(main())
