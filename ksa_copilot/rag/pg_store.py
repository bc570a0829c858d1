"""
KB PostgreSQL Store
===================

pgvector-backed vector store.

- Lazy ThreadedConnectionPool (psycopg2)
- Cosine distance operator `<=>` served by an HNSW index
- Per-source replace in one transaction (upsert source, delete chunks, insert chunks)
- Query timeout via SET LOCAL statement_timeout
"""

import logging
import threading
from contextlib import contextmanager
from typing import Any, Dict, List, Optional, Sequence

import psycopg2
from psycopg2 import errors as pg_errors
from psycopg2 import pool as pg_pool
from psycopg2.extras import RealDictCursor, execute_values

from ..config import DatabaseConfig
from .errors import KBConfigurationError, RetrievalTimeoutError, VectorStoreError
from .models import ChunkDetail, EmbeddedChunk, KBSource, KBStats, SearchResult
from .store import VectorStore, clamp_similarity

logger = logging.getLogger(__name__)


SCHEMA_SQL = """
CREATE EXTENSION IF NOT EXISTS vector;
CREATE EXTENSION IF NOT EXISTS pgcrypto;

CREATE TABLE IF NOT EXISTS kb_sources (
    source_id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    pack_id VARCHAR(50) NOT NULL,
    version VARCHAR(20) NOT NULL,
    title TEXT NOT NULL,
    url TEXT,
    storage_url TEXT,
    published_on DATE,
    retrieved_on TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    reg_code VARCHAR(50) NOT NULL,
    checksum VARCHAR(64),
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    UNIQUE (pack_id, version, reg_code)
);

CREATE INDEX IF NOT EXISTS idx_kb_sources_pack_version ON kb_sources (pack_id, version);

CREATE TABLE IF NOT EXISTS kb_chunks (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    source_id UUID NOT NULL REFERENCES kb_sources (source_id) ON DELETE CASCADE,
    pack_id VARCHAR(50) NOT NULL,
    version VARCHAR(20) NOT NULL,
    section TEXT,
    article TEXT,
    text TEXT NOT NULL,
    embedding vector({dimensions}),
    token_count INTEGER,
    chunk_index INTEGER NOT NULL DEFAULT 0,
    -- clock_timestamp: rows inserted in one transaction keep their order
    created_at TIMESTAMP DEFAULT clock_timestamp()
);

CREATE INDEX IF NOT EXISTS idx_kb_chunks_pack_version ON kb_chunks (pack_id, version);
CREATE INDEX IF NOT EXISTS idx_kb_chunks_source ON kb_chunks (source_id);
CREATE INDEX IF NOT EXISTS idx_kb_chunks_article ON kb_chunks (article) WHERE article IS NOT NULL;
CREATE INDEX IF NOT EXISTS idx_kb_chunks_embedding ON kb_chunks
    USING hnsw (embedding vector_cosine_ops)
    WITH (m = 16, ef_construction = 64);
"""


def to_vector_literal(embedding: Sequence[float]) -> str:
    """pgvector text representation: '[0.1,0.2,...]'."""
    return "[" + ",".join(repr(float(x)) for x in embedding) + "]"


class PgVectorStore(VectorStore):
    """
    Vector store on PostgreSQL + pgvector.

    Queries are read-only; writes happen only through replace_source and
    delete_pack_version, each in its own transaction.
    """

    def __init__(self, config: Optional[DatabaseConfig] = None, dimensions: int = 1536):
        self.config = config or DatabaseConfig()
        if not self.config.url:
            raise KBConfigurationError("DATABASE_URL required for the KB vector store")
        self.dimensions = dimensions
        self._pool = None
        self._pool_lock = threading.Lock()

    def _get_pool(self):
        """Get or create connection pool (lazy singleton)."""
        if self._pool is not None:
            return self._pool
        with self._pool_lock:
            if self._pool is None:
                try:
                    self._pool = pg_pool.ThreadedConnectionPool(
                        self.config.pool_min_size,
                        self.config.pool_max_size,
                        dsn=self.config.url,
                    )
                except psycopg2.Error as e:
                    raise VectorStoreError(f"Failed to create DB pool: {e}")
                logger.info("KB DB pool created")
        return self._pool

    @contextmanager
    def _connection(self):
        """Pooled connection; commits on success, rolls back on error."""
        pool = self._get_pool()
        conn = pool.getconn()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            pool.putconn(conn)

    def close(self) -> None:
        if self._pool is not None:
            self._pool.closeall()
            self._pool = None
            logger.info("KB DB pool closed")

    def ensure_schema(self) -> None:
        """Create extensions, tables and indexes if missing."""
        try:
            with self._connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(SCHEMA_SQL.replace("{dimensions}", str(int(self.dimensions))))
        except psycopg2.Error as e:
            raise VectorStoreError(f"Failed to initialize KB schema: {e}")
        logger.info("KB schema initialized")

    def replace_source(self, source: KBSource, chunks: List[EmbeddedChunk]) -> str:
        rows = []
        try:
            with self._connection() as conn:
                with conn.cursor() as cur:
                    cur.execute("""
                        INSERT INTO kb_sources
                            (pack_id, version, title, url, storage_url, published_on, retrieved_on, reg_code)
                        VALUES (%s, %s, %s, %s, %s, %s, COALESCE(%s, CURRENT_TIMESTAMP), %s)
                        ON CONFLICT (pack_id, version, reg_code)
                        DO UPDATE SET
                            title = EXCLUDED.title,
                            url = EXCLUDED.url,
                            storage_url = EXCLUDED.storage_url,
                            published_on = EXCLUDED.published_on,
                            retrieved_on = EXCLUDED.retrieved_on,
                            updated_at = CURRENT_TIMESTAMP
                        RETURNING source_id
                    """, (
                        source.pack_id,
                        source.version,
                        source.title,
                        source.url,
                        source.storage_url,
                        source.published_on,
                        source.retrieved_on,
                        source.reg_code,
                    ))
                    source_id = str(cur.fetchone()[0])

                    cur.execute("DELETE FROM kb_chunks WHERE source_id = %s", (source_id,))

                    for index, staged in enumerate(chunks):
                        rows.append((
                            source_id,
                            source.pack_id,
                            source.version,
                            staged.chunk.section,
                            staged.chunk.article,
                            staged.chunk.text,
                            to_vector_literal(staged.embedding),
                            staged.chunk.token_count,
                            index,
                        ))
                    if rows:
                        execute_values(cur, """
                            INSERT INTO kb_chunks
                                (source_id, pack_id, version, section, article, text, embedding, token_count, chunk_index)
                            VALUES %s
                        """, rows, template="(%s, %s, %s, %s, %s, %s, %s::vector, %s, %s)")
        except psycopg2.Error as e:
            raise VectorStoreError(f"Failed to store {source.reg_code}: {e}")

        logger.info(
            f"Replaced chunks for {source.reg_code}: {len(rows)} rows",
            extra={"pack_id": source.pack_id, "version": source.version, "reg_code": source.reg_code},
        )
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
        vector = to_vector_literal(embedding)
        timeout_ms = int(timeout * 1000) if timeout is not None else self.config.statement_timeout_ms

        try:
            with self._connection() as conn:
                with conn.cursor(cursor_factory=RealDictCursor) as cur:
                    if timeout_ms > 0:
                        cur.execute("SELECT set_config('statement_timeout', %s, true)", (str(timeout_ms),))
                    cur.execute("""
                        SELECT
                            c.id,
                            c.text,
                            c.section,
                            c.article,
                            s.reg_code,
                            s.url,
                            s.published_on,
                            1 - (c.embedding <=> %s::vector) AS similarity
                        FROM kb_chunks c
                        JOIN kb_sources s ON c.source_id = s.source_id
                        WHERE c.pack_id = %s
                          AND c.version = %s
                          AND 1 - (c.embedding <=> %s::vector) >= %s
                        ORDER BY c.embedding <=> %s::vector
                        LIMIT %s
                    """, (vector, pack_id, version, vector, min_similarity, vector, k))
                    rows = cur.fetchall()
        except pg_errors.QueryCanceled:
            raise RetrievalTimeoutError(timeout_ms / 1000.0)
        except psycopg2.Error as e:
            raise VectorStoreError(f"KB query failed: {e}")

        return [self._row_to_result(row, float(row["similarity"])) for row in rows]

    def find_by_article(self, pack_id: str, version: str, article: str) -> List[SearchResult]:
        try:
            with self._connection() as conn:
                with conn.cursor(cursor_factory=RealDictCursor) as cur:
                    cur.execute("""
                        SELECT c.id, c.text, c.section, c.article, s.reg_code, s.url, s.published_on
                        FROM kb_chunks c
                        JOIN kb_sources s ON c.source_id = s.source_id
                        WHERE c.pack_id = %s AND c.version = %s AND c.article = %s
                        ORDER BY c.created_at, c.chunk_index
                    """, (pack_id, version, article))
                    rows = cur.fetchall()
        except psycopg2.Error as e:
            raise VectorStoreError(f"KB article lookup failed: {e}")

        return [self._row_to_result(row, 1.0) for row in rows]

    def get_chunk(self, chunk_id: str) -> Optional[ChunkDetail]:
        try:
            with self._connection() as conn:
                with conn.cursor(cursor_factory=RealDictCursor) as cur:
                    cur.execute("""
                        SELECT
                            c.id, c.text, c.section, c.article, c.pack_id, c.version,
                            s.reg_code, s.url, s.title, s.published_on
                        FROM kb_chunks c
                        JOIN kb_sources s ON c.source_id = s.source_id
                        WHERE c.id = %s
                    """, (chunk_id,))
                    row = cur.fetchone()
        except psycopg2.Error as e:
            raise VectorStoreError(f"KB chunk lookup failed: {e}")

        if row is None:
            return None
        return ChunkDetail(
            id=str(row["id"]),
            text=row["text"],
            pack_id=row["pack_id"],
            version=row["version"],
            reg_code=row["reg_code"],
            title=row["title"],
            section=row["section"],
            article=row["article"],
            url=row["url"],
            published_on=row["published_on"],
        )

    def stats(self, pack_id: Optional[str] = None, version: Optional[str] = None) -> List[KBStats]:
        sql = """
            SELECT
                pack_id,
                version,
                COUNT(DISTINCT source_id) AS source_count,
                COUNT(*) AS chunk_count,
                ROUND(AVG(token_count)) AS avg_chunk_tokens
            FROM kb_chunks
            WHERE 1 = 1
        """
        params: List[Any] = []
        if pack_id:
            sql += " AND pack_id = %s"
            params.append(pack_id)
        if version:
            sql += " AND version = %s"
            params.append(version)
        sql += " GROUP BY pack_id, version ORDER BY pack_id, version"

        try:
            with self._connection() as conn:
                with conn.cursor(cursor_factory=RealDictCursor) as cur:
                    cur.execute(sql, params)
                    rows = cur.fetchall()
        except psycopg2.Error as e:
            raise VectorStoreError(f"KB stats query failed: {e}")

        return [
            KBStats(
                pack_id=row["pack_id"],
                version=row["version"],
                source_count=int(row["source_count"]),
                chunk_count=int(row["chunk_count"]),
                avg_chunk_tokens=int(row["avg_chunk_tokens"] or 0),
            )
            for row in rows
        ]

    def delete_pack_version(self, pack_id: str, version: str) -> int:
        try:
            with self._connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(
                        "DELETE FROM kb_sources WHERE pack_id = %s AND version = %s",
                        (pack_id, version),
                    )
                    deleted = cur.rowcount
        except psycopg2.Error as e:
            raise VectorStoreError(f"Failed to purge {pack_id}/{version}: {e}")

        logger.info(f"Purged {deleted} sources", extra={"pack_id": pack_id, "version": version})
        return deleted

    def health(self) -> Dict[str, Any]:
        """Non-blocking: returns 'disconnected' if DB is not reachable."""
        try:
            with self._connection() as conn:
                with conn.cursor() as cur:
                    cur.execute("SELECT extversion FROM pg_extension WHERE extname = 'vector'")
                    row = cur.fetchone()
            return {
                "status": "connected",
                "backend": "pgvector",
                "pgvector": row[0] if row else None,
            }
        except (psycopg2.Error, VectorStoreError) as e:
            logger.warning(f"KB health check failed: {e}")
            return {"status": "disconnected", "backend": "pgvector", "error": str(e)}

    @staticmethod
    def _row_to_result(row: Dict[str, Any], similarity: float) -> SearchResult:
        return SearchResult(
            id=str(row["id"]),
            text=row["text"],
            reg_code=row["reg_code"],
            similarity=clamp_similarity(similarity),
            url=row["url"],
            article=row["article"],
            section=row["section"],
            published_on=row["published_on"],
        )
