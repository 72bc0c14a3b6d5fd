from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from threading import Lock
from typing import Any, Callable, Dict, List, Optional, Sequence, TypeVar

import psycopg2
from psycopg2.extras import Json, execute_values
from psycopg2.pool import ThreadedConnectionPool

from support_agent.core.errors import StoreFailure
from support_agent.core.reliability import DependencyError, retry_with_backoff
from support_agent.db import pooled_connection

logger = logging.getLogger(__name__)

T = TypeVar("T")

_SCHEMA_STATEMENTS = (
    "CREATE EXTENSION IF NOT EXISTS vector",
    """
    CREATE TABLE IF NOT EXISTS chunks (
        id UUID PRIMARY KEY,
        collection_id TEXT NOT NULL,
        content TEXT NOT NULL,
        embedding VECTOR NOT NULL,
        meta JSONB NOT NULL DEFAULT '{}'::jsonb,
        created_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP
    )
    """,
    "CREATE INDEX IF NOT EXISTS chunks_collection_idx ON chunks (collection_id)",
    """
    CREATE INDEX IF NOT EXISTS chunks_document_idx
        ON chunks (collection_id, (meta->>'documentId'))
    """,
    "CREATE INDEX IF NOT EXISTS chunks_meta_idx ON chunks USING GIN (meta jsonb_path_ops)",
)


@dataclass
class QueryHit:
    id: str
    text: str
    metadata: Dict[str, Any]
    distance: float


@dataclass
class FilterResult:
    ids: List[str] = field(default_factory=list)
    metadatas: List[Dict[str, Any]] = field(default_factory=list)


class PgVectorStore:
    """
    Chunk vectors of one named collection, stored in PostgreSQL with pgvector.

    Construct once per process and share it: the connection pool is thread
    safe and the table is created lazily on first use. Distances are cosine
    distances (``<=>``), 0 for identical and 2 for opposite directions.
    """

    def __init__(
        self,
        pool: ThreadedConnectionPool,
        *,
        collection_name: str,
        statement_timeout_ms: Optional[int] = None,
    ) -> None:
        self.pool = pool
        self.collection_name = collection_name
        self.statement_timeout_ms = statement_timeout_ms or int(
            os.getenv("PG_STATEMENT_TIMEOUT_MS", "15000")
        )
        self._schema_ready = False
        self._schema_lock = Lock()

    def ensure_collection(self) -> None:
        if self._schema_ready:
            return
        with self._schema_lock:
            if self._schema_ready:
                return

            def _create() -> None:
                with pooled_connection(self.pool, vector=False) as conn:
                    with conn.cursor() as cur:
                        for statement in _SCHEMA_STATEMENTS:
                            cur.execute(statement)

            self._call("ensure_collection", _create, ensure=False)
            self._schema_ready = True
            logger.info(
                "vector_collection_ready",
                extra={"collection_id": self.collection_name},
            )

    def upsert(
        self,
        ids: Sequence[str],
        vectors: Sequence[Sequence[float]],
        texts: Sequence[str],
        metadatas: Sequence[Dict[str, Any]],
    ) -> int:
        if not (len(ids) == len(vectors) == len(texts) == len(metadatas)):
            raise ValueError("ids, vectors, texts and metadatas must have the same length")
        if not ids:
            return 0

        rows = [
            (chunk_id, self.collection_name, content, list(vector), Json(meta))
            for chunk_id, vector, content, meta in zip(ids, vectors, texts, metadatas)
        ]

        def _write() -> int:
            with pooled_connection(self.pool) as conn:
                with conn.cursor() as cur:
                    self._apply_timeout(cur)
                    execute_values(
                        cur,
                        """
                        INSERT INTO chunks (id, collection_id, content, embedding, meta)
                        VALUES %s
                        ON CONFLICT (id) DO UPDATE SET
                            collection_id = EXCLUDED.collection_id,
                            content = EXCLUDED.content,
                            embedding = EXCLUDED.embedding,
                            meta = EXCLUDED.meta
                        """,
                        rows,
                        template="(%s::uuid, %s, %s, %s::vector, %s)",
                        page_size=max(len(rows), 1),
                    )
            return len(rows)

        return self._call("upsert", _write)

    def query(self, vector: Sequence[float], k: int) -> List[QueryHit]:
        if k <= 0:
            return []
        qvec = list(vector)

        def _search():
            with pooled_connection(self.pool) as conn:
                with conn.cursor() as cur:
                    self._apply_timeout(cur)
                    cur.execute(
                        """
                        SELECT
                            id::text,
                            content,
                            meta,
                            (embedding <=> %s::vector) AS distance
                        FROM chunks
                        WHERE collection_id = %s
                        ORDER BY distance ASC
                        LIMIT %s
                        """,
                        (qvec, self.collection_name, k),
                    )
                    return cur.fetchall()

        rows = self._call("query", _search)
        return [
            QueryHit(id=chunk_id, text=content, metadata=meta or {}, distance=float(distance))
            for chunk_id, content, meta, distance in rows
        ]

    def get_by_filter(self, where: Optional[Dict[str, Any]] = None) -> FilterResult:
        """Rows whose metadata contains every key/value pair of ``where``."""

        def _select():
            with pooled_connection(self.pool) as conn:
                with conn.cursor() as cur:
                    self._apply_timeout(cur)
                    if where:
                        cur.execute(
                            """
                            SELECT id::text, meta FROM chunks
                            WHERE collection_id = %s AND meta @> %s::jsonb
                            ORDER BY created_at, id
                            """,
                            (self.collection_name, Json(where)),
                        )
                    else:
                        cur.execute(
                            """
                            SELECT id::text, meta FROM chunks
                            WHERE collection_id = %s
                            ORDER BY created_at, id
                            """,
                            (self.collection_name,),
                        )
                    return cur.fetchall()

        rows = self._call("get_by_filter", _select)
        result = FilterResult()
        for chunk_id, meta in rows:
            result.ids.append(chunk_id)
            result.metadatas.append(meta or {})
        return result

    def delete_by_ids(self, ids: Sequence[str]) -> int:
        if not ids:
            return 0

        def _delete() -> int:
            with pooled_connection(self.pool) as conn:
                with conn.cursor() as cur:
                    self._apply_timeout(cur)
                    cur.execute(
                        "DELETE FROM chunks WHERE collection_id = %s AND id = ANY(%s::uuid[])",
                        (self.collection_name, list(ids)),
                    )
                    return cur.rowcount

        return self._call("delete_by_ids", _delete)

    def count(self) -> int:
        def _count() -> int:
            with pooled_connection(self.pool) as conn:
                with conn.cursor() as cur:
                    self._apply_timeout(cur)
                    cur.execute(
                        "SELECT COUNT(*) FROM chunks WHERE collection_id = %s",
                        (self.collection_name,),
                    )
                    return int(cur.fetchone()[0])

        return self._call("count", _count)

    def drop_collection(self) -> int:
        def _drop() -> int:
            with pooled_connection(self.pool) as conn:
                with conn.cursor() as cur:
                    cur.execute(
                        "DELETE FROM chunks WHERE collection_id = %s",
                        (self.collection_name,),
                    )
                    return cur.rowcount

        removed = self._call("drop_collection", _drop)
        # Recreated on next access.
        self._schema_ready = False
        logger.info(
            "vector_collection_dropped",
            extra={"collection_id": self.collection_name, "chunks_removed": removed},
        )
        return removed

    def _apply_timeout(self, cur) -> None:
        cur.execute("SET LOCAL statement_timeout = %s", (self.statement_timeout_ms,))

    def _call(self, operation: str, func: Callable[[], T], *, ensure: bool = True) -> T:
        try:
            if ensure:
                self.ensure_collection()
            return retry_with_backoff(func, operation=f"vector_store.{operation}")
        except StoreFailure:
            raise
        except (psycopg2.Error, DependencyError) as exc:
            logger.error(
                "vector_store_failed",
                extra={
                    "operation": operation,
                    "collection_id": self.collection_name,
                    "error": str(exc),
                },
            )
            raise StoreFailure(
                f"Vector store {operation} failed: {exc}", cause=exc
            ) from exc
