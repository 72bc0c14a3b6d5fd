from __future__ import annotations

import logging
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from langchain_core.embeddings import Embeddings
from pydantic import ValidationError

from support_agent.core.errors import EmbeddingFailure, EmptyInputError, InvalidMetadataError
from support_agent.core.reliability import DependencyError
from support_agent.ingest.chunker import ChunkConfig, chunk_text
from support_agent.rag.vector_store import PgVectorStore
from support_agent.schemas.content import (
    ChunkMetadata,
    CollectionStats,
    DeleteResult,
    DocumentSummary,
    IngestResult,
    RetrievedChunk,
)

logger = logging.getLogger(__name__)

DEFAULT_SOURCE = "manual_input"
DEFAULT_FILETYPE = "txt"
UNKNOWN_FILENAME = "Unknown"


def parse_timestamp(value: Any) -> Optional[datetime]:
    """ISO-8601 to aware datetime; naive values are read as UTC, junk as missing."""
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class DocumentManager:
    """
    Document lifecycle over one vector collection.

    A document exists only as the chunk records carrying its ``documentId``:
    ingest writes them in one upsert, delete removes them by id, listing
    groups them back together. Records written before ``documentId`` existed
    are grouped and deleted by their ``source`` instead.
    """

    def __init__(
        self,
        store: PgVectorStore,
        embeddings: Embeddings,
        *,
        chunk_config: ChunkConfig | None = None,
    ) -> None:
        self.store = store
        self.embeddings = embeddings
        self.chunk_config = chunk_config or ChunkConfig()

    def ingest_document(
        self, text: str, metadata: Dict[str, Any] | None = None
    ) -> IngestResult:
        meta = dict(metadata or {})
        camel_id = meta.pop("documentId", None)
        snake_id = meta.pop("document_id", None)
        document_id = camel_id or snake_id
        document_id = str(document_id) if document_id else str(uuid.uuid4())
        source = meta.get("source")
        if source is None or (isinstance(source, str) and not source.strip()):
            meta["source"] = DEFAULT_SOURCE
        for reserved in ("chunkIndex", "chunk_index", "chunkTotal", "chunk_total"):
            meta.pop(reserved, None)

        started_at = time.perf_counter()
        chunks = chunk_text(
            text,
            chunk_size=self.chunk_config.chunk_size,
            overlap=self.chunk_config.overlap,
        )
        if not chunks:
            raise EmptyInputError("Document contains no text to ingest")

        vectors = self._embed_documents(chunks)
        if len(vectors) != len(chunks):
            raise EmbeddingFailure(
                f"Embedding provider returned {len(vectors)} vectors for {len(chunks)} chunks"
            )

        total = len(chunks)
        try:
            records = [
                ChunkMetadata(
                    **meta,
                    documentId=document_id,
                    chunkIndex=index,
                    chunkTotal=total,
                ).to_store()
                for index in range(total)
            ]
        except ValidationError as exc:
            raise InvalidMetadataError(f"Invalid document metadata: {exc}") from exc

        ids = [str(uuid.uuid4()) for _ in chunks]
        self.store.upsert(ids, vectors, chunks, records)

        logger.info(
            "document_ingested",
            extra={
                "document_id": document_id,
                "source": meta.get("source"),
                "chunks_added": total,
                "elapsed_ms": round((time.perf_counter() - started_at) * 1000, 2),
            },
        )
        return IngestResult(document_id=document_id, chunks_added=total)

    def query_relevant(self, query_text: str, k: int = 3) -> List[RetrievedChunk]:
        started_at = time.perf_counter()
        vector = self._embed_query(query_text)
        hits = self.store.query(vector, k)
        logger.info(
            "vector_query_completed",
            extra={
                "top_k": k,
                "hits": len(hits),
                "elapsed_ms": round((time.perf_counter() - started_at) * 1000, 2),
            },
        )
        return [
            RetrievedChunk(text=hit.text, metadata=hit.metadata, distance=hit.distance)
            for hit in hits
        ]

    def list_documents(self) -> List[DocumentSummary]:
        result = self.store.get_by_filter(None)

        groups: Dict[Optional[str], Dict[str, Any]] = {}
        for meta in result.metadatas:
            document_id = meta.get("documentId")
            key = document_id or meta.get("source")
            group = groups.get(key)
            if group is None:
                group = {"meta": meta, "keyed": bool(document_id), "count": 0}
                groups[key] = group
            elif document_id and not group["keyed"]:
                group["meta"] = meta
                group["keyed"] = True
            group["count"] += 1

        summaries = []
        for key, group in groups.items():
            meta = group["meta"]
            summaries.append(
                DocumentSummary(
                    document_id=key,
                    filename=meta.get("source") or UNKNOWN_FILENAME,
                    filetype=meta.get("filetype") or DEFAULT_FILETYPE,
                    uploaded_at=meta.get("ingestedAt") or meta.get("uploadedAt"),
                    chunk_count=group["count"],
                )
            )

        # Newest first, undated last; sorted() is stable for ties.
        dated = [(parse_timestamp(s.uploaded_at), s) for s in summaries]
        with_time = sorted(
            ((ts, s) for ts, s in dated if ts is not None),
            key=lambda pair: pair[0],
            reverse=True,
        )
        without_time = [s for ts, s in dated if ts is None]
        return [s for _, s in with_time] + without_time

    def delete_document(self, document_id: str) -> DeleteResult:
        matched = self.store.get_by_filter({"documentId": document_id})
        if not matched.ids:
            matched = self.store.get_by_filter({"source": document_id})

        if not matched.ids:
            logger.info("document_not_found", extra={"document_id": document_id})
            return DeleteResult(deleted=False, document_id=document_id, chunks_deleted=0)

        self.store.delete_by_ids(matched.ids)
        logger.info(
            "document_deleted",
            extra={"document_id": document_id, "chunks_deleted": len(matched.ids)},
        )
        return DeleteResult(
            deleted=True, document_id=document_id, chunks_deleted=len(matched.ids)
        )

    def clear_collection(self) -> None:
        self.store.drop_collection()
        logger.warning(
            "collection_cleared", extra={"collection_id": self.store.collection_name}
        )

    def get_collection_stats(self) -> CollectionStats:
        return CollectionStats(
            total_chunks=self.store.count(),
            total_documents=len(self.list_documents()),
        )

    def _embed_documents(self, texts: List[str]) -> List[List[float]]:
        try:
            return self.embeddings.embed_documents(texts)
        except EmbeddingFailure:
            raise
        except (DependencyError, RuntimeError, ValueError, OSError) as exc:
            raise EmbeddingFailure(f"Embedding failed: {exc}", cause=exc) from exc

    def _embed_query(self, text: str) -> List[float]:
        try:
            return self.embeddings.embed_query(text)
        except EmbeddingFailure:
            raise
        except (DependencyError, RuntimeError, ValueError, OSError) as exc:
            raise EmbeddingFailure(f"Embedding failed: {exc}", cause=exc) from exc
