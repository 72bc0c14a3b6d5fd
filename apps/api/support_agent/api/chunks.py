from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from support_agent.config import settings
from support_agent.db import get_session
from support_agent.models import ChunkRecord
from support_agent.schemas.content import StoredChunk

router = APIRouter(prefix="/api/documents", tags=["chunks"])


def _to_stored_chunk(record: ChunkRecord) -> StoredChunk:
    meta = record.meta or {}
    return StoredChunk(
        id=str(record.id),
        document_id=meta.get("documentId") or meta.get("source"),
        chunk_index=meta.get("chunkIndex"),
        content=record.content,
        meta=meta,
        created_at=record.created_at,
    )


@router.get("/{document_id}/chunks")
def get_document_chunks(
    document_id: str,
    limit: int = 100,
    offset: int = 0,
    session: Session = Depends(get_session),
):
    """Chunks of one document in ``chunkIndex`` order, legacy ``source`` ids included."""
    if limit <= 0 or offset < 0:
        raise HTTPException(status_code=400, detail="limit must be > 0 and offset >= 0")

    base = select(ChunkRecord).where(ChunkRecord.collection_id == settings.collection_name)
    order = (ChunkRecord.meta["chunkIndex"].as_integer(), ChunkRecord.created_at)

    records = session.scalars(
        base.where(ChunkRecord.meta["documentId"].astext == document_id)
        .order_by(*order)
        .offset(offset)
        .limit(limit)
    ).all()
    if not records:
        records = session.scalars(
            base.where(ChunkRecord.meta["source"].astext == document_id)
            .order_by(*order)
            .offset(offset)
            .limit(limit)
        ).all()

    if not records and offset == 0:
        raise HTTPException(status_code=404, detail="Document not found")

    return {
        "documentId": document_id,
        "chunks": [_to_stored_chunk(r).model_dump(by_alias=True, mode="json") for r in records],
        "total": len(records),
    }
