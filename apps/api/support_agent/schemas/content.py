from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class DocumentMetadata(BaseModel):
    """Document fields denormalized onto every chunk record of that document."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    document_id: str = Field(alias="documentId")
    source: str
    filetype: str | None = None
    ingested_at: str | None = Field(default=None, alias="ingestedAt")
    uploaded_at: str | None = Field(default=None, alias="uploadedAt")

    @field_validator("document_id", "source")
    @classmethod
    def _require_non_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("must not be blank")
        return value


class ChunkMetadata(DocumentMetadata):
    chunk_index: int = Field(alias="chunkIndex", ge=0)
    chunk_total: int = Field(alias="chunkTotal", ge=1)

    @model_validator(mode="after")
    def _index_within_total(self) -> "ChunkMetadata":
        if self.chunk_index >= self.chunk_total:
            raise ValueError(
                f"chunkIndex ({self.chunk_index}) must be less than chunkTotal ({self.chunk_total})"
            )
        return self

    def to_store(self) -> dict[str, Any]:
        """Serialize with the camelCase keys persisted alongside each vector."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class RetrievedChunk(BaseModel):
    text: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    distance: float

    @property
    def source(self) -> str:
        return self.metadata.get("source") or "Unknown"


class ApiModel(BaseModel):
    """Response models; serialized with camelCase keys via ``by_alias=True``."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DocumentSummary(ApiModel):
    document_id: str | None
    filename: str
    filetype: str
    uploaded_at: str | None = None
    chunk_count: int = 0


class IngestResult(ApiModel):
    document_id: str
    chunks_added: int


class DeleteResult(ApiModel):
    deleted: bool
    document_id: str
    chunks_deleted: int = 0


class CollectionStats(ApiModel):
    total_chunks: int
    total_documents: int


class StoredChunk(ApiModel):
    """Read model for one persisted chunk, as returned by the chunk browser."""

    id: str
    document_id: str | None = None
    chunk_index: int | None = None
    content: str
    meta: dict[str, Any] | None = None
    created_at: datetime | None = None
