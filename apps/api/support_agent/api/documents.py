import logging
import uuid
from time import perf_counter

from fastapi import APIRouter, Depends, File, UploadFile
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from support_agent.api.deps import get_document_manager
from support_agent.api.errors import error_response, validation_error
from support_agent.config import settings
from support_agent.core.metrics import inc_document_delete, observe_ingestion_throughput
from support_agent.ingest.extract import DOCUMENT_EXTENSIONS, extract_text, is_valid_extension
from support_agent.rag.documents import DocumentManager
from support_agent.schemas.content import utc_now_iso

router = APIRouter(prefix="/api/documents", tags=["documents"])
logger = logging.getLogger(__name__)


@router.get("")
def list_documents(manager: DocumentManager = Depends(get_document_manager)):
    documents = manager.list_documents()
    return {
        "documents": [doc.model_dump(by_alias=True) for doc in documents],
        "total": len(documents),
    }


@router.get("/stats")
def collection_stats(manager: DocumentManager = Depends(get_document_manager)):
    return manager.get_collection_stats().model_dump(by_alias=True)


@router.post("/upload")
async def upload_document(
    file: UploadFile | None = File(default=None),
    manager: DocumentManager = Depends(get_document_manager),
):
    """Parse an uploaded .txt/.doc/.docx/.pdf and ingest it as one new document."""
    if file is None or not file.filename:
        return validation_error("No file provided", {"file": "No file provided"})

    filename = file.filename
    if not is_valid_extension(filename, DOCUMENT_EXTENSIONS):
        message = (
            "File type not allowed. Supported formats: " + ", ".join(DOCUMENT_EXTENSIONS)
        )
        return validation_error(message, {"file": message})

    content = await file.read()
    if len(content) > settings.upload_max_bytes:
        return error_response(
            413,
            "FILE_TOO_LARGE",
            f"File exceeds the {settings.upload_max_bytes} byte upload limit",
        )

    started_at = perf_counter()
    extracted = await run_in_threadpool(extract_text, content, filename)

    uploaded_at = utc_now_iso()
    result = await run_in_threadpool(
        manager.ingest_document,
        extracted.text,
        {
            "documentId": str(uuid.uuid4()),
            "source": filename,
            "filetype": extracted.filetype,
            "ingestedAt": uploaded_at,
            "uploadedAt": uploaded_at,
        },
    )
    observe_ingestion_throughput(files=1, chunks=result.chunks_added)
    logger.info(
        "document_uploaded",
        extra={
            "document_id": result.document_id,
            "file_name": filename,
            "filetype": extracted.filetype,
            "chunks_inserted": result.chunks_added,
            "total_latency_ms": int((perf_counter() - started_at) * 1000),
        },
    )
    return {
        "documentId": result.document_id,
        "filename": filename,
        "filetype": extracted.filetype,
        "chunksInserted": result.chunks_added,
        "uploadedAt": uploaded_at,
    }


@router.delete("/{document_id}")
def delete_document(
    document_id: str,
    manager: DocumentManager = Depends(get_document_manager),
):
    if not document_id.strip():
        return validation_error(
            "Document ID is required", {"document_id": "Document ID is required"}
        )

    result = manager.delete_document(document_id)
    if not result.deleted:
        inc_document_delete(outcome="not_found")
        return JSONResponse(
            status_code=404,
            content={"error": "Document not found", "documentId": document_id},
        )

    inc_document_delete(outcome="deleted")
    return result.model_dump(by_alias=True)
