import logging

from fastapi import APIRouter, Depends, File, UploadFile
from pydantic import BaseModel
from starlette.concurrency import run_in_threadpool

from support_agent.api.deps import get_document_manager
from support_agent.api.errors import error_response, validation_error
from support_agent.config import settings
from support_agent.core.metrics import observe_ingestion_throughput
from support_agent.ingest.extract import TEXT_EXTENSIONS, extract_text, file_extension
from support_agent.rag.documents import DocumentManager
from support_agent.schemas.content import utc_now_iso

router = APIRouter(prefix="/api/ingest", tags=["ingest"])
logger = logging.getLogger(__name__)

DEFAULT_TEXT_SOURCE = "manual_input"


class IngestTextRequest(BaseModel):
    text: str | None = None
    source: str | None = None


@router.post("")
async def ingest_file(
    file: UploadFile | None = File(default=None),
    manager: DocumentManager = Depends(get_document_manager),
):
    if file is None or not file.filename:
        return validation_error("No file provided", {"file": "No file provided"})

    ext = file_extension(file.filename)
    if ext not in TEXT_EXTENSIONS:
        message = f"File type {ext or '(none)'} not allowed. Allowed: {', '.join(TEXT_EXTENSIONS)}"
        return validation_error(message, {"file": message})

    content = await file.read()
    if len(content) > settings.ingest_max_bytes:
        return error_response(
            413,
            "FILE_TOO_LARGE",
            f"File exceeds the {settings.ingest_max_bytes} byte ingest limit",
        )

    extracted = await run_in_threadpool(extract_text, content, file.filename)
    result = await run_in_threadpool(
        manager.ingest_document,
        extracted.text,
        {
            "source": file.filename,
            "filetype": extracted.filetype,
            "ingestedAt": utc_now_iso(),
        },
    )
    observe_ingestion_throughput(files=1, chunks=result.chunks_added)
    return {
        "success": True,
        "filename": file.filename,
        "documentId": result.document_id,
        "chunksAdded": result.chunks_added,
    }


@router.post("/text")
def ingest_text(
    payload: IngestTextRequest,
    manager: DocumentManager = Depends(get_document_manager),
):
    if not payload.text or not payload.text.strip():
        return validation_error("No text provided", {"text": "No text provided"})

    source = (payload.source or "").strip() or DEFAULT_TEXT_SOURCE
    logger.info(
        "text_ingest_requested",
        extra={"source": source, "text_chars": len(payload.text)},
    )
    result = manager.ingest_document(
        payload.text, {"source": source, "ingestedAt": utc_now_iso()}
    )
    observe_ingestion_throughput(files=1, chunks=result.chunks_added)
    return {
        "success": True,
        "source": source,
        "documentId": result.document_id,
        "chunksAdded": result.chunks_added,
    }


@router.delete("")
def clear_collection(manager: DocumentManager = Depends(get_document_manager)):
    manager.clear_collection()
    return {"success": True, "message": "Collection cleared"}
