import base64
import logging
import os
import tempfile
from time import perf_counter

from fastapi import APIRouter, Depends, File, UploadFile
from starlette.concurrency import run_in_threadpool

from support_agent.api.deps import get_document_manager, get_llm, get_speech
from support_agent.api.errors import error_response, validation_error
from support_agent.chat.chat_models import ChatTextRequest
from support_agent.chat.chat_service import format_sources, generate_response, run_stage
from support_agent.config import settings
from support_agent.core.metrics import inc_chat_answer
from support_agent.rag.documents import DocumentManager
from support_agent.schemas.content import utc_now_iso

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/chat", tags=["chat"])

AUDIO_FORMAT = "mp3"

_MIME_TO_EXT = {
    "audio/webm": ".webm",
    "audio/mp4": ".mp4",
    "audio/m4a": ".m4a",
    "audio/mpeg": ".mp3",
    "audio/wav": ".wav",
    "audio/wave": ".wav",
    "audio/x-wav": ".wav",
    "audio/ogg": ".ogg",
    "audio/flac": ".flac",
}


def audio_suffix(content_type: str | None, filename: str | None) -> str:
    base_mime = (content_type or "").split(";")[0].strip().lower()
    if base_mime in _MIME_TO_EXT:
        return _MIME_TO_EXT[base_mime]
    ext = os.path.splitext(filename or "")[1]
    return ext or ".webm"


async def _answer(
    *,
    query: str,
    channel: str,
    manager: DocumentManager,
    llm,
    stage_timings_ms: dict[str, int],
    log_ctx: dict,
):
    with run_stage(stage="retrieve", stage_timings_ms=stage_timings_ms, log_ctx=log_ctx):
        chunks = await run_in_threadpool(manager.query_relevant, query, settings.top_k)
    with run_stage(stage="generate", stage_timings_ms=stage_timings_ms, log_ctx=log_ctx):
        answer = await generate_response(
            query, chunks, llm, confidence_threshold=settings.confidence_threshold
        )
    inc_chat_answer(channel=channel, confident=answer.is_confident)
    return chunks, answer


@router.post("/text")
async def text_chat(
    payload: ChatTextRequest,
    manager: DocumentManager = Depends(get_document_manager),
    llm=Depends(get_llm),
    speech=Depends(get_speech),
):
    request_started_at = perf_counter()
    stage_timings_ms: dict[str, int] = {}
    log_ctx = {"channel": "text", "message_chars": len(payload.message)}

    chunks, answer = await _answer(
        query=payload.message,
        channel="text",
        manager=manager,
        llm=llm,
        stage_timings_ms=stage_timings_ms,
        log_ctx=log_ctx,
    )
    result = {
        "response": answer.response,
        "sources": [s.model_dump() for s in format_sources(chunks)],
        "isConfident": answer.is_confident,
    }

    if payload.include_tts:
        with run_stage(stage="synthesize", stage_timings_ms=stage_timings_ms, log_ctx=log_ctx):
            audio = await speech.synthesize(answer.response)
        result["audio"] = base64.b64encode(audio).decode("ascii")
        result["audioFormat"] = AUDIO_FORMAT

    logger.info(
        "chat_pipeline_summary",
        extra={
            "status": "ok",
            "stages_ms": stage_timings_ms,
            "total_latency_ms": int((perf_counter() - request_started_at) * 1000),
            "is_confident": answer.is_confident,
            **log_ctx,
        },
    )
    return result


@router.post("/voice")
async def voice_chat(
    audio: UploadFile | None = File(default=None),
    manager: DocumentManager = Depends(get_document_manager),
    llm=Depends(get_llm),
    speech=Depends(get_speech),
):
    """Transcribe a recorded question, answer it, and speak the answer back."""
    if audio is None:
        return validation_error("No audio file provided", {"audio": "No audio file provided"})

    content = await audio.read()
    if not content:
        return validation_error("No audio file provided", {"audio": "Audio file is empty"})
    if len(content) > settings.audio_max_bytes:
        return error_response(
            413,
            "FILE_TOO_LARGE",
            f"Audio exceeds the {settings.audio_max_bytes} byte limit",
        )

    request_started_at = perf_counter()
    stage_timings_ms: dict[str, int] = {}
    log_ctx = {"channel": "voice", "audio_bytes": len(content)}

    fd, audio_path = tempfile.mkstemp(suffix=audio_suffix(audio.content_type, audio.filename))
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(content)

        with run_stage(stage="transcribe", stage_timings_ms=stage_timings_ms, log_ctx=log_ctx):
            transcription = await speech.transcribe(audio_path)
    finally:
        try:
            os.remove(audio_path)
        except OSError:
            logger.warning("audio_cleanup_failed", extra={"path": audio_path})

    transcript = (transcription.text or "").strip()
    if not transcript:
        return validation_error(
            "Could not transcribe audio", {"audio": "Could not transcribe audio"}
        )

    chunks, answer = await _answer(
        query=transcript,
        channel="voice",
        manager=manager,
        llm=llm,
        stage_timings_ms=stage_timings_ms,
        log_ctx=log_ctx,
    )
    with run_stage(stage="synthesize", stage_timings_ms=stage_timings_ms, log_ctx=log_ctx):
        speech_audio = await speech.synthesize(answer.response)

    logger.info(
        "chat_pipeline_summary",
        extra={
            "status": "ok",
            "stages_ms": stage_timings_ms,
            "total_latency_ms": int((perf_counter() - request_started_at) * 1000),
            "is_confident": answer.is_confident,
            "language": transcription.language,
            **log_ctx,
        },
    )
    return {
        "transcript": transcript,
        "response": answer.response,
        "sources": [s.model_dump() for s in format_sources(chunks)],
        "isConfident": answer.is_confident,
        "audio": base64.b64encode(speech_audio).decode("ascii"),
        "audioFormat": AUDIO_FORMAT,
    }


@router.get("/health")
def chat_health():
    return {"status": "ok", "timestamp": utc_now_iso()}
