import logging
from contextlib import contextmanager
from time import perf_counter
from typing import Any, List, Sequence

from support_agent.chat.chat_models import AnswerResult, Source
from support_agent.core.errors import GenerationFailure
from support_agent.core.reliability import DependencyError
from support_agent.rag.confidence import (
    DEFAULT_CONFIDENCE_THRESHOLD,
    average_distance,
    is_confident,
)
from support_agent.schemas.content import RetrievedChunk

logger = logging.getLogger(__name__)

FALLBACK_RESPONSE = "I apologize, but I was unable to generate a response."
SNIPPET_CHARS = 200
CONTEXT_SEPARATOR = "\n\n---\n\n"


def build_context(chunks: Sequence[RetrievedChunk]) -> str:
    return CONTEXT_SEPARATOR.join(
        f"[Source {i}: {chunk.source}]\n{chunk.text}"
        for i, chunk in enumerate(chunks, start=1)
    )


def format_sources(chunks: Sequence[RetrievedChunk]) -> List[Source]:
    return [
        Source(
            source=chunk.source,
            snippet=chunk.text[:SNIPPET_CHARS]
            + ("..." if len(chunk.text) > SNIPPET_CHARS else ""),
            relevance=f"{1 - chunk.distance:.2f}",
        )
        for chunk in chunks
    ]


def chat_error_code(exc: Exception, stage: str | None) -> str:
    if stage == "generate":
        return "llm_error"
    if stage == "transcribe" or stage == "synthesize":
        return "speech_unavailable"
    if "embed" in str(exc).lower():
        return "embeddings_unavailable"
    if isinstance(exc, DependencyError):
        return "dependency_unavailable"
    return "chat_pipeline_error"


@contextmanager
def run_stage(
    *,
    stage: str,
    stage_timings_ms: dict[str, int],
    log_ctx: dict[str, Any],
):
    started_at = perf_counter()
    try:
        yield
    except Exception as exc:
        duration_ms = int((perf_counter() - started_at) * 1000)
        logger.exception(
            "chat_stage_failed",
            extra={
                "stage": stage,
                "duration_ms": duration_ms,
                "error_code": chat_error_code(exc, stage),
                **log_ctx,
            },
        )
        raise
    else:
        duration_ms = int((perf_counter() - started_at) * 1000)
        stage_timings_ms[stage] = duration_ms
        logger.info(
            "chat_stage_completed",
            extra={"stage": stage, "duration_ms": duration_ms, **log_ctx},
        )


async def generate_response(
    query: str,
    chunks: Sequence[RetrievedChunk],
    llm: Any,
    confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD,
) -> AnswerResult:
    """
    Answer ``query`` from the retrieved chunks.

    The prompt carries a low-confidence caution whenever the mean retrieval
    distance misses the threshold. An empty completion becomes a fixed
    apology rather than an empty reply.
    """
    distances = [chunk.distance for chunk in chunks]
    avg = average_distance(distances)
    confident = is_confident(distances, confidence_threshold)

    messages = llm.build_llm_messages(
        query=query, context=build_context(chunks), is_confident=confident
    )
    try:
        answer = await llm.complete_chat(messages, temperature=0.3, max_tokens=500)
    except GenerationFailure:
        raise
    except Exception as exc:
        raise GenerationFailure(f"LLM failed: {exc}", cause=exc) from exc

    answer = answer or FALLBACK_RESPONSE
    logger.info(
        "llm_response_generated",
        extra={
            "llm_provider": getattr(llm, "name", None),
            "is_confident": confident,
            "avg_distance": round(avg, 4),
            "response_chars": len(answer),
        },
    )
    return AnswerResult(response=answer, is_confident=confident, avg_distance=avg)
