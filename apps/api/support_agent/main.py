import logging
from time import perf_counter
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response
from fastapi.middleware.cors import CORSMiddleware

from .api.chat import router as chat_router
from .api.chunks import router as chunks_router
from .api.documents import router as documents_router
from .api.errors import register_exception_handlers
from .api.ingest import router as ingest_router
from .config import settings
from .core.health import get_readiness_payload
from .core.metrics import observe_http_request, render_prometheus_text
from .core.observability import (
    REQUEST_ID_HEADER,
    configure_logging,
    reset_request_id,
    resolve_request_id,
    set_request_id,
)
from .core.startup_config import validate_startup_config
from .services import build_services

logger = logging.getLogger(__name__)

configure_logging()

SERVICE_NAME = "Customer AI Agent API"
SERVICE_VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        validate_startup_config()
        services = build_services()
    except Exception:
        logger.exception("startup_failed")
        raise
    app.state.services = services
    logger.info(
        "startup_completed",
        extra={
            "collection_id": settings.collection_name,
            "embeddings_provider": settings.embeddings_provider,
            "llm_provider": settings.llm_provider,
        },
    )
    yield
    services.close()


app = FastAPI(title=SERVICE_NAME, version=SERVICE_VERSION, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)


def _route_label(request: Request) -> str:
    # Matched template, so document ids do not become separate series.
    route = request.scope.get("route")
    return getattr(route, "path", None) or request.url.path


def _record_request(request: Request, status_code: int, started_at: float) -> dict:
    fields = {
        "route": _route_label(request),
        "method": request.method,
        "status_code": status_code,
        "latency_ms": int((perf_counter() - started_at) * 1000),
    }
    observe_http_request(**fields)
    return fields


@app.middleware("http")
async def request_observability_middleware(request: Request, call_next):
    request_id = resolve_request_id(request.headers.get(REQUEST_ID_HEADER))
    token = set_request_id(request_id)
    started_at = perf_counter()
    try:
        response = await call_next(request)
    except Exception:
        logger.exception("request_failed", extra=_record_request(request, 500, started_at))
        raise
    else:
        response.headers[REQUEST_ID_HEADER] = request_id
        logger.info(
            "request_completed",
            extra=_record_request(request, response.status_code, started_at),
        )
        return response
    finally:
        reset_request_id(token)


@app.get("/")
def service_index():
    return {
        "name": SERVICE_NAME,
        "version": SERVICE_VERSION,
        "endpoints": {
            "health": "GET /api/chat/health",
            "voiceChat": "POST /api/chat/voice",
            "textChat": "POST /api/chat/text",
            "ingestFile": "POST /api/ingest",
            "ingestText": "POST /api/ingest/text",
            "clearDocs": "DELETE /api/ingest",
            "documents": {
                "list": "GET /api/documents",
                "upload": "POST /api/documents/upload",
                "delete": "DELETE /api/documents/:documentId",
                "stats": "GET /api/documents/stats",
                "chunks": "GET /api/documents/:documentId/chunks",
            },
        },
    }


@app.get("/health")
def health_check():
    return {"status": "ok"}


@app.get("/health/live")
def liveness_check():
    return {"status": "ok"}


@app.get("/health/ready")
def readiness_check():
    payload = get_readiness_payload()
    if payload["status"] != "ok":
        return JSONResponse(status_code=503, content=payload)
    return payload


@app.get("/metrics")
def metrics():
    return Response(
        content=render_prometheus_text(),
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )


app.include_router(chat_router)
app.include_router(ingest_router)
app.include_router(documents_router)
app.include_router(chunks_router)
