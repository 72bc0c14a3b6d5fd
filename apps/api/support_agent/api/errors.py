import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from support_agent.core.errors import (
    EmbeddingFailure,
    EmptyInputError,
    GenerationFailure,
    InvalidMetadataError,
    SpeechFailure,
    StoreFailure,
    UnsupportedFormatError,
    error_kind,
)
from support_agent.core.metrics import inc_provider_failure
from support_agent.core.reliability import DependencyError

logger = logging.getLogger(__name__)

_DEPENDENCY_NAMES = (
    (EmbeddingFailure, "embeddings"),
    (StoreFailure, "vector_store"),
    (GenerationFailure, "llm"),
    (SpeechFailure, "speech"),
)


def error_response(
    status_code: int, code: str, message: str, **details
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"ok": False, "error": {"code": code, "message": message, **details}},
    )


def validation_error(
    message: str, fields: dict[str, str] | None = None
) -> JSONResponse:
    return error_response(400, "VALIDATION_ERROR", message, fields=fields or {})


def dependency_name(exc: Exception) -> str:
    for exc_type, name in _DEPENDENCY_NAMES:
        if isinstance(exc, exc_type):
            return name
    return "dependency"


def dependency_unavailable(exc: DependencyError) -> JSONResponse:
    kind = error_kind(exc)
    code = kind.value if kind is not None else "DEPENDENCY_UNAVAILABLE"
    dependency = dependency_name(exc)
    inc_provider_failure(dependency=dependency, error_code=code.lower())
    logger.error(
        "dependency_failure",
        extra={
            "dependency": dependency,
            "error_code": code,
            "retryable": exc.retryable,
            "error": str(exc),
        },
    )
    return error_response(
        503,
        code,
        f"Dependency unavailable (retryable={exc.retryable}): {exc}",
        retryable=exc.retryable,
    )


async def _input_error_handler(request: Request, exc: Exception) -> JSONResponse:
    kind = error_kind(exc)
    return error_response(400, kind.value, str(exc), fields={})


async def _request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    fields: dict[str, str] = {}
    for issue in exc.errors():
        loc = [str(part) for part in issue.get("loc", ()) if part not in ("body", "query", "path")]
        fields[".".join(loc) or "request"] = issue.get("msg", "invalid value")
    return validation_error("Invalid request.", fields)


async def _dependency_error_handler(request: Request, exc: DependencyError) -> JSONResponse:
    return dependency_unavailable(exc)


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(
        "unhandled_error",
        extra={"route": request.url.path, "method": request.method},
    )
    return error_response(500, "INTERNAL_ERROR", "Internal server error")


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(EmptyInputError, _input_error_handler)
    app.add_exception_handler(UnsupportedFormatError, _input_error_handler)
    app.add_exception_handler(InvalidMetadataError, _input_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
    app.add_exception_handler(DependencyError, _dependency_error_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)
