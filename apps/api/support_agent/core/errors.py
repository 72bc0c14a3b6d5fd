from __future__ import annotations

from enum import Enum

from support_agent.core.reliability import DependencyError, is_retryable_exception


class ErrorKind(str, Enum):
    EMPTY_INPUT = "EMPTY_INPUT"
    EMBEDDING_FAILURE = "EMBEDDING_FAILURE"
    STORE_FAILURE = "STORE_FAILURE"
    # Returned as a negative result by lookups and deletes, never raised.
    NOT_FOUND = "NOT_FOUND"
    UNSUPPORTED_FORMAT = "UNSUPPORTED_FORMAT"
    GENERATION_FAILURE = "GENERATION_FAILURE"
    SPEECH_FAILURE = "SPEECH_FAILURE"
    VALIDATION_ERROR = "VALIDATION_ERROR"


class EmptyInputError(ValueError):
    kind = ErrorKind.EMPTY_INPUT


class UnsupportedFormatError(ValueError):
    kind = ErrorKind.UNSUPPORTED_FORMAT


class InvalidMetadataError(ValueError):
    kind = ErrorKind.VALIDATION_ERROR


class CollaboratorFailure(DependencyError):
    """A failure of an external collaborator, wrapping the original exception."""

    kind: ErrorKind

    def __init__(self, message: str, *, cause: BaseException | None = None):
        retryable = getattr(cause, "retryable", None)
        if retryable is None:
            retryable = cause is not None and is_retryable_exception(cause)
        super().__init__(message, retryable=bool(retryable))
        self.cause = cause


class EmbeddingFailure(CollaboratorFailure):
    kind = ErrorKind.EMBEDDING_FAILURE


class StoreFailure(CollaboratorFailure):
    kind = ErrorKind.STORE_FAILURE


class GenerationFailure(CollaboratorFailure):
    kind = ErrorKind.GENERATION_FAILURE


class SpeechFailure(CollaboratorFailure):
    kind = ErrorKind.SPEECH_FAILURE


def error_kind(exc: BaseException) -> ErrorKind | None:
    return getattr(exc, "kind", None)
