from __future__ import annotations

import time
from typing import Callable, List, TypeVar

from langchain_core.embeddings import Embeddings

from support_agent.core.errors import EmbeddingFailure
from support_agent.core.reliability import RetryPolicy, enforce_timeout_budget, retry_with_backoff

T = TypeVar("T")


class EmbeddingsProvider(Embeddings):
    """
    Embeddings facade used by the rest of the service.

    Instantiated directly it resolves ``provider`` through the registry and
    delegates to that implementation, adding retries, the timeout budget and
    ``EmbeddingFailure`` wrapping. Concrete providers subclass it only to share
    the ``model_name``/``dim`` attributes and skip the delegation setup.
    """

    model_name: str
    dim: int | None

    def __init__(
        self,
        dim: int | None = None,
        provider: str = "openai",
        model_name: str | None = None,
    ):
        self.dim = dim
        self.model_name = provider
        self._impl = None

        if type(self) is not EmbeddingsProvider:
            return

        from .registry import create_embeddings_provider

        self._impl = create_embeddings_provider(
            provider=provider, dim=dim, model_name=model_name
        )
        self.dim = self._impl.dim
        self.model_name = self._impl.model_name

    def embed_documents(self, texts: List[str]) -> List[List[float]]:
        if self._impl is None:
            raise NotImplementedError(
                "embed_documents must be implemented by EmbeddingsProvider subclasses"
            )
        if not texts:
            return []
        vectors = self._guarded(
            lambda: self._impl.embed_documents(texts),
            operation=f"embed_documents[{self.model_name}]",
        )
        if len(vectors) != len(texts):
            raise EmbeddingFailure(
                f"embed_documents[{self.model_name}] returned {len(vectors)} vectors "
                f"for {len(texts)} texts"
            )
        return vectors

    def embed_query(self, text: str) -> List[float]:
        if self._impl is None:
            raise NotImplementedError(
                "embed_query must be implemented by EmbeddingsProvider subclasses"
            )
        return self._guarded(
            lambda: self._impl.embed_query(text),
            operation=f"embed_query[{self.model_name}]",
        )

    def _guarded(self, func: Callable[[], T], *, operation: str) -> T:
        policy = RetryPolicy.from_env()
        started_at = time.monotonic()
        try:
            result = retry_with_backoff(func, operation=operation, policy=policy)
            enforce_timeout_budget(
                started_at=started_at,
                timeout_seconds=policy.timeout_seconds,
                operation=operation,
            )
        except EmbeddingFailure:
            raise
        except Exception as exc:
            raise EmbeddingFailure(f"{operation} failed: {exc}", cause=exc) from exc
        return result
