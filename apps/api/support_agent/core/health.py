from __future__ import annotations

import os
import time
from threading import Lock
from typing import Any, Callable

from sqlalchemy import text

from support_agent.db import session_scope
from support_agent.providers.factory import get_embeddings_provider, get_llm_provider
from support_agent.providers.llm import OpenAILLM

ReadinessCheck = Callable[[], None]


def _readiness_cache_ttl_seconds() -> float:
    try:
        return max(0.0, float(os.getenv("READINESS_CACHE_TTL_SECONDS", "5")))
    except ValueError:
        return 5.0


def check_database() -> None:
    with session_scope() as session:
        session.execute(text("SELECT 1")).scalar_one()


def check_vector_extension() -> None:
    with session_scope() as session:
        installed = session.execute(
            text("SELECT extversion FROM pg_extension WHERE extname = 'vector'")
        ).scalar()
    if installed is None:
        raise RuntimeError("pgvector extension is not installed")


def check_embeddings_provider() -> None:
    provider = get_embeddings_provider()
    if not provider.dim or provider.dim <= 0:
        raise RuntimeError(
            f"Embeddings provider {provider.model_name!r} has no known dimension"
        )
    expected = os.getenv("EXPECTED_EMBEDDING_DIM")
    if expected and provider.dim != int(expected):
        raise RuntimeError(
            f"Embeddings provider dimension {provider.dim} does not match expected {expected}"
        )


def check_llm_provider() -> None:
    llm = get_llm_provider()
    if isinstance(llm, OpenAILLM) and not llm.api_key:
        raise RuntimeError("OPENAI_API_KEY is not set; chat answers will fail")


def readiness_checks() -> dict[str, ReadinessCheck]:
    return {
        "database": check_database,
        "pgvector": check_vector_extension,
        "embeddings_provider": check_embeddings_provider,
        "llm_provider": check_llm_provider,
    }


def run_readiness_checks() -> dict[str, Any]:
    checks: dict[str, dict[str, Any]] = {}
    for name, check_fn in readiness_checks().items():
        started_at = time.perf_counter()
        try:
            check_fn()
        except Exception as exc:
            result: dict[str, Any] = {"status": "error", "message": str(exc)}
        else:
            result = {"status": "ok"}
        result["duration_ms"] = int((time.perf_counter() - started_at) * 1000)
        checks[name] = result

    ok = all(item["status"] == "ok" for item in checks.values())
    return {"status": "ok" if ok else "degraded", "checks": checks}


class _ReadinessCache:
    """Last readiness payload, reused for a short TTL so probes stay cheap."""

    def __init__(self) -> None:
        self.lock = Lock()
        self.checked_at = 0.0
        self.payload: dict[str, Any] | None = None

    def get(self, *, force: bool) -> dict[str, Any]:
        with self.lock:
            now = time.monotonic()
            fresh = (now - self.checked_at) < _readiness_cache_ttl_seconds()
            if self.payload is not None and fresh and not force:
                return self.payload
            self.payload = run_readiness_checks()
            self.checked_at = now
            return self.payload

    def clear(self) -> None:
        with self.lock:
            self.checked_at = 0.0
            self.payload = None


_cache = _ReadinessCache()


def get_readiness_payload(force: bool = False) -> dict[str, Any]:
    return _cache.get(force=force)


def reset_readiness_cache() -> None:
    _cache.clear()
