from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from urllib.parse import urlparse

from pydantic import ValidationError

from support_agent.config import Settings
from support_agent.providers.embeddings.registry import (
    normalize_embeddings_provider_id,
    supported_embeddings_provider_ids,
)

logger = logging.getLogger(__name__)

LLM_PROVIDERS = frozenset({"openai", "ollama", "ollama_local"})
LOG_FORMATS = frozenset({"json", "text"})


@dataclass
class _Report:
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def require(self, condition: bool, message: str) -> None:
        if not condition:
            self.errors.append(message)


def _is_http_url(value: str) -> bool:
    parsed = urlparse(value.strip())
    return parsed.scheme in {"http", "https"} and bool(parsed.netloc)


def _env_positive_int(report: _Report, name: str) -> int | None:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return None
    try:
        value = int(raw)
    except ValueError:
        report.errors.append(f"{name} must be an integer, got: {raw!r}")
        return None
    if value <= 0:
        report.errors.append(f"{name} must be > 0, got: {value}")
        return None
    return value


def _check_storage_and_chunking(report: _Report, cfg: Settings) -> None:
    report.require(bool((cfg.database_url or "").strip()), "DATABASE_URL is required.")
    report.require(bool(cfg.collection_name.strip()), "COLLECTION_NAME must not be blank.")
    report.require(
        cfg.chunk_overlap < cfg.chunk_size,
        f"CHUNK_OVERLAP ({cfg.chunk_overlap}) must be less than CHUNK_SIZE ({cfg.chunk_size}).",
    )
    report.require(
        cfg.log_format.strip().lower() in LOG_FORMATS,
        f"LOG_FORMAT must be json or text, got: {cfg.log_format!r}",
    )


def _check_providers(report: _Report, cfg: Settings) -> None:
    llm_provider = (cfg.llm_provider or "openai").strip().lower()
    report.require(
        llm_provider in LLM_PROVIDERS,
        f"LLM_PROVIDER must be one of [{', '.join(sorted(LLM_PROVIDERS))}], got: {llm_provider!r}",
    )

    embeddings_provider = normalize_embeddings_provider_id(cfg.embeddings_provider)
    supported = sorted(supported_embeddings_provider_ids())
    report.require(
        embeddings_provider in supported,
        f"EMBEDDINGS_PROVIDER must be one of [{', '.join(supported)}], "
        f"got: {cfg.embeddings_provider!r}",
    )

    report.require(
        _is_http_url(cfg.openai_base_url),
        f"OPENAI_BASE_URL must be a valid http(s) URL, got: {cfg.openai_base_url!r}",
    )
    if llm_provider in {"ollama", "ollama_local"}:
        ollama_base = os.getenv("OLLAMA_BASE_URL") or "http://localhost:11434"
        report.require(
            _is_http_url(ollama_base),
            f"OLLAMA_BASE_URL must be a valid http(s) URL when LLM_PROVIDER=ollama, got: {ollama_base!r}",
        )

    # Speech always goes through OpenAI, so an empty key degrades but never blocks startup.
    if not (cfg.openai_api_key or "").strip():
        if "openai" in (llm_provider, embeddings_provider):
            report.warnings.append(
                "OPENAI_API_KEY is empty; startup will continue, but OpenAI runtime calls will fail."
            )
        else:
            report.warnings.append(
                "OPENAI_API_KEY is empty; voice transcription and text-to-speech will fail."
            )


def _check_embedding_dimensions(report: _Report) -> None:
    expected = _env_positive_int(report, "EXPECTED_EMBEDDING_DIM")
    hash_dim = _env_positive_int(report, "HASH_EMBEDDING_DIM")
    if expected is not None and hash_dim is not None and expected != hash_dim:
        report.errors.append(
            "Invalid embedding dimension config: HASH_EMBEDDING_DIM "
            f"({hash_dim}) must match EXPECTED_EMBEDDING_DIM ({expected})."
        )


def validate_startup_config() -> list[str]:
    """Fail fast on invalid configuration; returns the soft warnings that were logged."""
    report = _Report()

    try:
        cfg = Settings()
    except ValidationError as exc:
        for issue in exc.errors():
            loc = ".".join(str(part) for part in issue.get("loc", ()))
            report.errors.append(f"{loc}: {issue.get('msg', 'invalid value')}")
    else:
        _check_storage_and_chunking(report, cfg)
        _check_providers(report, cfg)
    _check_embedding_dimensions(report)

    for warning in report.warnings:
        logger.warning("startup_config_warning", extra={"detail": warning})

    if report.errors:
        joined = "\n- ".join(report.errors)
        raise RuntimeError(f"Startup config validation failed:\n- {joined}")
    return report.warnings
