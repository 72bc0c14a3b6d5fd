from __future__ import annotations

import os
from typing import Iterable

CANONICAL_EMBEDDINGS_PROVIDER_IDS = (
    "openai",
    "hash",
    "sentence-transformers",
    "tei",
)

EMBEDDINGS_PROVIDER_ALIASES = {
    "openai-embeddings": "openai",
    "hf_local": "sentence-transformers",
    "sentence_transformers": "sentence-transformers",
}


def normalize_embeddings_provider_id(provider: str) -> str:
    provider_id = (provider or "").strip().lower()
    provider_id = EMBEDDINGS_PROVIDER_ALIASES.get(provider_id, provider_id)
    return provider_id


def supported_embeddings_provider_ids() -> Iterable[str]:
    return CANONICAL_EMBEDDINGS_PROVIDER_IDS


def create_embeddings_provider(
    *, provider: str, dim: int | None = None, model_name: str | None = None
):
    provider_id = normalize_embeddings_provider_id(provider)

    if provider_id == "openai":
        from support_agent.config import settings

        from .openai import OpenAIEmbeddings

        return OpenAIEmbeddings(
            api_key=settings.openai_api_key,
            base_url=settings.openai_base_url,
            model_name=model_name or settings.embedding_model,
            dim=dim,
        )

    if provider_id == "hash":
        from .hash import HashEmbeddings

        default_dim = int(os.getenv("HASH_EMBEDDING_DIM", "384"))
        return HashEmbeddings(dim=dim or default_dim)

    if provider_id == "sentence-transformers":
        from .sentence_transformer import SentenceTransformerEmbeddings

        return SentenceTransformerEmbeddings(
            model_name=model_name
            or os.getenv("HF_EMBEDDING_MODEL", "sentence-transformers/all-MiniLM-L6-v2")
        )

    if provider_id == "tei":
        from .tei import TEIEmbeddings

        return TEIEmbeddings(
            base_url=os.getenv("TEI_BASE_URL", "http://localhost:8000"),
            dim=dim or int(os.getenv("TEI_EMBEDDING_DIM", "384")),
            model_name=model_name or os.getenv("TEI_EMBEDDING_NAME", "tei"),
        )

    raise ValueError(f"Unknown embeddings provider: {provider}")
