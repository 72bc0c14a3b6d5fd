from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from psycopg2.pool import ThreadedConnectionPool

from support_agent.config import Settings, settings as default_settings
from support_agent.db import create_pool
from support_agent.ingest.chunker import ChunkConfig
from support_agent.providers.factory import (
    get_embeddings_provider,
    get_llm_provider,
    get_speech_provider,
)
from support_agent.rag.documents import DocumentManager
from support_agent.rag.vector_store import PgVectorStore


@dataclass
class Services:
    """Long-lived collaborators shared by every request of one process."""

    pool: ThreadedConnectionPool | None
    store: PgVectorStore | None
    document_manager: DocumentManager
    llm: Any = None
    speech: Any = None

    def close(self) -> None:
        if self.pool is not None:
            self.pool.closeall()


def build_document_manager(
    cfg: Settings | None = None,
) -> tuple[ThreadedConnectionPool, PgVectorStore, DocumentManager]:
    cfg = cfg or default_settings
    pool = create_pool(cfg.database_url)
    store = PgVectorStore(pool, collection_name=cfg.collection_name)
    manager = DocumentManager(
        store,
        get_embeddings_provider(),
        chunk_config=ChunkConfig(chunk_size=cfg.chunk_size, overlap=cfg.chunk_overlap),
    )
    return pool, store, manager


def build_services(cfg: Settings | None = None) -> Services:
    cfg = cfg or default_settings
    pool, store, manager = build_document_manager(cfg)
    return Services(
        pool=pool,
        store=store,
        document_manager=manager,
        llm=get_llm_provider(),
        speech=get_speech_provider(),
    )
