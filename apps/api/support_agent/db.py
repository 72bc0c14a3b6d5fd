import os
from contextlib import contextmanager
from functools import lru_cache
from typing import Iterator

from pgvector.psycopg2 import register_vector
from psycopg2.extensions import connection as PgConnection
from psycopg2.pool import ThreadedConnectionPool
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from .config import settings


def create_pool(database_url: str | None = None) -> ThreadedConnectionPool:
    dsn = database_url or settings.database_url
    if not dsn:
        raise RuntimeError("DATABASE_URL is not set")

    min_conn = int(os.getenv("PG_POOL_MIN_CONN", "1"))
    max_conn = int(os.getenv("PG_POOL_MAX_CONN", "10"))
    connect_timeout = int(os.getenv("PG_CONNECT_TIMEOUT_SECONDS", "5"))
    return ThreadedConnectionPool(
        minconn=max(1, min_conn),
        maxconn=max(1, max_conn),
        dsn=dsn,
        connect_timeout=connect_timeout,
    )


@contextmanager
def pooled_connection(
    pool: ThreadedConnectionPool, *, vector: bool = True
) -> Iterator[PgConnection]:
    """Borrow a connection; the block runs in one transaction that commits on success."""
    conn = pool.getconn()
    try:
        if vector:
            # Registration fails until the extension exists, so schema setup opts out.
            register_vector(conn)
        with conn:
            yield conn
    finally:
        pool.putconn(conn)


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    if not settings.database_url:
        raise RuntimeError("DATABASE_URL is not set")
    return create_engine(settings.database_url, future=True, pool_pre_ping=True)


@contextmanager
def session_scope() -> Iterator[Session]:
    factory = sessionmaker(autocommit=False, autoflush=False, bind=get_engine())
    db: Session = factory()
    try:
        yield db
    finally:
        db.close()


def get_session():
    with session_scope() as db:
        yield db
