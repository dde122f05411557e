"""Database engine and session factory.

One engine per process. Request handlers get a session through ``get_db``;
work that runs outside a request (statistics reads in a worker thread, the
attachment migration script) opens its own session from ``SessionLocal``.
"""

from typing import Any, Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from .config import get_settings


def build_engine(url: str) -> Engine:
    """Create an engine with pool settings suited to the backend.

    SQLite connections are shared with executor threads, so the same-thread
    check is disabled there; PostgreSQL gets a bounded pool with pre-ping.
    """
    kwargs: dict[str, Any] = {"pool_pre_ping": True}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
    else:
        kwargs["pool_size"] = 5
        kwargs["max_overflow"] = 10
    return create_engine(url, **kwargs)


engine = build_engine(get_settings().DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    """FastAPI dependency: one session per request, always closed.

    Services commit explicitly; nothing is committed here.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
