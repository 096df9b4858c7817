from __future__ import annotations

from collections.abc import Generator
from contextlib import contextmanager
from typing import Any

from loguru import logger
from sqlalchemy import create_engine, text
from sqlalchemy.orm import Session, sessionmaker

from config import get_settings
from tutorcore.db.models.base import Base

settings = get_settings()


def _engine_options(url: str) -> dict[str, Any]:
    """Engine keyword arguments for a connection URL."""
    options: dict[str, Any] = {"echo": settings.log_level == "DEBUG", "pool_pre_ping": True}
    if url.startswith("sqlite"):
        # Request-scoped sessions may be opened on a worker thread
        options["connect_args"] = {"check_same_thread": False}
    return options


# Sync engine/session
engine = create_engine(settings.database_url, **_engine_options(settings.database_url))
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)


def init_db() -> None:
    """Initialize database tables."""
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables initialized")


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """Provide a transactional scope around a series of operations."""
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def get_session() -> Generator[Session, None, None]:
    """FastAPI dependency for database sessions."""
    with session_scope() as session:
        yield session


def check_connection() -> dict[str, Any]:
    """
    Probe the learner store.

    Returns dict with:
        - connected: bool
        - dialect: engine dialect name
        - error: str if the probe failed
    """
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return {"connected": True, "dialect": engine.dialect.name}
    except Exception as e:
        logger.warning(f"Database connection check failed: {e}")
        return {"connected": False, "dialect": engine.dialect.name, "error": str(e)}
