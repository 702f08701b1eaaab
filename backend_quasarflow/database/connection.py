"""
Database connection and session management.

One Database per application: an engine (pooled, pre-ping) plus a session
factory. DATABASE_URL selects the backend; SQLite URLs get check_same_thread
disabled because sessions are used from the request thread pool.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from backend_quasarflow.database.models import Base
from backend_quasarflow.logging import get_logger

logger = get_logger(__name__)


def _redact(url: str) -> str:
    """Drop credentials and query string for logging."""
    return url.split("?")[0].split("@")[-1].split("//")[-1]


class Database:
    def __init__(self, url: str) -> None:
        self.url = url
        connect_args = {}
        if url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine = create_engine(url, connect_args=connect_args, pool_pre_ping=True)
        self._session_factory = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)
        logger.info("database_engine_created", url=_redact(url))

    def init_db(self) -> None:
        """Create tables if they do not exist. Safe to call on every startup."""
        Base.metadata.create_all(bind=self.engine)
        logger.info("database_init", url=_redact(self.url))

    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        """Context manager for a single session. Commits on success, rolls back on error."""
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def ping(self) -> bool:
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError as e:
            logger.warning("database_ping_failed", error=str(e))
            return False

    def dispose(self) -> None:
        self.engine.dispose()
