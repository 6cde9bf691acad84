"""Database configuration for the expense API backend."""
from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from fastapi import Request
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from .logging import setup_logger

LOG = setup_logger(__name__)

Base = declarative_base()


class DatabaseUnavailableError(RuntimeError):
    """Raised when the persistence layer cannot be reached at startup."""


def mask_url(url: str) -> str:
    """Return ``url`` with any password replaced, safe for log output."""

    return make_url(url).render_as_string(hide_password=True)


class Database:
    """Process-wide handle on the engine and its session factory.

    One instance is created per application and shared read-only by every
    request; sessions are short-lived and borrowed through :meth:`session`.
    """

    def __init__(self, url: str, **engine_kwargs: Any) -> None:
        if url.startswith("sqlite"):
            connect_args = engine_kwargs.setdefault("connect_args", {})
            connect_args.setdefault("check_same_thread", False)
        self.url = url
        self.engine: Engine = create_engine(url, **engine_kwargs)
        self._session_factory = sessionmaker(
            bind=self.engine, autocommit=False, autoflush=False, expire_on_commit=False
        )

    def init(self) -> None:
        """Verify connectivity and create missing tables.

        Raises:
          DatabaseUnavailableError: If the database cannot be reached.
        """

        from . import models  # noqa: F401  # Register models on the metadata

        try:
            with self.engine.connect() as connection:
                connection.execute(text("SELECT 1"))
            Base.metadata.create_all(bind=self.engine)
        except SQLAlchemyError as exc:
            LOG.error("Database connection error for %s: %s", mask_url(self.url), exc)
            raise DatabaseUnavailableError(f"Cannot reach database: {exc}") from exc
        LOG.info("Database connected successfully (%s)", mask_url(self.url))

    def dispose(self) -> None:
        self.engine.dispose()

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Provide a transactional scope around a series of operations."""
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()


def get_db(request: Request) -> Iterator[Session]:
    """FastAPI dependency that provides a database session."""
    database: Database = request.app.state.database
    with database.session() as session:
        yield session


__all__ = ["Base", "Database", "DatabaseUnavailableError", "get_db", "mask_url"]
