# src/refrate/adapters/persistence/db.py
"""
Database - Engine and Session Management

Wraps a SQLAlchemy engine and session factory for the relational store that
holds orders, dispatch events, the historical rate table and statistics rows.

Files that USE this module:
- refrate.adapters.persistence.repositories (all repositories take a Database)
- refrate.app (builds the Database from settings)
- tests.conftest (in-memory sqlite database)

Files that this module USES:
- refrate.adapters.persistence.tables (metadata for create_all)
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Dict, Generator

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from refrate.adapters.persistence.tables import metadata

log = logging.getLogger(__name__)


def _engine_options(url: str) -> Dict[str, Any]:
    if not url.startswith("sqlite"):
        return {"pool_pre_ping": True, "pool_size": 5, "max_overflow": 10}
    options: Dict[str, Any] = {"connect_args": {"check_same_thread": False}}
    if ":memory:" in url or url.rstrip("/") == "sqlite:":
        # One shared connection, otherwise every checkout sees an empty database
        options["poolclass"] = StaticPool
    return options


class Database:
    """Engine plus session factory for one database URL."""

    def __init__(self, url: str, echo: bool = False):
        self.url = url
        self.engine: Engine = create_engine(url, echo=echo, future=True, **_engine_options(url))
        self._session_factory = sessionmaker(
            bind=self.engine,
            autoflush=False,
            autocommit=False,
            expire_on_commit=False,
            future=True,
        )

    @contextmanager
    def session_scope(self) -> Generator[Session, None, None]:
        """
        Transactional scope: commits on success, rolls back on any error.

        Yields:
            Session bound to this database
        """
        session: Session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def create_all(self) -> None:
        """Create any missing tables."""
        metadata.create_all(self.engine)
        log.info("Database schema ensured at %s", self.engine.url.render_as_string(hide_password=True))

    def health_check(self) -> bool:
        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True

    def dispose(self) -> None:
        self.engine.dispose()
