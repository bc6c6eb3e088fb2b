"""
SQLAlchemy base configuration and session management.

Uses SQLAlchemy 2.0 style with type hints and declarative base.
The engine and session factory live on a Database object that is handed
to each component at construction time rather than a module global.
"""

import logging
from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker, Session

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


def _set_sqlite_pragma(dbapi_connection, connection_record):
    """
    Configure SQLite for concurrent access.

    WAL mode allows the tracking poll loop to read while the
    collection job writes.
    """
    cursor = dbapi_connection.cursor()
    cursor.execute('PRAGMA journal_mode=WAL')
    cursor.execute('PRAGMA synchronous=NORMAL')
    cursor.execute('PRAGMA foreign_keys=ON')
    cursor.close()


class Database:
    """
    Handle to the local relational store.

    Owns the engine and session factory. Each statement issued through
    a session is atomic; no transaction spans more than one logical step.
    """

    def __init__(self, url: str, echo: bool = False, engine: Optional[Engine] = None):
        self.url = url

        if engine is None:
            engine_kwargs = {'echo': echo}
            if url.startswith('sqlite'):
                # Accessed from the poll thread and the job threads
                engine_kwargs['connect_args'] = {'check_same_thread': False}
            engine = create_engine(url, **engine_kwargs)

            if url.startswith('sqlite'):
                event.listen(engine, 'connect', _set_sqlite_pragma)

        self.engine = engine
        self.SessionLocal = sessionmaker(
            bind=engine,
            autocommit=False,
            autoflush=False,
            expire_on_commit=False,  # Records are read after the session closes
        )

    @classmethod
    def from_config(cls, app_config=None) -> 'Database':
        """Create a database handle from application configuration."""
        if app_config is None:
            from flighttracker.config import config as app_config
        return cls(app_config.database.url, echo=app_config.debug)

    @contextmanager
    def session(self) -> Generator[Session, None, None]:
        """
        Context manager for database sessions.

        Usage:
            with database.session() as session:
                session.execute(...)

        Automatically handles commit/rollback and session cleanup.
        """
        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def init_schema(self) -> None:
        """
        Initialize database schema.

        Creates all tables if they don't exist.
        """
        # Import models so they register with the metadata
        from flighttracker.models import flight_record, route_statistic, collection_state  # noqa: F401

        Base.metadata.create_all(bind=self.engine)
        logger.debug(f'Schema ready at {self.url}')

    def dispose(self) -> None:
        self.engine.dispose()
