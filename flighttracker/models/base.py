"""
SQLAlchemy base configuration and engine construction.

Uses SQLAlchemy 2.0 style with type hints and declarative base.
Designed to be portable between SQLite (dev) and PostgreSQL (prod).
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker
from sqlalchemy.pool import StaticPool


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


def utcnow() -> datetime:
    """Current time as naive UTC, the form stored in timestamp columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Normalize a datetime to naive UTC.

    SQLite drops tzinfo on read, so everything compared in memory must
    be naive UTC as well. Naive inputs are assumed to be UTC already.
    """
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def is_memory_url(url: str) -> bool:
    """True for SQLite URLs that name a private in-memory database."""
    return url in ('sqlite://', 'sqlite:///:memory:')


def build_engine(url: str, echo: bool = False) -> Engine:
    """Create an engine configured for the database type behind ``url``."""
    engine_kwargs = {
        'echo': echo,  # Log SQL in debug mode
    }

    is_sqlite = url.startswith('sqlite')
    if is_sqlite:
        engine_kwargs['connect_args'] = {'check_same_thread': False}
        if is_memory_url(url):
            # Every new connection would otherwise get its own empty database.
            # All threads share this one connection, so sessions on it must
            # not overlap (TrackerStore serializes them).
            engine_kwargs['poolclass'] = StaticPool

    engine = create_engine(url, **engine_kwargs)

    if is_sqlite:
        @event.listens_for(engine, 'connect')
        def set_sqlite_pragma(dbapi_connection, connection_record):
            """
            Configure SQLite for concurrent reads and referential integrity.

            WAL mode allows request handlers to read while the refresher
            is appending observations.
            """
            cursor = dbapi_connection.cursor()
            # Write-Ahead Logging for concurrent access
            cursor.execute('PRAGMA journal_mode=WAL')
            # Synchronous=NORMAL balances safety and speed
            cursor.execute('PRAGMA synchronous=NORMAL')
            # Observations must reference an existing passenger
            cursor.execute('PRAGMA foreign_keys=ON')
            cursor.close()

    return engine


def build_session_factory(engine: Engine) -> sessionmaker:
    """Session factory bound to ``engine``."""
    return sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,  # Returned rows are used after the session closes
    )
