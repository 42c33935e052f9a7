"""
Database configuration and initialization for the HTTP Request Robot.

Stores OAuth credentials, accounts and request logs with SQLAlchemy ORM.
SQLite is the default backend; any SQLAlchemy URL can be configured.
"""

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase

from .config import get_settings


def build_engine(database_url: str) -> Engine:
    """Create an engine, enabling SQLite-specific options when needed."""
    is_sqlite = database_url.startswith("sqlite")
    connect_args = {"check_same_thread": False} if is_sqlite else {}
    new_engine = create_engine(database_url, connect_args=connect_args, echo=False)

    if is_sqlite:
        # Enable foreign key support for SQLite
        @event.listens_for(new_engine, "connect")
        def set_sqlite_pragma(dbapi_connection, connection_record):
            """Enable foreign key constraints for SQLite connections."""
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return new_engine


engine = build_engine(get_settings().database_url)

# Session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


def init_db(bind: Engine | None = None):
    """
    Initialize the database by creating all tables.

    Called at application startup; existing tables are left untouched.
    """
    # Import models so they register with Base.metadata
    from . import models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
