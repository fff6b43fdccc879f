"""Core database access helpers with connection pooling.

Provides a pooled engine + SessionLocal for app use, plus a `get_db` dependency that
guarantees cleanup.
"""

from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool

from socialapp.core.config import settings
from socialapp.models.base import Base


def build_engine(database_url: str) -> Engine:
    """Construct a SQLAlchemy engine with pooling tuned per backend."""
    if database_url.startswith("sqlite"):
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            pool_pre_ping=True,
            echo=False,
        )

    connect_args = {}
    if "postgresql" in database_url:
        connect_args = {
            "options": "-c timezone=utc",
            "application_name": "socialapp",
            "connect_timeout": 10,
        }

    return create_engine(
        database_url,
        poolclass=QueuePool,
        pool_size=20,
        max_overflow=10,
        pool_timeout=30,
        pool_recycle=3600,
        pool_pre_ping=True,
        echo=False,
        pool_reset_on_return="rollback",
        connect_args=connect_args,
    )


SQLALCHEMY_DATABASE_URL = settings.get_database_url(
    use_test=settings.environment.lower() == "test"
)

# Application engine
engine = build_engine(SQLALCHEMY_DATABASE_URL)

# Session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    """Provide a database session with guaranteed close."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


from .query_helpers import (  # noqa: E402
    build_page_meta,
    page_window,
    paginate_query,
)

__all__ = [
    "Base",
    "SessionLocal",
    "engine",
    "get_db",
    "build_engine",
    "paginate_query",
    "page_window",
    "build_page_meta",
]
