"""Database session management with connection pooling"""

from functools import lru_cache
from typing import Generator

from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session

from royalty_service.infrastructure.database.models import Base


@lru_cache(maxsize=None)
def get_engine(database_url: str) -> Engine:
    """One pooled engine per database URL"""
    if database_url.startswith("sqlite"):
        return create_engine(database_url, connect_args={"check_same_thread": False})

    # Recycle after 1 hour to avoid stale connections
    return create_engine(
        database_url,
        pool_pre_ping=True,
        pool_size=10,
        max_overflow=10,
        pool_recycle=3600,
    )


@lru_cache(maxsize=None)
def get_session_factory(database_url: str) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=get_engine(database_url))


def init_db(database_url: str) -> None:
    """Create tables that do not exist yet"""
    Base.metadata.create_all(bind=get_engine(database_url))


def get_db(request: Request) -> Generator[Session, None, None]:
    """Dependency injection for database sessions"""
    factory = get_session_factory(request.app.state.settings.database_url)
    db = factory()
    try:
        yield db
    finally:
        db.close()
