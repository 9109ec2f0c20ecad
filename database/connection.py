"""
Database connection and session management.
"""
import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy import event
from sqlalchemy.engine.url import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from config.settings import settings
from .models import Base


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    """SQLite only honours ON DELETE CASCADE with this pragma set."""
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(database_url: str, **kwargs) -> AsyncEngine:
    """
    Create an async engine for the given URL.

    SQLite URLs get foreign-key enforcement switched on and the parent
    directory of file databases created.
    """
    url = make_url(database_url)
    is_sqlite = url.get_backend_name() == "sqlite"

    if is_sqlite and url.database and url.database != ":memory:":
        directory = os.path.dirname(url.database)
        if directory:
            os.makedirs(directory, exist_ok=True)
    elif not is_sqlite:
        kwargs.setdefault("pool_pre_ping", True)
        kwargs.setdefault("pool_recycle", 3600)

    new_engine = create_async_engine(database_url, **kwargs)

    if is_sqlite:
        event.listen(new_engine.sync_engine, "connect", _enable_sqlite_foreign_keys)

    return new_engine


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory used by both the app and the tests."""
    return async_sessionmaker(
        bind=bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


# Create engine
engine = build_engine(settings.database_url, echo=settings.debug)

# Create session factory
SessionLocal = build_session_factory(engine)


async def init_db(bind: AsyncEngine | None = None):
    """Initialize database by creating all tables."""
    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Get database session.
    Use as dependency injection in FastAPI.
    """
    async with SessionLocal() as db:
        yield db


@asynccontextmanager
async def get_db_context():
    """
    Context manager for database session.
    Use for non-FastAPI contexts.
    """
    async with SessionLocal() as db:
        try:
            yield db
            await db.commit()
        except Exception:
            await db.rollback()
            raise
