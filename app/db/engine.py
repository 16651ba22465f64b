"""Async SQLAlchemy engine and session factory."""

from __future__ import annotations

from pathlib import Path

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from app.config import get_settings

_settings = get_settings()


def build_engine(database_url: str) -> AsyncEngine:
    """Create an engine; SQLite files get their directory and FK enforcement."""
    if database_url.startswith("sqlite+aiosqlite:///") and ":memory:" not in database_url:
        db_path = database_url.replace("sqlite+aiosqlite:///", "")
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    eng = create_async_engine(database_url, echo=False)

    if eng.dialect.name == "sqlite":
        @event.listens_for(eng.sync_engine, "connect")
        def _sqlite_pragmas(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return eng


def build_session_factory(eng: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(eng, class_=AsyncSession, expire_on_commit=False)


engine = build_engine(_settings.database_url)
async_session_factory = build_session_factory(engine)


async def get_db():
    """FastAPI dependency that yields an async DB session."""
    async with async_session_factory() as session:
        yield session


async def create_all(eng: AsyncEngine = engine) -> None:
    from app.models import Base

    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
