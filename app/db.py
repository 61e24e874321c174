# app/db.py
from collections.abc import AsyncIterator

from sqlalchemy.engine.url import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from app.core.config import settings

engine: AsyncEngine
SessionLocal: async_sessionmaker[AsyncSession]

_SYNC_SCHEMES = ("postgresql+psycopg2://", "postgresql+psycopg://", "postgresql://", "postgres://")


def to_asyncpg_url(database_url: str) -> str:
    """Rewrite sync/bare Postgres URLs to the asyncpg driver used by the app."""
    for scheme in _SYNC_SCHEMES:
        if database_url.startswith(scheme):
            return "postgresql+asyncpg://" + database_url[len(scheme) :]
    return database_url


def _create_engine(database_url: str) -> AsyncEngine:
    url = make_url(database_url)
    connect_args = {}

    # asyncpg takes ssl via connect_args and rejects libpq-only options
    if url.get_backend_name() == "postgresql" and url.get_driver_name() == "asyncpg":
        query = dict(url.query)
        if "sslmode" in query:
            connect_args["ssl"] = query.pop("sslmode")
        query.pop("channel_binding", None)
        url = url._replace(query=query)

    return create_async_engine(url, pool_pre_ping=True, connect_args=connect_args)


def configure_engine(database_url: str | None = None) -> None:
    """Configure SQLAlchemy engine and session factory."""

    global engine, SessionLocal

    engine = _create_engine(to_asyncpg_url(database_url or settings.database_url))
    SessionLocal = async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def get_async_session() -> AsyncIterator[AsyncSession]:
    async with SessionLocal() as session:
        yield session


configure_engine()
