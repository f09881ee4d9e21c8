from __future__ import annotations

from collections.abc import AsyncIterator

from fastapi import Request
from sqlalchemy import event
from sqlalchemy.engine import URL, make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from recuerdos.core.config import Settings


class Base(DeclarativeBase):
    pass


def async_database_url(settings: Settings) -> URL:
    url = make_url(settings.DATABASE_URL)
    if url.drivername in {"postgres", "postgresql", "postgresql+psycopg2"}:
        url = url.set(drivername="postgresql+asyncpg")
    return url


def engine_connect_args(settings: Settings) -> dict:
    url = async_database_url(settings)
    if url.get_backend_name() != "postgresql" or url.get_driver_name() != "asyncpg":
        return {}
    requires_ssl = url.host is not None and url.host.endswith("supabase.com")
    return {
        "statement_cache_size": 0,  # required for Supabase pooler compatibility
        "ssl": "require" if requires_ssl else False,
        "command_timeout": settings.DB_COMMAND_TIMEOUT_SECONDS,
    }


def create_engine(settings: Settings) -> AsyncEngine:
    url = async_database_url(settings)
    kwargs = {"echo": False, "connect_args": engine_connect_args(settings)}
    if url.get_backend_name() != "sqlite":
        kwargs["pool_timeout"] = settings.DB_POOL_TIMEOUT_SECONDS
        kwargs["pool_pre_ping"] = True
    engine = create_async_engine(url, **kwargs)

    if url.get_backend_name() == "sqlite":
        # sqlite leaves foreign keys (and ON DELETE CASCADE) off per connection
        @event.listens_for(engine.sync_engine, "connect")
        def _enable_sqlite_foreign_keys(dbapi_connection, _record) -> None:
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return engine


def create_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False)


async def create_tables(engine: AsyncEngine) -> None:
    from recuerdos import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_db(request: Request) -> AsyncIterator[AsyncSession]:
    async with request.app.state.sessionmaker() as session:
        yield session
