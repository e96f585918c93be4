"""Database engine and initialization utilities."""

from __future__ import annotations

import argparse
import asyncio

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from ..config import get_settings, resolve_database_url
from .models import Base


def create_engine(database_url: str) -> AsyncEngine:
    """Create an async SQLAlchemy engine for ``database_url``."""

    engine = create_async_engine(database_url, echo=False, future=True, pool_pre_ping=True)
    if engine.dialect.name == "sqlite":
        # SQLite ignores ON DELETE CASCADE unless foreign keys are switched on per connection.
        @event.listens_for(engine.sync_engine, "connect")
        def _enable_foreign_keys(dbapi_connection, _record) -> None:
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False)


async def init_db(engine: AsyncEngine) -> None:
    """Create database tables."""

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def drop_db(engine: AsyncEngine) -> None:
    """Drop database tables."""

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


async def _manage(database_url: str, *, drop: bool) -> None:
    engine = create_engine(database_url)
    try:
        if drop:
            await drop_db(engine)
        else:
            await init_db(engine)
    finally:
        await engine.dispose()


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="gator DB utilities")
    parser.add_argument("--init", action="store_true", help="Create database tables")
    parser.add_argument("--drop", action="store_true", help="Drop database tables")
    parser.add_argument("--url", default=None, help="Database URL (defaults to configured URL)")
    return parser.parse_args()


def main() -> None:
    args = _parse_args()
    url = args.url or resolve_database_url(get_settings())
    if args.init:
        asyncio.run(_manage(url, drop=False))
    elif args.drop:
        asyncio.run(_manage(url, drop=True))
    else:
        raise SystemExit("Specify --init or --drop to manage the schema.")


if __name__ == "__main__":
    main()
