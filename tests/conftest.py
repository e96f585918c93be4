"""Pytest fixtures for gator tests."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import AsyncIterator, Callable, Union

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from gator.config import Settings
from gator.storage import crud
from gator.storage.db import create_engine, create_session_factory, init_db


Route = Union[str, bytes, httpx.Response, Exception]


@pytest_asyncio.fixture(scope="function")
async def test_db_engine(tmp_path) -> AsyncIterator[AsyncEngine]:
    """Create a file-backed SQLite database for testing."""
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'gator.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture(scope="function")
def test_db_sessionmaker(test_db_engine) -> async_sessionmaker[AsyncSession]:
    """Provide a session factory bound to the test engine."""
    return create_session_factory(test_db_engine)


@pytest.fixture(scope="function")
def test_settings(tmp_path) -> Settings:
    """Provide test-specific settings."""
    return Settings(
        app_env="test",
        log_level="DEBUG",
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'cli.db'}",
        config_path=tmp_path / "gatorconfig.json",
        fetch_timeout_seconds=2.0,
    )


@pytest_asyncio.fixture(scope="function")
async def make_client() -> AsyncIterator[Callable[[dict[str, Route]], httpx.AsyncClient]]:
    """Build httpx clients that serve canned responses keyed by URL."""

    clients: list[httpx.AsyncClient] = []

    def factory(routes: dict[str, Route]) -> httpx.AsyncClient:
        def handler(request: httpx.Request) -> httpx.Response:
            route = routes.get(str(request.url))
            if route is None:
                return httpx.Response(404, request=request)
            if isinstance(route, Exception):
                raise route
            if isinstance(route, httpx.Response):
                return route
            content = route.encode() if isinstance(route, str) else route
            return httpx.Response(200, content=content, headers={"Content-Type": "application/rss+xml"})

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        clients.append(client)
        return client

    yield factory
    for client in clients:
        await client.aclose()


@pytest_asyncio.fixture(scope="function")
async def add_feed(test_db_sessionmaker):
    """Create a feed (and its owner on first use), optionally already fetched."""

    async def factory(name: str, url: str, *, fetched_ago: timedelta | None = None):
        async with test_db_sessionmaker() as session:
            user = await crud.get_user_by_name(session, "owner")
            if user is None:
                user = await crud.create_user(session, "owner")
            feed = await crud.create_feed(session, name=name, url=url, user=user)
            if fetched_ago is not None:
                await crud.mark_feed_fetched(session, feed.id, datetime.now(timezone.utc) - fetched_ago)
            await session.commit()
            return feed

    return factory
