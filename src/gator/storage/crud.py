"""CRUD helpers for database operations."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import delete, select, update
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..errors import NoFeedsError, NotFoundError, UniqueConstraintError
from .models import Feed, FeedFollow, Post, User


# Dialects whose INSERT supports ON CONFLICT DO NOTHING ... RETURNING.
_CONFLICT_INSERTS = {
    "postgresql": postgresql_insert,
    "sqlite": sqlite_insert,
}


async def get_user_by_name(session: AsyncSession, name: str) -> Optional[User]:
    result = await session.execute(select(User).where(User.name == name))
    return result.scalar_one_or_none()


async def create_user(session: AsyncSession, name: str) -> User:
    if await get_user_by_name(session, name) is not None:
        raise UniqueConstraintError("user", name)
    user = User(name=name)
    session.add(user)
    await session.flush()
    return user


async def list_users(session: AsyncSession) -> list[User]:
    result = await session.execute(select(User).order_by(User.name))
    return list(result.scalars())


async def reset_users(session: AsyncSession) -> None:
    """Delete every user; feeds, follows and posts go with them."""

    await session.execute(delete(User))


async def get_feed(session: AsyncSession, feed_id: uuid.UUID) -> Feed:
    feed = await session.get(Feed, feed_id)
    if feed is None:
        raise NotFoundError(f"feed not found: {feed_id}")
    return feed


async def get_feed_by_url(session: AsyncSession, url: str) -> Optional[Feed]:
    result = await session.execute(select(Feed).where(Feed.url == url))
    return result.scalar_one_or_none()


async def create_feed(session: AsyncSession, *, name: str, url: str, user: User) -> Feed:
    if await get_feed_by_url(session, url) is not None:
        raise UniqueConstraintError("feed", url)
    feed = Feed(name=name, url=url, user_id=user.id)
    session.add(feed)
    await session.flush()
    return feed


async def list_feeds(session: AsyncSession) -> list[Feed]:
    stmt = select(Feed).options(selectinload(Feed.user)).order_by(Feed.created_at)
    result = await session.execute(stmt)
    return list(result.scalars())


async def select_next_feed_to_fetch(session: AsyncSession) -> Feed:
    """Return the feed fetched longest ago, never-fetched feeds first."""

    stmt = (
        select(Feed)
        .order_by(Feed.last_fetched_at.asc().nulls_first(), Feed.created_at.asc())
        .limit(1)
    )
    result = await session.execute(stmt)
    feed = result.scalar_one_or_none()
    if feed is None:
        raise NoFeedsError()
    return feed


async def mark_feed_fetched(session: AsyncSession, feed_id: uuid.UUID, fetched_at: datetime) -> None:
    result = await session.execute(
        update(Feed)
        .where(Feed.id == feed_id)
        .values(last_fetched_at=fetched_at, updated_at=fetched_at)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise NotFoundError(f"feed not found: {feed_id}")


async def create_feed_follow(session: AsyncSession, *, user: User, feed: Feed) -> FeedFollow:
    existing = await session.execute(
        select(FeedFollow).where(FeedFollow.user_id == user.id, FeedFollow.feed_id == feed.id)
    )
    if existing.scalar_one_or_none() is not None:
        raise UniqueConstraintError("feed follow", f"{user.name} -> {feed.url}")
    follow = FeedFollow(user_id=user.id, feed_id=feed.id)
    session.add(follow)
    await session.flush()
    return follow


async def delete_feed_follow(session: AsyncSession, *, user: User, feed: Feed) -> None:
    result = await session.execute(
        delete(FeedFollow).where(FeedFollow.user_id == user.id, FeedFollow.feed_id == feed.id)
    )
    if result.rowcount == 0:
        raise NotFoundError(f"{user.name} does not follow {feed.url}")


async def list_feed_follows_for_user(session: AsyncSession, user: User) -> list[FeedFollow]:
    stmt = (
        select(FeedFollow)
        .where(FeedFollow.user_id == user.id)
        .options(selectinload(FeedFollow.feed))
        .order_by(FeedFollow.created_at)
    )
    result = await session.execute(stmt)
    return list(result.scalars())


async def create_post(
    session: AsyncSession,
    *,
    post_id: uuid.UUID,
    created_at: datetime,
    updated_at: datetime,
    title: Optional[str],
    url: str,
    description: Optional[str],
    published_at: Optional[datetime],
    feed_id: uuid.UUID,
) -> Post:
    """Insert a post, raising UniqueConstraintError if its URL is already stored."""

    values = {
        "id": post_id,
        "created_at": created_at,
        "updated_at": updated_at,
        "title": title,
        "url": url,
        "description": description,
        "published_at": published_at,
        "feed_id": feed_id,
    }
    conflict_insert = _CONFLICT_INSERTS.get(session.get_bind().dialect.name)
    if conflict_insert is None:
        post = Post(**values)
        session.add(post)
        await session.flush()
        return post

    stmt = (
        conflict_insert(Post)
        .values(**values)
        .on_conflict_do_nothing(index_elements=["url"])
        .returning(Post)
    )
    post = (await session.scalars(stmt)).one_or_none()
    if post is None:
        raise UniqueConstraintError("post", url)
    return post


async def list_posts_for_user(session: AsyncSession, user: User, *, limit: int = 2) -> list[Post]:
    """Newest posts from the feeds ``user`` follows."""

    stmt = (
        select(Post)
        .join(FeedFollow, FeedFollow.feed_id == Post.feed_id)
        .where(FeedFollow.user_id == user.id)
        .options(selectinload(Post.feed))
        .order_by(Post.published_at.desc().nulls_last(), Post.created_at.desc())
        .limit(limit)
    )
    result = await session.execute(stmt)
    return list(result.scalars())
