"""SQLAlchemy models for gator."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import DateTime, ForeignKey, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Declarative base class."""


class TimestampMixin:
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)


class User(TimestampMixin, Base):
    """Registered user."""

    __tablename__ = "users"

    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)

    feeds: Mapped[List["Feed"]] = relationship(
        "Feed", back_populates="user", cascade="all, delete-orphan", passive_deletes=True
    )


class Feed(TimestampMixin, Base):
    """Subscribed RSS source."""

    __tablename__ = "feeds"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    url: Mapped[str] = mapped_column(String(2048), unique=True, nullable=False)
    user_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    last_fetched_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True, index=True)

    user: Mapped[User] = relationship("User", back_populates="feeds")
    posts: Mapped[List["Post"]] = relationship(
        "Post", back_populates="feed", cascade="all, delete-orphan", passive_deletes=True
    )


class FeedFollow(TimestampMixin, Base):
    """A user's subscription to a feed."""

    __tablename__ = "feed_follows"
    __table_args__ = (UniqueConstraint("user_id", "feed_id", name="uq_feed_follow_user_feed"),)

    user_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    feed_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("feeds.id", ondelete="CASCADE"), index=True)

    user: Mapped[User] = relationship("User")
    feed: Mapped[Feed] = relationship("Feed")


class Post(TimestampMixin, Base):
    """Item ingested from a feed, unique by URL."""

    __tablename__ = "posts"

    title: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    url: Mapped[str] = mapped_column(String(2048), unique=True, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    published_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True, index=True)
    feed_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("feeds.id", ondelete="CASCADE"), index=True)

    feed: Mapped[Feed] = relationship("Feed", back_populates="posts")
