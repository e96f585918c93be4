"""Command-line entrypoint."""

from __future__ import annotations

import argparse
import asyncio
import logging
import re
import sys
from dataclasses import dataclass
from datetime import timedelta
from typing import Awaitable, Callable, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .config import Settings, UserConfig, get_settings, resolve_database_url
from .errors import GatorError, NotFoundError
from .ingest.scraper import aggregate
from .storage import crud
from .storage.db import create_engine, create_session_factory, init_db
from .storage.models import Feed, User


logger = logging.getLogger("gator")

_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(us|ms|s|m|h)")
_DURATION_UNITS = {
    "us": timedelta(microseconds=1),
    "ms": timedelta(milliseconds=1),
    "s": timedelta(seconds=1),
    "m": timedelta(minutes=1),
    "h": timedelta(hours=1),
}


def parse_duration(value: str) -> timedelta:
    """Parse durations such as ``30s``, ``1m``, ``1h30m`` or ``500ms``."""

    text = value.strip()
    position = 0
    total = timedelta()
    for match in _DURATION_PART.finditer(text):
        if match.start() != position:
            break
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        position = match.end()
    if not text or position != len(text):
        raise argparse.ArgumentTypeError(f"invalid duration {value!r}")
    if total <= timedelta():
        raise argparse.ArgumentTypeError(f"duration must be positive: {value!r}")
    return total


@dataclass
class State:
    settings: Settings
    user_config: UserConfig
    session_factory: async_sessionmaker[AsyncSession]


Handler = Callable[[State, argparse.Namespace], Awaitable[None]]


async def _current_user(session: AsyncSession, state: State) -> User:
    name = state.user_config.current_user_name
    if not name:
        raise GatorError("no user is logged in; run 'register' or 'login' first")
    user = await crud.get_user_by_name(session, name)
    if user is None:
        raise GatorError(f"logged in user {name} no longer exists")
    return user


async def _feed_by_url(session: AsyncSession, url: str) -> Feed:
    feed = await crud.get_feed_by_url(session, url)
    if feed is None:
        raise NotFoundError(f"no feed with url {url}")
    return feed


async def handle_register(state: State, args: argparse.Namespace) -> None:
    async with state.session_factory() as session:
        user = await crud.create_user(session, args.name)
        await session.commit()
    state.user_config.set_user(user.name, state.settings.config_path)
    print(f"successfully created user: {user.name}")
    print(f"  ID: {user.id}\n  CreatedAt: {user.created_at}\n  UpdatedAt: {user.updated_at}")


async def handle_login(state: State, args: argparse.Namespace) -> None:
    async with state.session_factory() as session:
        user = await crud.get_user_by_name(session, args.name)
    if user is None:
        raise NotFoundError(f"cannot log in as {args.name}: user does not exist")
    state.user_config.set_user(user.name, state.settings.config_path)
    print(f"Logged in as user: {user.name}")


async def handle_reset(state: State, args: argparse.Namespace) -> None:
    async with state.session_factory() as session:
        await crud.reset_users(session)
        await session.commit()
    print("All users deleted")


async def handle_users(state: State, args: argparse.Namespace) -> None:
    async with state.session_factory() as session:
        users = await crud.list_users(session)
    for user in users:
        marker = " (current)" if user.name == state.user_config.current_user_name else ""
        print(f"* {user.name}{marker}")


async def handle_addfeed(state: State, args: argparse.Namespace) -> None:
    async with state.session_factory() as session:
        user = await _current_user(session, state)
        feed = await crud.create_feed(session, name=args.name, url=args.url, user=user)
        await crud.create_feed_follow(session, user=user, feed=feed)
        await session.commit()
    print(f"Added feed '{feed.name}' ({feed.url}) for {user.name}")
    print(f"  ID: {feed.id}\n  CreatedAt: {feed.created_at}")


async def handle_feeds(state: State, args: argparse.Namespace) -> None:
    async with state.session_factory() as session:
        feeds = await crud.list_feeds(session)
    for feed in feeds:
        print(f"* {feed.name} ({feed.url}) added by {feed.user.name}")


async def handle_follow(state: State, args: argparse.Namespace) -> None:
    async with state.session_factory() as session:
        user = await _current_user(session, state)
        feed = await _feed_by_url(session, args.url)
        await crud.create_feed_follow(session, user=user, feed=feed)
        await session.commit()
    print(f"{user.name} now follows '{feed.name}'")


async def handle_unfollow(state: State, args: argparse.Namespace) -> None:
    async with state.session_factory() as session:
        user = await _current_user(session, state)
        feed = await _feed_by_url(session, args.url)
        await crud.delete_feed_follow(session, user=user, feed=feed)
        await session.commit()
    print(f"{user.name} unfollowed '{feed.name}'")


async def handle_following(state: State, args: argparse.Namespace) -> None:
    async with state.session_factory() as session:
        user = await _current_user(session, state)
        follows = await crud.list_feed_follows_for_user(session, user)
    for follow in follows:
        print(f"* {follow.feed.name}")


async def handle_browse(state: State, args: argparse.Namespace) -> None:
    limit = args.limit or state.settings.browse_limit
    async with state.session_factory() as session:
        user = await _current_user(session, state)
        posts = await crud.list_posts_for_user(session, user, limit=limit)
    for post in posts:
        published = post.published_at.strftime("%Y-%m-%d %H:%M") if post.published_at else "unknown date"
        print(f"{published} from {post.feed.name}")
        print(f"--- {post.title or '(untitled)'} ---")
        if post.description:
            print(f"    {post.description}")
        print(f"Link: {post.url}")
        print("=" * 40)


async def handle_agg(state: State, args: argparse.Namespace) -> None:
    await aggregate(args.interval, state.session_factory, settings=state.settings)


def build_parser() -> argparse.ArgumentParser:
    """Build the command parser; each sub-command carries its handler."""

    parser = argparse.ArgumentParser(prog="gator", description="RSS feed aggregator")
    commands = parser.add_subparsers(dest="command", required=True, metavar="command")

    def add(name: str, handler: Handler, help_text: str) -> argparse.ArgumentParser:
        sub = commands.add_parser(name, help=help_text)
        sub.set_defaults(handler=handler)
        return sub

    add("register", handle_register, "Create a user and log in").add_argument("name")
    add("login", handle_login, "Log in as an existing user").add_argument("name")
    add("reset", handle_reset, "Delete all users and their data")
    add("users", handle_users, "List users")

    addfeed = add("addfeed", handle_addfeed, "Add a feed and follow it")
    addfeed.add_argument("name")
    addfeed.add_argument("url")

    add("feeds", handle_feeds, "List all feeds")
    add("follow", handle_follow, "Follow an existing feed").add_argument("url")
    add("unfollow", handle_unfollow, "Stop following a feed").add_argument("url")
    add("following", handle_following, "List followed feeds")
    add("browse", handle_browse, "Show recent posts from followed feeds").add_argument(
        "limit", nargs="?", type=int, default=None
    )
    add("agg", handle_agg, "Fetch feeds on an interval").add_argument(
        "interval", type=parse_duration, help="Time between fetches, e.g. 30s, 1m, 1h"
    )
    return parser


async def run(argv: Optional[Sequence[str]] = None, *, settings: Optional[Settings] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = settings or get_settings()

    try:
        user_config = UserConfig.read(settings.config_path)
    except GatorError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    engine = create_engine(resolve_database_url(settings, user_config))
    try:
        await init_db(engine)
        state = State(settings, user_config, create_session_factory(engine))
        await args.handler(state, args)
    except GatorError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    finally:
        await engine.dispose()
    return 0


def main() -> None:
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    try:
        code = asyncio.run(run(settings=settings))
    except KeyboardInterrupt:
        logger.info("Interrupted")
        code = 130
    sys.exit(code)


if __name__ == "__main__":
    main()
