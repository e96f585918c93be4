"""Feed scraping cycle and the interval scheduler that drives it."""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Optional

import httpx
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..config import Settings, get_settings
from ..errors import FetchError, NoFeedsError, PubDateError, UniqueConstraintError
from ..storage import crud
from .dates import parse_pub_date
from .rss import RawItem, fetch_feed


logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ScrapeReport:
    """Outcome of one scrape cycle."""

    feed_name: str
    feed_url: str
    saved: list[str] = field(default_factory=list)
    duplicates: int = 0
    failed: int = 0


def _none_if_empty(value: str) -> Optional[str]:
    return value if value else None


async def scrape_feeds(
    session_factory: async_sessionmaker[AsyncSession],
    *,
    client: Optional[httpx.AsyncClient] = None,
    settings: Optional[Settings] = None,
) -> ScrapeReport:
    """Fetch the least recently fetched feed and store its new posts.

    The feed is marked fetched before the download so an unreachable feed
    moves to the back of the queue. Raises NoFeedsError when nothing is
    subscribed and FetchError when the download or decoding fails.
    """

    settings = settings or get_settings()

    async with session_factory() as session:
        feed = await crud.select_next_feed_to_fetch(session)
        await crud.mark_feed_fetched(session, feed.id, datetime.now(timezone.utc))
        await session.commit()
        logger.info("Fetching feed '%s' from %s", feed.name, feed.url)

        raw_feed = await fetch_feed(
            feed.url,
            client=client,
            timeout=settings.fetch_timeout_seconds,
            user_agent=settings.user_agent,
        )

        # a rollback expires `feed`; only plain values are used past this point
        feed_id, feed_name = feed.id, feed.name
        report = ScrapeReport(feed_name=feed_name, feed_url=feed.url)
        for item in raw_feed.items:
            await _ingest_item(session, item, feed_id=feed_id, feed_name=feed_name, report=report)

    logger.info(
        "Scrape of '%s' complete: %d saved, %d duplicates, %d failed",
        report.feed_name,
        len(report.saved),
        report.duplicates,
        report.failed,
    )
    return report


async def _ingest_item(
    session: AsyncSession,
    item: RawItem,
    *,
    feed_id: uuid.UUID,
    feed_name: str,
    report: ScrapeReport,
) -> None:
    try:
        published_at = parse_pub_date(item.pub_date)
    except PubDateError as exc:
        logger.warning("Post '%s' from feed '%s' has no usable publish date: %s", item.title, feed_name, exc)
        published_at = None

    now = datetime.now(timezone.utc)
    try:
        post = await crud.create_post(
            session,
            post_id=uuid.uuid4(),
            created_at=now,
            updated_at=now,
            title=_none_if_empty(item.title),
            url=item.link,
            description=_none_if_empty(item.description),
            published_at=published_at,
            feed_id=feed_id,
        )
        await session.commit()
    except UniqueConstraintError:
        report.duplicates += 1
        return
    except SQLAlchemyError as exc:
        await session.rollback()
        report.failed += 1
        logger.error("Failed to save post %s from feed '%s': %s", item.link, feed_name, exc, exc_info=True)
        return

    report.saved.append(post.title or post.url)
    logger.info("Saved post '%s' from feed '%s'", post.title or "", feed_name)


async def run_cycle(
    session_factory: async_sessionmaker[AsyncSession],
    *,
    client: Optional[httpx.AsyncClient] = None,
    settings: Optional[Settings] = None,
) -> Optional[ScrapeReport]:
    """Scheduled job: one scrape cycle whose failures never stop the timer."""

    try:
        return await scrape_feeds(session_factory, client=client, settings=settings)
    except NoFeedsError:
        logger.warning("No feeds to fetch; skipping this tick")
    except FetchError as exc:
        logger.error("Failed to fetch feed: %s", exc)
    except SQLAlchemyError as exc:
        logger.error("Database error during scrape cycle: %s", exc, exc_info=True)
    return None


async def aggregate(
    interval: timedelta,
    session_factory: async_sessionmaker[AsyncSession],
    *,
    settings: Optional[Settings] = None,
    stop_event: Optional[asyncio.Event] = None,
) -> None:
    """Run scrape cycles every ``interval`` until ``stop_event`` is set."""

    settings = settings or get_settings()
    stop_event = stop_event or asyncio.Event()
    logger.info("Collecting feeds every %s", interval)

    async with httpx.AsyncClient(
        timeout=httpx.Timeout(settings.fetch_timeout_seconds), follow_redirects=True
    ) as client:
        scheduler = AsyncIOScheduler()
        scheduler.add_job(
            run_cycle,
            "interval",
            seconds=interval.total_seconds(),
            args=[session_factory],
            kwargs={"client": client, "settings": settings},
            id="scrape-feeds",
            max_instances=1,
            coalesce=True,
            next_run_time=datetime.now(timezone.utc),
            replace_existing=True,
        )
        scheduler.start()
        try:
            await stop_event.wait()
        finally:
            scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")
