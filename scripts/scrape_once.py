"""Utility script to run a single scrape cycle against the configured database."""

from __future__ import annotations

import argparse
import asyncio
import logging

from gator.config import get_settings, resolve_database_url
from gator.ingest.scraper import run_cycle
from gator.storage.db import create_engine, create_session_factory, init_db


async def scrape_once(cycles: int) -> None:
    settings = get_settings()
    engine = create_engine(resolve_database_url(settings))
    try:
        await init_db(engine)
        session_factory = create_session_factory(engine)
        for _ in range(cycles):
            report = await run_cycle(session_factory, settings=settings)
            if report is None:
                continue
            print(
                f"{report.feed_name}: {len(report.saved)} saved, "
                f"{report.duplicates} duplicates, {report.failed} failed"
            )
    finally:
        await engine.dispose()


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run scrape cycles without the scheduler")
    parser.add_argument("--cycles", type=int, default=1, help="Number of feeds to fetch")
    return parser.parse_args()


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    args = parse_args()
    asyncio.run(scrape_once(args.cycles))


if __name__ == "__main__":
    main()
