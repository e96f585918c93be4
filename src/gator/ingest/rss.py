"""RSS fetching and decoding."""

from __future__ import annotations

import asyncio
import html
import logging
from dataclasses import dataclass, field
from typing import Optional
from xml.sax import SAXException

import feedparser
import httpx

from ..errors import HTTPError, NetworkError, ParseError


logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "gator"


@dataclass(slots=True)
class RawItem:
    """A single feed item exactly as read from the document."""

    title: str = ""
    link: str = ""
    description: str = ""
    pub_date: str = ""


@dataclass(slots=True)
class RawFeed:
    """Channel metadata plus its items in document order."""

    title: str = ""
    link: str = ""
    description: str = ""
    items: list[RawItem] = field(default_factory=list)

    def unescape(self) -> None:
        """HTML-unescape titles and descriptions in place."""

        self.title = html.unescape(self.title)
        self.description = html.unescape(self.description)
        for item in self.items:
            item.title = html.unescape(item.title)
            item.description = html.unescape(item.description)


async def fetch_feed(
    url: str,
    *,
    client: Optional[httpx.AsyncClient] = None,
    timeout: float = 10.0,
    user_agent: str = DEFAULT_USER_AGENT,
) -> RawFeed:
    """Download and parse the feed at ``url``.

    A provided client is reused and left open. Transport failures raise
    NetworkError, non-2xx responses HTTPError and undecodable bodies
    ParseError.
    """

    close_client = False
    if client is None:
        client = httpx.AsyncClient(timeout=httpx.Timeout(timeout), follow_redirects=True)
        close_client = True

    try:
        response = await client.get(
            url,
            headers={"User-Agent": user_agent},
            timeout=httpx.Timeout(timeout),
        )
        body = response.content
    except httpx.HTTPError as exc:
        raise NetworkError(url, f"request failed: {exc}") from exc
    finally:
        if close_client:
            await client.aclose()

    if not response.is_success:
        raise HTTPError(url, response.status_code)

    logger.debug("Fetched %d bytes from %s", len(body), url)
    feed = await asyncio.to_thread(parse_feed, body, url)
    feed.unescape()
    return feed


def parse_feed(body: bytes, url: str = "") -> RawFeed:
    """Decode an RSS document into a RawFeed."""

    parsed = feedparser.parse(body)
    exc = parsed.get("bozo_exception")
    if parsed.get("bozo") and isinstance(exc, SAXException):
        raise ParseError(url, f"malformed feed XML: {exc}")
    if not parsed.get("version"):
        raise ParseError(url, "document is not an RSS or Atom feed")

    channel = parsed.feed
    return RawFeed(
        title=channel.get("title", ""),
        link=channel.get("link", ""),
        description=channel.get("description", ""),
        items=[
            RawItem(
                title=entry.get("title", ""),
                link=entry.get("link", ""),
                description=entry.get("description", ""),
                pub_date=entry.get("published", ""),
            )
            for entry in parsed.entries
        ],
    )
