"""Canned RSS documents for tests."""

from __future__ import annotations


def rss_document(*items: str, title: str = "Test Feed") -> str:
    """Wrap ``<item>`` fragments in a minimal RSS 2.0 document."""

    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        '<rss version="2.0"><channel>'
        f"<title>{title}</title><link>https://example.com/</link>"
        "<description>Test channel</description>"
        + "".join(items)
        + "</channel></rss>"
    )


def rss_item(title: str, link: str, pub_date: str = "", description: str = "") -> str:
    return (
        f"<item><title>{title}</title><link>{link}</link>"
        f"<description>{description}</description><pubDate>{pub_date}</pubDate></item>"
    )


MALFORMED = "<rss version=\"2.0\"><channel><title>Broken</channel>"
