"""Publish-date normalization for RSS items."""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Callable, Optional

from ..errors import NoDateError, UnknownFormatError


ZONE_OFFSETS = {
    "UT": 0,
    "UTC": 0,
    "GMT": 0,
    "Z": 0,
    "EST": -5 * 60,
    "EDT": -4 * 60,
    "CST": -6 * 60,
    "CDT": -5 * 60,
    "MST": -7 * 60,
    "MDT": -6 * 60,
    "PST": -8 * 60,
    "PDT": -7 * 60,
}

_ZONE_NAME = re.compile(r"(?<=\s)([A-Z]{1,5})(?=\s|$)")
_FRACTION = re.compile(r"(\.\d{6})\d+")


def _as_is(value: str) -> Optional[str]:
    return value


def _numeric_zone(value: str) -> Optional[str]:
    """Replace a zone abbreviation with its numeric offset.

    Unknown abbreviations are treated as UTC. Returns None when the value
    carries no abbreviation, so the layout is skipped.
    """

    match = _ZONE_NAME.search(value)
    if match is None:
        return None
    offset = ZONE_OFFSETS.get(match.group(1), 0)
    sign = "-" if offset < 0 else "+"
    hours, minutes = divmod(abs(offset), 60)
    return f"{value[:match.start()]}{sign}{hours:02d}{minutes:02d}{value[match.end():]}"


def _microseconds(value: str) -> Optional[str]:
    return _FRACTION.sub(r"\1", value)


# Ordered: the first layout that parses wins.
KNOWN_LAYOUTS: list[tuple[str, str, Callable[[str], Optional[str]]]] = [
    ("layout", "%m/%d %I:%M:%S%p '%y %z", _as_is),
    ("ansic", "%a %b %d %H:%M:%S %Y", _as_is),
    ("unix_date", "%a %b %d %H:%M:%S %z %Y", _numeric_zone),
    ("ruby_date", "%a %b %d %H:%M:%S %z %Y", _as_is),
    ("rfc822", "%d %b %y %H:%M %z", _numeric_zone),
    ("rfc822z", "%d %b %y %H:%M %z", _as_is),
    ("rfc850", "%A, %d-%b-%y %H:%M:%S %z", _numeric_zone),
    ("rfc1123", "%a, %d %b %Y %H:%M:%S %z", _numeric_zone),
    ("rfc1123z", "%a, %d %b %Y %H:%M:%S %z", _as_is),
    ("rfc3339", "%Y-%m-%dT%H:%M:%S%z", _as_is),
    ("rfc3339_nano", "%Y-%m-%dT%H:%M:%S.%f%z", _microseconds),
]


def parse_pub_date(value: str) -> datetime:
    """Parse an RSS publish date against the known layouts.

    Raises NoDateError for empty input and UnknownFormatError when no layout
    matches. Results are always timezone-aware; layouts without a zone are
    read as UTC.
    """

    value = (value or "").strip()
    if not value:
        raise NoDateError()

    for _name, fmt, prepare in KNOWN_LAYOUTS:
        candidate = prepare(value)
        if candidate is None:
            continue
        try:
            parsed = datetime.strptime(candidate, fmt)
        except ValueError:
            continue
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed

    raise UnknownFormatError(value)
