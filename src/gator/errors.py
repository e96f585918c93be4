"""Exception types shared across the ingestion pipeline and storage layer."""

from __future__ import annotations


class GatorError(Exception):
    """Base class for application errors."""


class ConfigError(GatorError):
    """Raised when the user config file cannot be read."""


class FetchError(GatorError):
    """A feed could not be retrieved or decoded."""

    def __init__(self, url: str, message: str) -> None:
        super().__init__(f"{message} ({url})")
        self.url = url


class NetworkError(FetchError):
    """Transport-level failure, including timeouts."""


class HTTPError(FetchError):
    """The server answered with a non-2xx status."""

    def __init__(self, url: str, status_code: int) -> None:
        super().__init__(url, f"unexpected HTTP status {status_code}")
        self.status_code = status_code


class ParseError(FetchError):
    """The response body is not a well-formed feed."""


class PubDateError(GatorError, ValueError):
    """A publish date could not be normalized."""


class NoDateError(PubDateError):
    def __init__(self) -> None:
        super().__init__("post has no publish date")


class UnknownFormatError(PubDateError):
    def __init__(self, value: str) -> None:
        super().__init__(f"unknown publish date format: {value!r}")
        self.value = value


class PersistenceError(GatorError):
    """Base class for classified storage failures."""


class NotFoundError(PersistenceError):
    pass


class NoFeedsError(NotFoundError):
    def __init__(self) -> None:
        super().__init__("no feeds to fetch")


class UniqueConstraintError(PersistenceError):
    """A row with the same unique key already exists."""

    def __init__(self, entity: str, key: str) -> None:
        super().__init__(f"{entity} already exists: {key}")
        self.entity = entity
        self.key = key
