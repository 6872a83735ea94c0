"""Errors raised by the news fetching layer."""

from __future__ import annotations


class NewsError(Exception):
    """Base class for news service errors."""

    pass


class ConfigurationError(NewsError, ValueError):
    """Required configuration (e.g. the API key) is missing or invalid."""

    pass


class NewsFetchError(NewsError):
    """Articles could not be fetched from the news API."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class AuthenticationError(NewsFetchError):
    """The news API rejected the API key (401/403)."""

    pass


class RateLimitError(NewsFetchError):
    """News API rate limit exceeded (429)."""

    pass
