"""Environment-driven settings for the news service."""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import timedelta
from typing import Mapping

from realty_news.exceptions import ConfigurationError

DEFAULT_API_URL = "https://gnews.io/api/v4/search"
DEFAULT_QUERY = "Ahmedabad Real Estate"

_TRUE_VALUES = ("1", "true", "yes", "on")
_REFRESH_TIMEOUT_MARGIN = 5.0


@dataclass
class NewsSettings:
    """Settings for fetching, caching and refreshing news.

    Attributes:
        api_key: GNews API key (``NEWS_API_KEY``). Checked at fetch time, not here.
        api_url: Search endpoint.
        query: Free-text search query.
        lang: Language code.
        country: Country code.
        max_results: Result-count cap sent to the API.
        cache_ttl: Age after which cached articles are refreshed on read.
        http_timeout_seconds: Per-request timeout for the HTTP client.
        refresh_timeout_seconds: Upper bound on a whole refresh (both transports).
            Defaults to room for two full HTTP timeouts plus a margin.
        refresh_hour: Hour of the daily scheduled refresh.
        refresh_minute: Minute of the daily scheduled refresh.
        refresh_timezone: IANA timezone the schedule is expressed in.
        scheduler_enabled: Whether the API server runs the daily refresh job.
    """

    api_key: str | None = None
    api_url: str = DEFAULT_API_URL
    query: str = DEFAULT_QUERY
    lang: str = "en"
    country: str = "in"
    max_results: int = 10
    cache_ttl: timedelta = timedelta(hours=24)
    http_timeout_seconds: float = 30.0
    refresh_timeout_seconds: float | None = None
    refresh_hour: int = 8
    refresh_minute: int = 0
    refresh_timezone: str = "Asia/Kolkata"
    scheduler_enabled: bool = True

    def __post_init__(self) -> None:
        if self.refresh_timeout_seconds is None:
            # Pooled attempt and direct fallback may each use a full HTTP timeout.
            self.refresh_timeout_seconds = (
                2 * self.http_timeout_seconds + _REFRESH_TIMEOUT_MARGIN
            )

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> NewsSettings:
        """Build settings from environment variables, falling back to defaults."""
        env = os.environ if environ is None else environ
        defaults = cls()

        return cls(
            api_key=env.get("NEWS_API_KEY") or None,
            api_url=env.get("NEWS_API_URL", defaults.api_url),
            query=env.get("NEWS_QUERY", defaults.query),
            lang=env.get("NEWS_LANG", defaults.lang),
            country=env.get("NEWS_COUNTRY", defaults.country),
            max_results=_int(env, "NEWS_MAX_RESULTS", defaults.max_results),
            cache_ttl=timedelta(
                hours=_float(
                    env,
                    "NEWS_CACHE_TTL_HOURS",
                    defaults.cache_ttl.total_seconds() / 3600,
                )
            ),
            http_timeout_seconds=_float(
                env, "NEWS_HTTP_TIMEOUT", defaults.http_timeout_seconds
            ),
            refresh_timeout_seconds=_optional_float(env, "NEWS_REFRESH_TIMEOUT"),
            refresh_hour=_int(env, "NEWS_REFRESH_HOUR", defaults.refresh_hour),
            refresh_minute=_int(env, "NEWS_REFRESH_MINUTE", defaults.refresh_minute),
            refresh_timezone=env.get("NEWS_REFRESH_TZ", defaults.refresh_timezone),
            scheduler_enabled=env.get(
                "NEWS_SCHEDULER_ENABLED", "true"
            ).strip().lower() in _TRUE_VALUES,
        )


def _int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from None


def _float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from None


def _optional_float(env: Mapping[str, str], name: str) -> float | None:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return None
    return _float(env, name, 0.0)
