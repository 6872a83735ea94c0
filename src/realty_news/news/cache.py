"""In-memory news cache with single-flight refresh."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

from realty_news.config import NewsSettings
from realty_news.models import CacheState, NewsSnapshot
from realty_news.news.provider import NewsProvider

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class NewsCache:
    """Process-wide cache of news articles, refreshed lazily once stale.

    Articles are replaced wholesale on a successful refresh and left untouched
    on failure. Concurrent refresh requests share one in-flight fetch. Bound to
    a single event loop.
    """

    def __init__(
        self,
        provider: NewsProvider,
        ttl: timedelta = timedelta(hours=24),
        refresh_timeout: float | None = 65.0,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._provider = provider
        self._ttl = ttl
        self._refresh_timeout = refresh_timeout
        self._clock = clock or _utcnow
        self._articles: list[dict[str, Any]] = []
        self._last_updated: datetime | None = None
        self._inflight: asyncio.Task[None] | None = None

    @classmethod
    def from_settings(cls, provider: NewsProvider, settings: NewsSettings) -> NewsCache:
        return cls(
            provider,
            ttl=settings.cache_ttl,
            refresh_timeout=settings.refresh_timeout_seconds,
        )

    # -- state -------------------------------------------------------------

    @property
    def last_updated(self) -> datetime | None:
        return self._last_updated

    @property
    def is_refreshing(self) -> bool:
        return self._inflight is not None and not self._inflight.done()

    def age(self) -> timedelta | None:
        """Time since the last successful refresh, or None if never refreshed."""
        if self._last_updated is None:
            return None
        return self._clock() - self._last_updated

    @property
    def state(self) -> CacheState:
        if not self._articles:
            return CacheState.EMPTY
        age = self.age()
        if age is None or age > self._ttl:
            return CacheState.STALE
        return CacheState.FRESH

    # -- operations --------------------------------------------------------

    async def refresh(self) -> None:
        """Refresh the cache from the provider; never raises.

        If a refresh is already in flight, waits for that one instead of
        starting another.
        """
        task = self._inflight
        if task is None or task.done():
            logger.info("Refreshing news cache...")
            task = asyncio.create_task(self._run_refresh())
            self._inflight = task
        else:
            logger.info("News refresh already in progress, waiting for it")

        # Cancelling this caller must not cancel the shared fetch.
        await asyncio.shield(task)

    async def _run_refresh(self) -> None:
        try:
            fetch = self._provider.fetch_news()
            if self._refresh_timeout is not None:
                data = await asyncio.wait_for(fetch, timeout=self._refresh_timeout)
            else:
                data = await fetch
        except asyncio.TimeoutError:
            logger.error(
                "News refresh timed out after %.1fs, keeping cached articles",
                self._refresh_timeout,
            )
        except Exception as e:
            logger.error("Error refreshing news cache: %s", e)
        else:
            self._articles = list(data.get("articles") or [])
            self._last_updated = self._clock()
            logger.info(
                "News cache refreshed: %d articles cached, last updated %s",
                len(self._articles),
                self._last_updated.isoformat(),
            )
        finally:
            self._inflight = None

    async def aclose(self) -> None:
        """Cancel any in-flight refresh and wait for it to unwind."""
        task = self._inflight
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    def get_cached(self) -> NewsSnapshot:
        """Return a snapshot of the current cache contents."""
        return NewsSnapshot(
            articles=list(self._articles),
            last_updated=self._last_updated,
        )

    async def get_news(self) -> NewsSnapshot:
        """Return cached news, refreshing first if empty or stale; never raises.

        A stale cache whose refresh fails is still served. An empty cache
        whose refresh fails yields an empty snapshot.
        """
        state = self.state
        if state is not CacheState.FRESH:
            logger.info("News cache %s, fetching fresh news...", state.value)
            try:
                await self.refresh()
            except Exception:
                logger.exception("Error refreshing news cache while serving news")
                if not self._articles:
                    return NewsSnapshot.empty()

        return self.get_cached()
