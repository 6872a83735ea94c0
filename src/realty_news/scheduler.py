"""Daily background refresh of the news cache."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, time, timedelta, timezone, tzinfo
from typing import Awaitable, Callable
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from realty_news.config import NewsSettings
from realty_news.exceptions import ConfigurationError
from realty_news.news.cache import NewsCache

logger = logging.getLogger(__name__)


def next_run_after(now: datetime, hour: int, minute: int, tz: tzinfo) -> datetime:
    """Return the next ``hour:minute`` wall-clock time in ``tz`` strictly after ``now``."""
    local_now = now.astimezone(tz)
    at = time(hour=hour, minute=minute)
    candidate = datetime.combine(local_now.date(), at, tzinfo=tz)
    if candidate <= local_now:
        candidate = datetime.combine(local_now.date() + timedelta(days=1), at, tzinfo=tz)
    return candidate


class RefreshScheduler:
    """Refreshes a NewsCache once at start and then daily at a fixed local time."""

    def __init__(
        self,
        cache: NewsCache,
        hour: int = 8,
        minute: int = 0,
        timezone_name: str = "Asia/Kolkata",
        clock: Callable[[], datetime] | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._cache = cache
        self._hour = hour
        self._minute = minute
        try:
            self._tz = ZoneInfo(timezone_name)
        except (ZoneInfoNotFoundError, ValueError):
            raise ConfigurationError(
                f"NEWS_REFRESH_TZ must be an IANA timezone, got {timezone_name!r}"
            ) from None
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._sleep = sleep
        self._task: asyncio.Task[None] | None = None

    @classmethod
    def from_settings(cls, cache: NewsCache, settings: NewsSettings) -> RefreshScheduler:
        return cls(
            cache,
            hour=settings.refresh_hour,
            minute=settings.refresh_minute,
            timezone_name=settings.refresh_timezone,
        )

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the background loop on the running event loop."""
        if self.running:
            return
        self._task = asyncio.create_task(self._run())
        logger.info(
            "News refresh scheduled daily at %02d:%02d (%s)",
            self._hour,
            self._minute,
            self._tz.key,
        )

    async def stop(self) -> None:
        """Cancel the background loop and wait for it to finish."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def _run(self) -> None:
        await self._refresh("initial")
        while True:
            now = self._clock()
            run_at = next_run_after(now, self._hour, self._minute, self._tz)
            logger.info("Next scheduled news refresh at %s", run_at.isoformat())
            await self._sleep((run_at - now).total_seconds())
            await self._refresh("scheduled")

    async def _refresh(self, reason: str) -> None:
        logger.info("Running %s news refresh", reason)
        try:
            await self._cache.refresh()
        except Exception:
            logger.exception("Error in %s news refresh", reason)
