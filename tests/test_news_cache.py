"""Tests for the in-memory news cache."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any

import httpx
import pytest

from realty_news.config import NewsSettings
from realty_news.exceptions import ConfigurationError, NewsFetchError, RateLimitError
from realty_news.models import CacheState, NewsSnapshot
from realty_news.news.cache import NewsCache
from realty_news.news.gnews_client import GNewsClient

START = datetime(2026, 10, 18, 2, 30, tzinfo=timezone.utc)

OLD_ARTICLES = [{"title": "Bopal land rates climb", "url": "https://example.com/bopal"}]
NEW_ARTICLES = [
    {"title": "GIFT City office demand surges", "url": "https://example.com/gift"},
    {"title": "Shela gets new ring road link", "url": "https://example.com/shela"},
]


class FakeClock:
    def __init__(self, now: datetime = START) -> None:
        self.now = now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)

    def __call__(self) -> datetime:
        return self.now


class FakeProvider:
    """Provider returning canned articles, optionally blocking on a gate."""

    def __init__(
        self,
        articles: list[dict[str, Any]] | None = None,
        error: Exception | None = None,
    ) -> None:
        self.articles = articles if articles is not None else []
        self.error = error
        self.gate: asyncio.Event | None = None
        self.calls = 0

    async def fetch_news(self) -> dict[str, Any]:
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return {"articles": list(self.articles)}


def _make_cache(
    provider: FakeProvider, clock: FakeClock | None = None, **kwargs: Any
) -> NewsCache:
    return NewsCache(provider, clock=clock or FakeClock(), **kwargs)


class TestGetNews:
    def test_empty_cache_and_failed_fetch_returns_empty_snapshot(self) -> None:
        provider = FakeProvider(error=NewsFetchError("boom"))
        cache = _make_cache(provider)

        snapshot = asyncio.run(cache.get_news())

        assert snapshot == NewsSnapshot.empty()
        assert snapshot.to_dict() == {
            "articles": [],
            "lastUpdated": None,
            "totalArticles": 0,
        }
        assert provider.calls == 1

    def test_empty_cache_is_populated(self) -> None:
        clock = FakeClock()
        provider = FakeProvider(articles=NEW_ARTICLES)
        cache = _make_cache(provider, clock)

        snapshot = asyncio.run(cache.get_news())

        assert snapshot.articles == NEW_ARTICLES
        assert snapshot.total_articles == 2
        assert snapshot.last_updated == START
        assert cache.state is CacheState.FRESH

    def test_fresh_cache_makes_no_network_call(self) -> None:
        clock = FakeClock()
        provider = FakeProvider(articles=OLD_ARTICLES)
        cache = _make_cache(provider, clock)

        async def run() -> tuple[NewsSnapshot, NewsSnapshot]:
            first = await cache.get_news()
            clock.advance(hours=23)
            provider.articles = NEW_ARTICLES
            second = await cache.get_news()
            return first, second

        first, second = asyncio.run(run())

        assert provider.calls == 1
        assert second == first

    def test_exactly_ttl_old_is_still_fresh(self) -> None:
        clock = FakeClock()
        provider = FakeProvider(articles=OLD_ARTICLES)
        cache = _make_cache(provider, clock)

        async def run() -> None:
            await cache.get_news()
            clock.advance(hours=24)
            await cache.get_news()

        asyncio.run(run())

        assert provider.calls == 1

    def test_stale_cache_refresh_success_replaces_articles(self) -> None:
        clock = FakeClock()
        provider = FakeProvider(articles=OLD_ARTICLES)
        cache = _make_cache(provider, clock)

        async def run() -> NewsSnapshot:
            await cache.get_news()
            clock.advance(hours=25)
            provider.articles = NEW_ARTICLES
            return await cache.get_news()

        snapshot = asyncio.run(run())

        assert provider.calls == 2
        assert snapshot.articles == NEW_ARTICLES
        assert snapshot.last_updated == START + timedelta(hours=25)

    def test_stale_cache_refresh_failure_keeps_old_data(self) -> None:
        clock = FakeClock()
        provider = FakeProvider(articles=OLD_ARTICLES)
        cache = _make_cache(provider, clock)

        async def run() -> NewsSnapshot:
            await cache.get_news()
            clock.advance(hours=30)
            provider.error = NewsFetchError("upstream down")
            return await cache.get_news()

        snapshot = asyncio.run(run())

        assert snapshot.articles == OLD_ARTICLES
        assert snapshot.last_updated == START
        assert cache.state is CacheState.STALE

    def test_empty_fetch_result_triggers_refetch_next_time(self) -> None:
        provider = FakeProvider(articles=[])
        cache = _make_cache(provider)

        async def run() -> NewsSnapshot:
            await cache.get_news()
            return await cache.get_news()

        snapshot = asyncio.run(run())

        assert provider.calls == 2
        assert snapshot.total_articles == 0
        assert cache.state is CacheState.EMPTY

    def test_concurrent_callers_share_one_refresh(self) -> None:
        provider = FakeProvider(articles=NEW_ARTICLES)
        cache = _make_cache(provider)

        async def run() -> list[NewsSnapshot]:
            provider.gate = asyncio.Event()
            first = asyncio.create_task(cache.get_news())
            await asyncio.sleep(0)
            second = asyncio.create_task(cache.get_news())
            await asyncio.sleep(0)
            provider.gate.set()
            return await asyncio.gather(first, second)

        first, second = asyncio.run(run())

        assert provider.calls == 1
        assert first.articles == NEW_ARTICLES
        assert second.articles == NEW_ARTICLES


class TestRefresh:
    def test_refresh_never_raises(self) -> None:
        provider = FakeProvider(error=RuntimeError("unexpected"))
        cache = _make_cache(provider)

        asyncio.run(cache.refresh())

        assert cache.state is CacheState.EMPTY
        assert cache.last_updated is None
        assert cache.is_refreshing is False

    def test_refresh_while_in_flight_does_not_fetch_again(self) -> None:
        provider = FakeProvider(articles=NEW_ARTICLES)
        cache = _make_cache(provider)
        mutations: list[datetime | None] = []

        async def run() -> None:
            provider.gate = asyncio.Event()
            first = asyncio.create_task(cache.refresh())
            await asyncio.sleep(0)
            assert cache.is_refreshing is True

            second = asyncio.create_task(cache.refresh())
            await asyncio.sleep(0.001)
            mutations.append(cache.last_updated)

            provider.gate.set()
            await asyncio.gather(first, second)
            mutations.append(cache.last_updated)

        asyncio.run(run())

        assert provider.calls == 1
        assert mutations == [None, START]
        assert cache.is_refreshing is False

    def test_failed_refresh_while_in_flight_changes_nothing(self) -> None:
        clock = FakeClock()
        provider = FakeProvider(articles=OLD_ARTICLES)
        cache = _make_cache(provider, clock)

        async def run() -> None:
            await cache.refresh()
            clock.advance(hours=1)
            provider.error = NewsFetchError("boom")
            provider.gate = asyncio.Event()
            first = asyncio.create_task(cache.refresh())
            await asyncio.sleep(0)
            second = asyncio.create_task(cache.refresh())
            await asyncio.sleep(0)
            provider.gate.set()
            await asyncio.gather(first, second)

        asyncio.run(run())

        assert provider.calls == 2
        assert cache.get_cached().articles == OLD_ARTICLES
        assert cache.last_updated == START

    def test_hung_fetch_times_out_and_releases_guard(self) -> None:
        provider = FakeProvider(articles=NEW_ARTICLES)
        cache = _make_cache(provider, refresh_timeout=0.01)

        async def run() -> None:
            provider.gate = asyncio.Event()
            await cache.refresh()
            assert cache.is_refreshing is False
            assert cache.state is CacheState.EMPTY

            provider.gate = None
            await cache.refresh()

        asyncio.run(run())

        assert provider.calls == 2
        assert cache.get_cached().articles == NEW_ARTICLES

    def test_cancelled_waiter_does_not_cancel_shared_fetch(self) -> None:
        provider = FakeProvider(articles=NEW_ARTICLES)
        cache = _make_cache(provider)

        async def run() -> None:
            provider.gate = asyncio.Event()
            waiter = asyncio.create_task(cache.refresh())
            await asyncio.sleep(0)
            waiter.cancel()
            await asyncio.gather(waiter, return_exceptions=True)
            assert cache.is_refreshing is True

            provider.gate.set()
            await cache.refresh()

        asyncio.run(run())

        assert provider.calls == 1
        assert cache.get_cached().articles == NEW_ARTICLES

    def test_aclose_cancels_in_flight_refresh(self) -> None:
        provider = FakeProvider(articles=NEW_ARTICLES)
        cache = _make_cache(provider)

        async def run() -> list[Any]:
            provider.gate = asyncio.Event()
            waiter = asyncio.create_task(cache.refresh())
            await asyncio.sleep(0.001)
            assert cache.is_refreshing is True

            await cache.aclose()
            assert cache.is_refreshing is False
            return await asyncio.gather(waiter, return_exceptions=True)

        results = asyncio.run(run())

        assert provider.calls == 1
        assert isinstance(results[0], asyncio.CancelledError)
        assert cache.state is CacheState.EMPTY

    def test_aclose_when_idle_is_noop(self) -> None:
        cache = _make_cache(FakeProvider())

        asyncio.run(cache.aclose())

        assert cache.is_refreshing is False


class TestGetCached:
    def test_snapshot_is_detached_from_cache(self) -> None:
        provider = FakeProvider(articles=OLD_ARTICLES)
        cache = _make_cache(provider)
        asyncio.run(cache.refresh())

        snapshot = cache.get_cached()
        snapshot.articles.append({"title": "injected"})

        assert cache.get_cached().total_articles == 1

    def test_state_transitions(self) -> None:
        clock = FakeClock()
        provider = FakeProvider(articles=OLD_ARTICLES)
        cache = _make_cache(provider, clock)

        assert cache.state is CacheState.EMPTY
        assert cache.age() is None

        asyncio.run(cache.refresh())
        assert cache.state is CacheState.FRESH

        clock.advance(hours=24, seconds=1)
        assert cache.state is CacheState.STALE
        assert cache.age() == timedelta(hours=24, seconds=1)


class TestWithGNewsClient:
    """End-to-end through the real client with a mocked transport."""

    @staticmethod
    def _client(handler: Any, api_key: str | None = "abcd1234efgh") -> GNewsClient:
        return GNewsClient(
            api_key=api_key,
            settings=NewsSettings(),
            transport=httpx.MockTransport(handler),
        )

    def test_missing_api_key_is_absorbed(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("NEWS_API_KEY", raising=False)

        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        client = self._client(handler, api_key=None)

        with pytest.raises(ConfigurationError):
            asyncio.run(client.fetch_news())

        snapshot = asyncio.run(_make_cache(client).get_news())
        assert snapshot.to_dict() == {
            "articles": [],
            "lastUpdated": None,
            "totalArticles": 0,
        }

    def test_rate_limit_raised_directly_but_absorbed_by_get_news(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(429, text="Too many requests")

        client = self._client(handler)

        with pytest.raises(RateLimitError, match="Rate limit"):
            asyncio.run(client.fetch_news())

        snapshot = asyncio.run(_make_cache(client).get_news())
        assert snapshot == NewsSnapshot.empty()

    def test_rate_limit_keeps_previous_articles(self) -> None:
        responses = [
            httpx.Response(200, json={"articles": OLD_ARTICLES}),
            httpx.Response(429, text="Too many requests"),
            httpx.Response(429, text="Too many requests"),
        ]

        def handler(request: httpx.Request) -> httpx.Response:
            return responses.pop(0)

        clock = FakeClock()
        cache = NewsCache(self._client(handler), clock=clock)

        async def run() -> NewsSnapshot:
            await cache.get_news()
            clock.advance(days=2)
            return await cache.get_news()

        snapshot = asyncio.run(run())

        assert snapshot.articles == OLD_ARTICLES
        assert snapshot.last_updated == START

    def test_fallback_runs_after_first_transport_times_out(self) -> None:
        settings = NewsSettings(http_timeout_seconds=0.05)
        assert settings.refresh_timeout_seconds > 2 * settings.http_timeout_seconds
        calls: list[httpx.Request] = []

        async def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            if len(calls) == 1:
                await asyncio.sleep(settings.http_timeout_seconds)
                raise httpx.ReadTimeout("read timed out", request=request)
            return httpx.Response(200, json={"articles": NEW_ARTICLES[:1]})

        client = GNewsClient(
            api_key="abcd1234efgh",
            settings=settings,
            transport=httpx.MockTransport(handler),
        )
        cache = NewsCache.from_settings(client, settings)

        snapshot = asyncio.run(cache.get_news())

        assert len(calls) == 2
        assert snapshot.articles == NEW_ARTICLES[:1]
