"""FastAPI server exposing the cached news feed."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from realty_news.config import NewsSettings
from realty_news.exceptions import NewsError
from realty_news.news.cache import NewsCache
from realty_news.news.gnews_client import GNewsClient
from realty_news.scheduler import RefreshScheduler

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build the cache at startup and run the daily refresh while serving."""
    settings = NewsSettings.from_env()
    client = GNewsClient(settings=settings)
    cache = NewsCache.from_settings(client, settings)
    app.state.news_cache = cache

    scheduler: RefreshScheduler | None = None
    if settings.scheduler_enabled:
        scheduler = RefreshScheduler.from_settings(cache, settings)
        scheduler.start()

    try:
        yield
    finally:
        if scheduler is not None:
            await scheduler.stop()
        await cache.aclose()
        await client.aclose()
        app.state.news_cache = None


app = FastAPI(
    title="Realty News API",
    description="Cached real-estate news for the territory management platform",
    version="0.1.0",
    lifespan=lifespan,
)


@app.exception_handler(NewsError)
async def news_error_handler(request: Request, exc: NewsError) -> JSONResponse:
    """Serve news errors raised outside a route in the news envelope."""
    logger.error("News service error on %s: %s", request.url.path, exc)
    return JSONResponse(
        status_code=500,
        content={"message": str(exc) or "Failed to fetch news", "articles": []},
    )


def get_news_cache(request: Request) -> NewsCache:
    """Return the app's cache, creating it when the lifespan did not run."""
    cache = getattr(request.app.state, "news_cache", None)
    if cache is None:
        settings = NewsSettings.from_env()
        cache = NewsCache.from_settings(GNewsClient(settings=settings), settings)
        request.app.state.news_cache = cache
    return cache


# ---------------------------------------------------------------------------
# Response Models
# ---------------------------------------------------------------------------


class NewsResponse(BaseModel):
    """Response model for the news feed."""

    articles: list[dict[str, Any]]
    lastUpdated: str | None
    totalArticles: int


class HealthResponse(BaseModel):
    """Response model for health check."""

    status: str
    service: str


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@app.get("/health", response_model=HealthResponse)
def health_check() -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(status="healthy", service="realty-news")


@app.get("/api/news", response_model=NewsResponse)
async def get_news(cache: NewsCache = Depends(get_news_cache)) -> Any:
    """Get recent real-estate news.

    Served from cache; refreshed from the news API when empty or older than
    the cache TTL. An empty article list means nothing could be fetched.
    """
    try:
        snapshot = await cache.get_news()
    except Exception as e:
        logger.exception("Error fetching news")
        return JSONResponse(
            status_code=500,
            content={"message": str(e) or "Failed to fetch news", "articles": []},
        )

    logger.info("News data retrieved: %d articles", snapshot.total_articles)
    return NewsResponse(**snapshot.to_dict())
