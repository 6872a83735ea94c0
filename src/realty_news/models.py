"""Data models for the news service."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class CacheState(Enum):
    """Freshness of the news cache."""

    EMPTY = "empty"
    FRESH = "fresh"
    STALE = "stale"


@dataclass(frozen=True)
class Article:
    """Read-only typed view over a raw article dict from the news API.

    The cache never builds these; it passes raw dicts through untouched.
    """

    title: str | None = None
    description: str | None = None
    url: str | None = None
    image: str | None = None  # "image" (GNews) or "urlToImage" (NewsAPI)
    published_at: str | None = None
    source_name: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Article:
        """Build a view from a raw article dict, tolerating missing fields."""
        source = data.get("source")
        source_name = source.get("name") if isinstance(source, dict) else None
        return cls(
            title=data.get("title"),
            description=data.get("description"),
            url=data.get("url"),
            image=data.get("image") or data.get("urlToImage"),
            published_at=data.get("publishedAt"),
            source_name=source_name,
        )


@dataclass(frozen=True)
class NewsSnapshot:
    """Point-in-time view of the cache contents returned to callers."""

    articles: list[dict[str, Any]] = field(default_factory=list)
    last_updated: datetime | None = None

    @property
    def total_articles(self) -> int:
        return len(self.articles)

    @classmethod
    def empty(cls) -> NewsSnapshot:
        """The result served when nothing could be fetched."""
        return cls(articles=[], last_updated=None)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the JSON shape served by ``/api/news``."""
        return {
            "articles": list(self.articles),
            "lastUpdated": self.last_updated.isoformat() if self.last_updated else None,
            "totalArticles": self.total_articles,
        }
