"""Capability interface for anything that can supply news articles."""

from __future__ import annotations

from typing import Any, Protocol


class NewsProvider(Protocol):
    """Protocol for news sources consumed by the cache."""

    async def fetch_news(self) -> dict[str, Any]:
        """Fetch articles; the result always exposes ``articles`` as a list."""
        ...
