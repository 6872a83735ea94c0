"""News fetching and caching components."""

from realty_news.news.cache import NewsCache
from realty_news.news.gnews_client import GNewsClient
from realty_news.news.provider import NewsProvider

__all__ = ["GNewsClient", "NewsCache", "NewsProvider"]
