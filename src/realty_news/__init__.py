"""Realty News - cached real-estate headlines for the territory platform."""

from realty_news.config import NewsSettings
from realty_news.news.cache import NewsCache
from realty_news.news.gnews_client import GNewsClient

__all__ = ["GNewsClient", "NewsCache", "NewsSettings"]
