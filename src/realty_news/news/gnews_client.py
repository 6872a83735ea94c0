"""GNews.io search client with a direct-HTTP fallback."""

from __future__ import annotations

import logging
import os
from typing import Any

import httpx

from realty_news.config import NewsSettings
from realty_news.exceptions import (
    AuthenticationError,
    ConfigurationError,
    NewsFetchError,
    RateLimitError,
)

logger = logging.getLogger(__name__)

_FETCH_ERRORS = (httpx.HTTPError, ValueError, NewsFetchError)


class GNewsClient:
    """Client for the GNews search endpoint.

    One logical fetch tries two transports: the client's pooled connection
    first, then a one-shot direct request over a fresh connection. Only when
    both fail is an error raised.
    """

    def __init__(
        self,
        api_key: str | None = None,
        settings: NewsSettings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings or NewsSettings.from_env()
        self._api_key = api_key or self._settings.api_key
        self._transport = transport
        self._client = httpx.AsyncClient(
            timeout=self._settings.http_timeout_seconds,
            transport=transport,
        )

    def _require_api_key(self) -> str:
        api_key = self._api_key or os.environ.get("NEWS_API_KEY")
        if not api_key:
            raise ConfigurationError("News API key not configured")
        return api_key

    def _build_params(self, api_key: str) -> dict[str, str | int]:
        return {
            "q": self._settings.query,
            "lang": self._settings.lang,
            "country": self._settings.country,
            "max": self._settings.max_results,
            "apikey": api_key,
        }

    @staticmethod
    def _normalize(data: Any) -> dict[str, Any] | None:
        """Return ``data`` with a guaranteed ``articles`` list, or None if unrecognized."""
        if isinstance(data, dict) and isinstance(data.get("articles"), list):
            return data
        if isinstance(data, list):
            return {"articles": data}
        return None

    # -- transports --------------------------------------------------------

    async def _fetch_pooled(self, params: dict[str, str | int]) -> dict[str, Any]:
        resp = await self._client.get(self._settings.api_url, params=params)
        resp.raise_for_status()
        data = self._normalize(resp.json())
        if data is None:
            raise NewsFetchError(
                "Unrecognized response from news API", status_code=resp.status_code
            )
        return data

    async def _fetch_direct(self, params: dict[str, str | int]) -> dict[str, Any]:
        async with httpx.AsyncClient(
            timeout=self._settings.http_timeout_seconds,
            transport=self._transport,
        ) as client:
            resp = await client.get(self._settings.api_url, params=params)

        if not resp.is_success:
            logger.error("News API error response: %s", resp.text[:500])
            raise NewsFetchError(
                f"GNews API returned status {resp.status_code}: {resp.text[:100]}",
                status_code=resp.status_code,
            )

        body = resp.json()
        data = self._normalize(body)
        if data is None:
            message = body.get("message") if isinstance(body, dict) else None
            raise NewsFetchError(
                message or "Failed to fetch news", status_code=resp.status_code
            )
        return data

    # -- public API --------------------------------------------------------

    async def fetch_news(self) -> dict[str, Any]:
        """Fetch the configured search results.

        Returns:
            Dict whose ``articles`` key is always a list.

        Raises:
            ConfigurationError: No API key is configured.
            AuthenticationError: The API rejected the key (401/403).
            RateLimitError: The API rate limit was hit (429).
            NewsFetchError: Any other failure of both transports.
        """
        api_key = self._require_api_key()
        params = self._build_params(api_key)
        logger.info("Using GNews API key %s...", api_key[:8])

        try:
            data = await self._fetch_pooled(params)
            logger.info("News API returned %d articles", len(data["articles"]))
            return data
        except _FETCH_ERRORS as e:
            primary_error = e
            logger.warning(
                "Pooled news request failed, trying direct request: %s", primary_error
            )

        try:
            data = await self._fetch_direct(params)
        except _FETCH_ERRORS as fallback_error:
            logger.error(
                "Both news transports failed (pooled: %s; direct: %s)",
                primary_error,
                fallback_error,
            )
            raise _classify(fallback_error, primary_error) from fallback_error

        logger.info("Direct news request returned %d articles", len(data["articles"]))
        return data

    async def aclose(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> GNewsClient:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()


def _status_of(error: Exception) -> int | None:
    if isinstance(error, NewsFetchError):
        return error.status_code
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code
    return None


def _classify(fallback_error: Exception, primary_error: Exception) -> NewsFetchError:
    """Map the final transport failure onto the error taxonomy."""
    status = _status_of(fallback_error)

    if status == 403:
        return AuthenticationError(
            "GNews API: Authentication failed (403). "
            "Please verify your API key is valid for GNews.io",
            status_code=status,
        )
    if status == 401:
        return AuthenticationError(
            "GNews API: Unauthorized (401). Invalid API key.", status_code=status
        )
    if status == 429:
        return RateLimitError(
            "GNews API: Rate limit exceeded (429). Please try again later.",
            status_code=status,
        )

    detail = str(fallback_error) or str(primary_error) or type(fallback_error).__name__
    return NewsFetchError(f"Failed to fetch news: {detail}", status_code=status)
