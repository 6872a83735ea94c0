"""CLI commands for the Realty News service."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

import click

from realty_news.config import NewsSettings
from realty_news.exceptions import NewsError
from realty_news.models import Article, NewsSnapshot
from realty_news.news.cache import NewsCache
from realty_news.news.gnews_client import GNewsClient


@click.group()
@click.option("--verbose", "-v", count=True, help="Log progress (-vv for debug)")
def cli(verbose: int) -> None:
    """Realty News - Real-estate headlines for the territory platform."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG if verbose > 1 else logging.INFO,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )


@cli.command()
@click.option("--json-output", "-j", is_flag=True, help="Output as JSON")
def fetch(json_output: bool) -> None:
    """Fetch articles straight from the news API, bypassing the cache.

    Example: realty-news fetch --json-output
    """
    try:
        data = asyncio.run(_fetch_once())
    except NewsError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)

    articles = data["articles"]
    if json_output:
        click.echo(json.dumps({"articles": articles}, indent=2))
    else:
        click.echo(f"✓ Fetched {len(articles)} articles")
        _print_articles(articles)


@cli.command()
@click.option("--json-output", "-j", is_flag=True, help="Output as JSON")
def news(json_output: bool) -> None:
    """Show news the way the API serves it (cache, with fallback to empty).

    Example: realty-news news
    """
    try:
        snapshot = asyncio.run(_load_news())
    except NewsError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)

    if json_output:
        click.echo(json.dumps(snapshot.to_dict(), indent=2))
        return

    if snapshot.total_articles == 0:
        click.echo("No news available.")
        return

    click.echo(f"{snapshot.total_articles} articles")
    if snapshot.last_updated:
        click.echo(f"  Last updated: {snapshot.last_updated.isoformat()}")
    _print_articles(snapshot.articles)


async def _fetch_once() -> dict[str, Any]:
    async with GNewsClient() as client:
        return await client.fetch_news()


async def _load_news() -> NewsSnapshot:
    settings = NewsSettings.from_env()
    async with GNewsClient(settings=settings) as client:
        cache = NewsCache.from_settings(client, settings)
        return await cache.get_news()


def _print_articles(articles: list[dict[str, Any]]) -> None:
    """Pretty-print a list of raw articles."""
    for raw in articles:
        article = Article.from_dict(raw)
        click.echo("")
        click.secho(article.title or "(untitled)", bold=True)
        details = [d for d in (article.source_name, article.published_at) if d]
        if details:
            click.echo(f"  {' | '.join(details)}")
        if article.url:
            click.echo(f"  {article.url}")


if __name__ == "__main__":
    cli()
