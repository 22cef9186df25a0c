"""Scrape one or every enabled category and wrap the outcome in a ScrapeResult."""
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Iterable, Optional

from ingest import settings
from ingest.schemas import (
    EventType,
    ScrapeResult,
    enabled_categories,
    resolve_category,
)

from .event_extractor import extract_events
from .fetcher import HtmlFetcher

logger = logging.getLogger(__name__)


def build_category_url(category: EventType) -> tuple[str, dict[str, str]]:
    """Return the listing URL and query parameters for ``category``."""
    return settings.DIPALME_BASE_URL, {"p": "dipalme", "actividad": category.value}


def scrape_one(category: EventType, fetcher: Optional[HtmlFetcher] = None) -> ScrapeResult:
    """Fetch and extract a single category.

    Never raises: failures come back as ``ScrapeResult(success=False)``.
    """
    owns_fetcher = fetcher is None
    fetcher = fetcher or HtmlFetcher()
    url, params = build_category_url(category)
    try:
        html = fetcher.fetch(url, params=params)
        events = extract_events(html, category)
    except Exception as exc:
        logger.error("Scraping %s failed: %s", category.value, exc, exc_info=True)
        return ScrapeResult.failed(str(exc) or f"Unknown error scraping {category.value}")
    finally:
        if owns_fetcher:
            fetcher.close()

    logger.info("Scraped %d %s", len(events), category.value)
    return ScrapeResult.ok(events, f"Successfully scraped {len(events)} {category.value.lower()}")


def scrape_all(
    categories: Optional[Iterable[EventType]] = None,
    fetcher: Optional[HtmlFetcher] = None,
) -> ScrapeResult:
    """Scrape every category concurrently and concatenate in category order."""
    categories = list(categories) if categories is not None else enabled_categories()
    if not categories:
        return ScrapeResult.ok([], "No event categories enabled")

    try:
        with ThreadPoolExecutor(max_workers=len(categories)) as executor:
            # map() yields in submission order regardless of completion order
            results = list(executor.map(lambda c: scrape_one(c, fetcher), categories))
    except Exception as exc:
        logger.error("Scraping all categories failed: %s", exc, exc_info=True)
        return ScrapeResult.failed(str(exc) or "Unknown error scraping all events")

    all_events = []
    counts = []
    for category, result in zip(categories, results):
        all_events.extend(result.data)
        counts.append(f"{category.value}: {len(result.data) if result.success else 'failed'}")

    return ScrapeResult.ok(
        all_events,
        f"Successfully scraped {len(all_events)} total events ({', '.join(counts)})",
    )


def scrape_by_type(
    raw_type: str,
    categories: Optional[Iterable[EventType]] = None,
    fetcher: Optional[HtmlFetcher] = None,
) -> ScrapeResult:
    """Validate ``raw_type`` and scrape it.

    Raises:
        CategoryValidationError: before any request when ``raw_type`` is unknown
    """
    category = resolve_category(raw_type, categories)
    return scrape_one(category, fetcher)
