"""Scrape one category (or all of them) and print the result as JSON."""
from __future__ import annotations

import json
import logging
import os
import sys

from ingest.schemas import CategoryValidationError
from scrapers.event_aggregator import scrape_all, scrape_by_type

logger = logging.getLogger(__name__)
if os.getenv("SCRAPER_DEBUG"):
    logging.basicConfig(level=logging.INFO, format="%(message)s")


def run(target: str = "all") -> int:
    """Scrape ``target`` and print the JSON payload. Returns an exit code."""
    if target.lower() == "all":
        result = scrape_all()
    else:
        try:
            result = scrape_by_type(target)
        except CategoryValidationError as exc:
            print("❌", exc, file=sys.stderr)
            return 1

    print(json.dumps(result.to_dict(), ensure_ascii=False, indent=2))
    if not result.success:
        logger.info("Scrape failed: %s", result.error)
        return 1
    return 0


if __name__ == "__main__":
    if len(sys.argv) > 2:
        print("Usage: python -m jobs.scrape_events [category|all]")
        raise SystemExit(1)
    raise SystemExit(run(sys.argv[1] if len(sys.argv) == 2 else "all"))
