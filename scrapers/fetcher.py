"""HTTP fetching with browser-like headers and exponential backoff."""
from __future__ import annotations

import logging
import random
import time
from typing import Callable, Mapping, Optional

import requests

from ingest import settings

logger = logging.getLogger(__name__)

USER_AGENTS = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:121.0) Gecko/20100101 Firefox/121.0",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.2 Safari/605.1.15",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
]

BROWSER_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
    "Accept-Language": "es-ES,es;q=0.9,en;q=0.8",
    "Accept-Encoding": "gzip, deflate, br",
    "Connection": "keep-alive",
    "Upgrade-Insecure-Requests": "1",
}


class FetchError(Exception):
    """Raised when a page could not be fetched after every retry."""


def build_headers() -> dict[str, str]:
    """Return request headers with a randomly chosen user agent."""
    headers = dict(BROWSER_HEADERS)
    headers["User-Agent"] = random.choice(USER_AGENTS)
    return headers


class HtmlFetcher:
    """Fetch HTML documents, retrying failed attempts with backoff."""

    def __init__(
        self,
        timeout: float = settings.FETCH_TIMEOUT,
        max_retries: int = settings.FETCH_MAX_RETRIES,
        retry_delay: float = settings.FETCH_RETRY_DELAY,
        max_redirects: int = settings.FETCH_MAX_REDIRECTS,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.session = session or requests.Session()
        self.session.max_redirects = max_redirects
        self._sleep = sleep

    def close(self) -> None:
        self.session.close()

    def __enter__(self) -> "HtmlFetcher":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def backoff_delay(self, attempt: int) -> float:
        """Delay to wait after failed ``attempt`` (1-based)."""
        return self.retry_delay * (2 ** (attempt - 1))

    def fetch(self, url: str, params: Optional[Mapping[str, str]] = None) -> str:
        """
        Fetch ``url`` and return the response body.

        Args:
            url: Page URL
            params: Optional query string parameters

        Returns:
            Response text

        Raises:
            FetchError: If all attempts fail; chained to the last error
        """
        for attempt in range(1, self.max_retries + 1):
            try:
                logger.info("GET %s %s (attempt %d/%d)", url, dict(params or {}), attempt, self.max_retries)
                response = self.session.get(
                    url,
                    params=params,
                    headers=build_headers(),
                    timeout=self.timeout,
                    allow_redirects=True,
                )
                response.raise_for_status()
                return response.text
            except requests.RequestException as exc:
                if attempt < self.max_retries:
                    delay = self.backoff_delay(attempt)
                    logger.warning(
                        "Request failed (attempt %d/%d): %s. Retrying in %.1f seconds...",
                        attempt,
                        self.max_retries,
                        exc,
                        delay,
                    )
                    self._sleep(delay)
                else:
                    logger.error("All %d attempts failed for %s. Last error: %s", self.max_retries, url, exc)
                    raise FetchError(
                        f"Failed to fetch {url} after {self.max_retries} attempts: {exc}"
                    ) from exc
        raise AssertionError("unreachable")
