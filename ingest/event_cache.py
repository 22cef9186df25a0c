"""In-memory stale-while-revalidate cache for the aggregated event list.

Reads always return immediately with whatever is stored. Once the data is
older than the TTL (or nothing has been stored yet) a read kicks off a single
background refresh; concurrent reads never start a second one.
"""
from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Optional

from ingest import settings
from ingest.schemas import ScrapedEvent, ScrapeResult

logger = logging.getLogger(__name__)

EMPTY = "empty"
FRESH = "fresh"
STALE = "stale"
REFRESHING = "refreshing"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class CachedResult:
    """Snapshot returned by :meth:`EventCache.read`."""

    data: list[ScrapedEvent] = field(default_factory=list)
    cached: bool = False
    last_update: Optional[datetime] = None
    updating: bool = False

    def to_dict(self) -> dict:
        if self.cached:
            message = f"Serving {len(self.data)} cached events"
        else:
            message = "Event cache is warming up"
        return {
            "success": True,
            "data": [event.to_dict() for event in self.data],
            "message": message,
            "cached": self.cached,
            "lastUpdate": self.last_update.isoformat() if self.last_update else None,
            "updating": self.updating,
        }


class EventCache:
    """Holds the last successful aggregate scrape."""

    def __init__(
        self,
        refresh: Callable[[], ScrapeResult],
        ttl_seconds: float = settings.CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], datetime] = _utcnow,
        executor: Optional[ThreadPoolExecutor] = None,
    ):
        self._refresh = refresh
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._wall_clock = wall_clock
        self._executor = executor or ThreadPoolExecutor(max_workers=1, thread_name_prefix="event-cache")
        self._lock = threading.Lock()
        self._data: list[ScrapedEvent] = []
        self._last_update: Optional[datetime] = None
        self._updated_at: Optional[float] = None
        self._is_updating = False
        self._warmup: Optional[threading.Timer] = None

    @property
    def is_updating(self) -> bool:
        return self._is_updating

    @property
    def last_update(self) -> Optional[datetime]:
        return self._last_update

    @property
    def state(self) -> str:
        with self._lock:
            if self._is_updating:
                return REFRESHING
            return self._state_locked()

    def _state_locked(self) -> str:
        if self._updated_at is None:
            return EMPTY
        if self._clock() - self._updated_at > self.ttl_seconds:
            return STALE
        return FRESH

    def _try_begin_refresh(self, only_if_needed: bool) -> bool:
        with self._lock:
            if self._is_updating:
                return False
            if only_if_needed and self._state_locked() == FRESH:
                return False
            self._is_updating = True
            return True

    def refresh_in_background(self) -> Optional[Future]:
        """Start a refresh unless one is already running."""
        if not self._try_begin_refresh(only_if_needed=False):
            return None
        return self._submit()

    def _submit(self) -> Future:
        try:
            return self._executor.submit(self._run_refresh)
        except RuntimeError:
            # executor already shut down
            with self._lock:
                self._is_updating = False
            raise

    def _run_refresh(self) -> None:
        logger.info("Refreshing event cache")
        try:
            result = self._refresh()
        except Exception as exc:
            logger.error("Event cache refresh raised: %s", exc, exc_info=True)
            result = None

        with self._lock:
            try:
                if result is not None and result.success and result.data:
                    self._data = list(result.data)
                    self._updated_at = self._clock()
                    self._last_update = self._wall_clock()
                    logger.info("Event cache updated with %d events", len(self._data))
                elif result is not None and result.success:
                    logger.warning("Event cache refresh returned no events; keeping %d cached", len(self._data))
                elif result is not None:
                    logger.warning("Event cache refresh failed: %s", result.error)
            finally:
                self._is_updating = False

    def read(self) -> CachedResult:
        """Return the cached events without waiting on the network."""
        if self._try_begin_refresh(only_if_needed=True):
            try:
                self._submit()
            except RuntimeError:
                logger.warning("Event cache is shut down; not refreshing")

        with self._lock:
            return CachedResult(
                data=list(self._data),
                cached=self._updated_at is not None,
                last_update=self._last_update,
                updating=self._is_updating,
            )

    def schedule_warmup(self, delay: float = settings.CACHE_WARMUP_DELAY) -> threading.Timer:
        """Fire-and-forget the first refresh ``delay`` seconds from now."""
        timer = threading.Timer(delay, self.refresh_in_background)
        timer.daemon = True
        self._warmup = timer
        timer.start()
        logger.info("Event cache warm-up scheduled in %.1f seconds", delay)
        return timer

    def shutdown(self) -> None:
        if self._warmup is not None:
            self._warmup.cancel()
        self._executor.shutdown(wait=False)
