from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime, timezone
import os
import sys
import threading

# Ensure the project root is on the import path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from ingest.event_cache import EMPTY, FRESH, REFRESHING, STALE, EventCache
from ingest.schemas import EventType, ScrapedEvent, ScrapeResult

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class InlineExecutor:
    """Runs submitted work immediately on the calling thread."""

    def __init__(self):
        self.submitted = 0

    def submit(self, fn, *args, **kwargs):
        self.submitted += 1
        future = Future()
        future.set_result(fn(*args, **kwargs))
        return future

    def shutdown(self, wait=True):
        pass


class DeferredExecutor:
    """Holds submitted work until ``run_all`` is called."""

    def __init__(self):
        self.pending = []

    def submit(self, fn, *args, **kwargs):
        self.pending.append((fn, args, kwargs))
        return Future()

    def run_all(self):
        while self.pending:
            fn, args, kwargs = self.pending.pop(0)
            fn(*args, **kwargs)

    def shutdown(self, wait=True):
        pass


def events(*titles):
    return [ScrapedEvent(type=EventType.FIESTAS, title=t) for t in titles]


def make_cache(results, executor=None, clock=None):
    results = list(results)
    calls = []

    def refresh():
        calls.append(1)
        outcome = results.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    cache = EventCache(
        refresh=refresh,
        ttl_seconds=1800,
        clock=clock or FakeClock(),
        wall_clock=lambda: NOW,
        executor=executor or InlineExecutor(),
    )
    return cache, calls


def test_new_cache_is_empty():
    cache, _ = make_cache([], executor=DeferredExecutor())
    assert cache.state == EMPTY
    assert cache.last_update is None


def test_read_after_successful_refresh_is_cached_and_fresh():
    cache, calls = make_cache([ScrapeResult.ok(events("Feria"), "ok")])

    cache.refresh_in_background()
    snapshot = cache.read()

    assert snapshot.cached is True
    assert snapshot.updating is False
    assert [e.title for e in snapshot.data] == ["Feria"]
    assert snapshot.last_update == NOW
    assert cache.state == FRESH
    assert len(calls) == 1


def test_read_on_empty_cache_starts_refresh_and_returns_immediately():
    executor = DeferredExecutor()
    cache, _ = make_cache([ScrapeResult.ok(events("Feria"), "ok")], executor=executor)

    snapshot = cache.read()

    assert snapshot.data == []
    assert snapshot.cached is False
    assert snapshot.updating is True
    assert cache.state == REFRESHING
    executor.run_all()
    assert cache.state == FRESH


def test_stale_read_serves_old_data_while_refreshing():
    clock = FakeClock()
    executor = DeferredExecutor()
    cache, calls = make_cache(
        [ScrapeResult.ok(events("Old"), "ok"), ScrapeResult.ok(events("New"), "ok")],
        executor=executor,
        clock=clock,
    )
    cache.refresh_in_background()
    executor.run_all()

    clock.now += 1801
    assert cache.state == STALE
    snapshot = cache.read()

    assert [e.title for e in snapshot.data] == ["Old"]
    assert snapshot.updating is True
    executor.run_all()
    assert [e.title for e in cache.read().data] == ["New"]
    assert len(calls) == 2


def test_fresh_read_does_not_refresh():
    clock = FakeClock()
    cache, calls = make_cache([ScrapeResult.ok(events("Feria"), "ok")], clock=clock)
    cache.refresh_in_background()

    clock.now += 60
    cache.read()
    cache.read()

    assert len(calls) == 1


def test_concurrent_reads_trigger_a_single_refresh():
    executor = DeferredExecutor()
    cache, _ = make_cache([ScrapeResult.ok(events("Feria"), "ok")], executor=executor)

    first = cache.read()
    second = cache.read()

    assert first.updating and second.updating
    assert len(executor.pending) == 1


def test_threaded_reads_trigger_a_single_refresh():
    release = threading.Event()
    calls = []

    def slow_refresh():
        calls.append(1)
        release.wait(5)
        return ScrapeResult.ok(events("Feria"), "ok")

    executor = ThreadPoolExecutor(max_workers=1)
    cache = EventCache(refresh=slow_refresh, ttl_seconds=1800, executor=executor)
    try:
        readers = [threading.Thread(target=cache.read) for _ in range(8)]
        for reader in readers:
            reader.start()
        for reader in readers:
            reader.join()
        assert cache.is_updating is True
    finally:
        release.set()
        executor.shutdown(wait=True)
    assert len(calls) == 1


def test_failed_refresh_on_empty_cache_stays_empty():
    cache, _ = make_cache([ScrapeResult.failed("network down")])

    cache.refresh_in_background()

    assert cache.state == EMPTY
    assert cache.is_updating is False


def test_failed_refresh_keeps_stale_data():
    clock = FakeClock()
    cache, _ = make_cache(
        [ScrapeResult.ok(events("Old"), "ok"), RuntimeError("boom")],
        clock=clock,
    )
    cache.refresh_in_background()
    clock.now += 1801

    snapshot = cache.read()

    assert [e.title for e in snapshot.data] == ["Old"]
    assert cache.state == STALE
    assert cache.is_updating is False


def test_empty_refresh_does_not_replace_data():
    cache, _ = make_cache([ScrapeResult.ok(events("Old"), "ok"), ScrapeResult.ok([], "none")])
    cache.refresh_in_background()
    cache.refresh_in_background()

    assert [e.title for e in cache.read().data] == ["Old"]


def test_schedule_warmup_refreshes_after_delay():
    done = threading.Event()

    def refresh():
        done.set()
        return ScrapeResult.ok(events("Feria"), "ok")

    cache = EventCache(refresh=refresh, ttl_seconds=1800, executor=InlineExecutor())
    timer = cache.schedule_warmup(0.01)
    try:
        assert done.wait(5)
        timer.join(5)
        assert cache.state == FRESH
    finally:
        cache.shutdown()


def test_cached_result_wire_format():
    cache, _ = make_cache([ScrapeResult.ok(events("Feria"), "ok")])
    cache.refresh_in_background()

    payload = cache.read().to_dict()

    assert payload["success"] is True
    assert payload["cached"] is True
    assert payload["updating"] is False
    assert payload["lastUpdate"] == NOW.isoformat()
    assert payload["data"][0]["title"] == "Feria"
    assert payload["data"][0]["type"] == "Fiestas"
