"""FastAPI application serving scraped dipalme events."""
import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ingest import settings
from ingest.event_cache import EventCache
from ingest.schemas import CategoryValidationError, ScrapeResult, resolve_category
from scrapers.event_aggregator import scrape_all, scrape_one

logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"

# Thread pool for running the blocking scrapers from async handlers
executor = ThreadPoolExecutor(max_workers=4)


class EventModel(BaseModel):
    """Event record as returned to clients."""
    title: Optional[str] = None
    imageUrl: Optional[str] = None
    imageAlt: Optional[str] = None
    startDate: Optional[str] = None
    endDate: Optional[str] = None
    location: Optional[str] = None
    period: Optional[str] = None
    category: Optional[str] = None
    type: str


class ScrapeResponse(BaseModel):
    """Response model for a scrape."""
    success: bool
    data: List[EventModel]
    message: Optional[str] = None
    error: Optional[str] = None


class CachedScrapeResponse(ScrapeResponse):
    """Scrape response served from the event cache."""
    cached: bool
    lastUpdate: Optional[str] = None
    updating: bool


class HealthResponse(BaseModel):
    """Health check response model."""
    status: str
    timestamp: str


def create_event_cache() -> EventCache:
    return EventCache(refresh=scrape_all, ttl_seconds=settings.CACHE_TTL_SECONDS)


def warm_cache_on_startup(cache: EventCache) -> None:
    """Populate the cache in the background so startup is not delayed."""
    cache.schedule_warmup(settings.CACHE_WARMUP_DELAY)


@asynccontextmanager
async def lifespan(app: FastAPI):
    cache = create_event_cache()
    app.state.event_cache = cache
    warm_cache_on_startup(cache)
    try:
        yield
    finally:
        cache.shutdown()


app = FastAPI(
    title="Dipalme Events API",
    description="Fiestas, festivales and other events scraped from dipalme.org",
    version=API_VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)


def get_event_cache(request: Request) -> EventCache:
    """Dependency returning the process-wide event cache."""
    return request.app.state.event_cache


def _error_response(status_code: int, error: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "data": [], "error": error},
    )


@app.exception_handler(CategoryValidationError)
async def invalid_category_handler(request: Request, exc: CategoryValidationError):
    return _error_response(400, str(exc))


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error("Unhandled error on %s: %s", request.url.path, exc, exc_info=exc)
    return _error_response(500, "Internal server error")


@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "name": "Dipalme Events API",
        "version": API_VERSION,
        "docs": "/docs",
        "health": "/api/health",
    }


@app.get("/api/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    return HealthResponse(
        status="OK",
        timestamp=datetime.now(timezone.utc).isoformat(),
    )


@app.get("/api/events/all", response_model=CachedScrapeResponse)
async def list_all(cache: EventCache = Depends(get_event_cache)):
    """
    Return every enabled category from the event cache.

    Never waits on the listing site: stale data is served while a
    background refresh runs.
    """
    return cache.read().to_dict()


@app.get("/api/events/{event_type}", response_model=ScrapeResponse)
async def list_by_type(event_type: str):
    """Scrape a single category live. Unknown categories get a 400."""
    category = resolve_category(event_type)
    loop = asyncio.get_running_loop()
    result: ScrapeResult = await loop.run_in_executor(executor, scrape_one, category)
    return result.to_dict()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.HOST, port=settings.PORT)
