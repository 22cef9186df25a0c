"""Shared data models for the collector service."""
from __future__ import annotations

import unicodedata
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Optional

from ingest import settings


class EventType(str, Enum):
    """Activity categories published by the listing site."""

    FIESTAS = "Fiestas"
    FESTIVALES = "Festivales"
    ESPECTACULOS = "Espectáculos"
    EXPOSICIONES = "Exposiciones"


class CategoryValidationError(ValueError):
    """Raised when a caller asks for a category that is not enabled."""


def _fold(value: str) -> str:
    """Lowercase ``value`` and strip accents so ``espectaculos`` matches."""
    decomposed = unicodedata.normalize("NFKD", value.strip().lower())
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def enabled_categories(names: Iterable[str] | None = None) -> list[EventType]:
    """Return the configured categories as ``EventType`` members, in order."""
    names = settings.EVENT_CATEGORIES if names is None else names
    categories: list[EventType] = []
    for name in names:
        if isinstance(name, EventType):
            categories.append(name)
            continue
        try:
            categories.append(EventType(name))
        except ValueError as exc:
            raise ValueError(f"Unknown event category in configuration: {name!r}") from exc
    return categories


def resolve_category(raw: str, enabled: Iterable[EventType] | None = None) -> EventType:
    """Map a user supplied category string onto an enabled ``EventType``.

    Matching ignores case and accents. Raises
    :class:`CategoryValidationError` for anything else.
    """
    choices = list(enabled) if enabled is not None else enabled_categories()
    wanted = _fold(raw or "")
    for category in choices:
        if _fold(category.value) == wanted:
            return category
    valid = ", ".join(f'"{c.value}"' for c in choices)
    raise CategoryValidationError(f"Invalid event type. Must be one of {valid}")


@dataclass
class ScrapedEvent:
    """A single event extracted from the listing page."""

    type: EventType
    title: Optional[str] = None
    image_url: Optional[str] = None
    image_alt: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    location: Optional[str] = None
    period: Optional[str] = None
    category: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "imageUrl": self.image_url,
            "imageAlt": self.image_alt,
            "startDate": self.start_date,
            "endDate": self.end_date,
            "location": self.location,
            "period": self.period,
            "category": self.category,
            "type": self.type.value,
        }


@dataclass
class ScrapeResult:
    """Outcome of a scrape: either events or an error message."""

    success: bool
    data: list[ScrapedEvent] = field(default_factory=list)
    message: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, data: list[ScrapedEvent], message: str) -> "ScrapeResult":
        return cls(success=True, data=list(data), message=message)

    @classmethod
    def failed(cls, error: str) -> "ScrapeResult":
        return cls(success=False, data=[], error=error)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "success": self.success,
            "data": [event.to_dict() for event in self.data],
        }
        if self.message is not None:
            payload["message"] = self.message
        if self.error is not None:
            payload["error"] = self.error
        return payload
