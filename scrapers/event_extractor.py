"""Extract event records from the dipalme activity listing markup.

Each event on the page starts with a title node (``.date-eventos``). Its
image and a ``.vista-fiestas-resumen`` block of labelled ``<p>`` lines live
somewhere in an enclosing element, nested at a depth that differs between
categories, so the enclosing element is found by walking up from the title.
"""
from __future__ import annotations

import logging
import re
from typing import Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag

from ingest import settings
from ingest.schemas import EventType, ScrapedEvent

logger = logging.getLogger(__name__)

TITLE_SELECTOR = ".date-eventos"
SUMMARY_SELECTOR = ".vista-fiestas-resumen"
MAX_CONTAINER_DEPTH = 10

DATE_RANGE_RE = re.compile(r"\bDel\s*:\s*(\S+).*\bAl\s*:\s*(\S+)", re.IGNORECASE | re.DOTALL)
LOCATION_RE = re.compile(r"^Lugar\s*:", re.IGNORECASE)
# The site spells it "Perido:" on some pages.
PERIOD_RE = re.compile(r"^Per[ií]o?do\s*:", re.IGNORECASE)
TYPE_RE = re.compile(r"^Tipo\s*:", re.IGNORECASE)

_STOP_TAGS = {"body", "html", "[document]"}


class ExtractionItemError(Exception):
    """Raised when a single event block cannot be turned into a record."""


def find_container(marker: Tag, max_depth: int = MAX_CONTAINER_DEPTH) -> Optional[Tag]:
    """Return the nearest ancestor of ``marker`` holding a summary block.

    ``<body>`` or the document root is returned when it holds the summary
    itself; the walk stops there, or after ``max_depth`` parents.
    """
    parent = marker.parent
    depth = 0
    while parent is not None and depth < max_depth:
        if parent.select_one(SUMMARY_SELECTOR) is not None:
            return parent
        if parent.name in _STOP_TAGS:
            return None
        parent = parent.parent
        depth += 1
    return None


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def _strip_label(pattern: re.Pattern, text: str) -> Optional[str]:
    return _clean(pattern.sub("", text, count=1))


def parse_summary(summary: Tag) -> dict[str, Optional[str]]:
    """Read the labelled lines of a summary block.

    When several lines carry the same label the last one is kept.
    """
    fields: dict[str, Optional[str]] = {
        "start_date": None,
        "end_date": None,
        "location": None,
        "period": None,
        "category": None,
    }
    for paragraph in summary.find_all("p"):
        text = paragraph.get_text().strip()
        date_match = DATE_RANGE_RE.search(text)
        if date_match:
            fields["start_date"] = date_match.group(1)
            fields["end_date"] = date_match.group(2)
        elif LOCATION_RE.match(text):
            fields["location"] = _strip_label(LOCATION_RE, text)
        elif PERIOD_RE.match(text):
            fields["period"] = _strip_label(PERIOD_RE, text)
        elif TYPE_RE.match(text):
            fields["category"] = _strip_label(TYPE_RE, text)
    return fields


def _extract_image(container: Tag, origin: str) -> tuple[Optional[str], Optional[str]]:
    img = container.find("img")
    if img is None:
        return None, None
    src = _clean(img.get("src"))
    if src:
        src = urljoin(origin.rstrip("/") + "/", src)
    return src, _clean(img.get("alt"))


def _extract_item(marker: Tag, category: EventType, origin: str) -> ScrapedEvent:
    try:
        event = ScrapedEvent(type=category, title=_clean(marker.get_text()))
        container = find_container(marker)
        if container is None:
            return event

        event.image_url, event.image_alt = _extract_image(container, origin)
        summary = container.select_one(SUMMARY_SELECTOR)
        if summary is not None:
            for name, value in parse_summary(summary).items():
                setattr(event, name, value)
        return event
    except Exception as exc:
        raise ExtractionItemError(f"Malformed event block: {exc}") from exc


def extract_events(
    html: str,
    category: EventType,
    origin: str = settings.DIPALME_ORIGIN,
) -> list[ScrapedEvent]:
    """Return one record per title marker in ``html``, in document order.

    Blocks that fail to parse are logged and skipped.
    """
    soup = BeautifulSoup(html, "html.parser")
    events: list[ScrapedEvent] = []
    for marker in soup.select(TITLE_SELECTOR):
        try:
            events.append(_extract_item(marker, category, origin))
        except ExtractionItemError as exc:
            logger.warning("Skipping %s event: %s", category.value, exc)
            continue
    return events
