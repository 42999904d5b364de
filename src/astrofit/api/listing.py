"""Search-result shaping helpers for the Astrofit API.

This module isolates the decoding of NASA search JSON from
``astrofit.api.main`` so route handlers can focus on HTTP concerns while the
shaping rules remain testable as small units.

NASA search responses look like::

    {"collection": {
        "items": [
            {"data": [{"nasa_id": "...", "title": "...", "description": "..."}],
             "links": [{"href": "https://.../thumb.jpg", "rel": "preview"}]},
            ...
        ],
        "metadata": {"total_hits": 12345}
    }}

The rules are intentionally forgiving:

- items without a ``nasa_id`` or without a preview link are dropped
- a missing title becomes ``"Untitled"``
- dropping happens *before* slicing to the page size, so a page is only
  short when NASA itself ran out of usable items
"""

from __future__ import annotations

import math
import random
from typing import Any

from astrofit.api.models import ImageItem

FEED_PER_PAGE = 25
FEATURED_LIMIT = 30
MAX_FEED_PAGE = 100
RANDOM_PAGE_MAX = 10

# Curated topics that reliably return strong images.
FEATURED_QUERIES: tuple[str, ...] = (
    "nebula",
    "galaxy",
    "hubble",
    "jwst",
    "saturn",
    "jupiter",
    "mars",
    "earth from space",
    "astronaut",
)

# The APOD fallback skips "astronaut": portraits make poor pictures of the day.
APOD_FALLBACK_QUERIES: tuple[str, ...] = FEATURED_QUERIES[:-1]


def parse_search_item(raw: Any) -> ImageItem | None:
    """Decode one search hit, or return ``None`` if it is unusable."""
    if not isinstance(raw, dict):
        return None

    data = raw.get("data") or []
    links = raw.get("links") or []
    d = data[0] if data and isinstance(data[0], dict) else {}
    link = links[0] if links and isinstance(links[0], dict) else {}

    nasa_id = d.get("nasa_id")
    href = link.get("href")
    if not nasa_id or not isinstance(href, str) or not href:
        return None

    # Titles are not always strings.
    title = d.get("title")
    description = d.get("description")
    return ImageItem(
        nasa_id=str(nasa_id),
        title=str(title) if title not in (None, "") else "Untitled",
        description=description if isinstance(description, str) else None,
        thumb=href,
    )


def parse_search_items(data: Any) -> list[ImageItem]:
    """Decode every usable hit of a search response, in order."""
    if not isinstance(data, dict):
        return []
    collection = data.get("collection")
    if not isinstance(collection, dict):
        return []
    items = (parse_search_item(raw) for raw in collection.get("items") or [])
    return [item for item in items if item is not None]


def total_hits(data: Any) -> int | None:
    """Return ``collection.metadata.total_hits`` or ``None``."""
    if not isinstance(data, dict):
        return None
    collection = data.get("collection")
    metadata = collection.get("metadata") if isinstance(collection, dict) else None
    hits = metadata.get("total_hits") if isinstance(metadata, dict) else None
    return hits if isinstance(hits, int) else None


def total_pages(hits: int | None, per_page: int = FEED_PER_PAGE) -> int | None:
    """``ceil(hits / per_page)``, or ``None`` when the hit count is unknown or zero."""
    if not hits:
        return None
    return math.ceil(hits / per_page)


def clamp_page(value: Any) -> int:
    """Coerce a page parameter into ``1..MAX_FEED_PAGE``.

    Non-numeric, non-finite and sub-1 values all mean page 1.
    """
    try:
        n = float(value)
    except (TypeError, ValueError):
        return 1
    if not math.isfinite(n) or n < 1:
        return 1
    if n > MAX_FEED_PAGE:
        return MAX_FEED_PAGE
    return math.floor(n)


def pick_query_and_page(
    queries: tuple[str, ...] = FEATURED_QUERIES,
    rng: random.Random | None = None,
) -> tuple[str, int]:
    """Pick a random curated query and a random page in ``1..RANDOM_PAGE_MAX``."""
    rng = rng or random.Random()
    return rng.choice(queries), rng.randint(1, RANDOM_PAGE_MAX)
