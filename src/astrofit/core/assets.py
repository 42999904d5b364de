"""Asset variant selection for NASA Images API items.

Every item in the NASA Image Library is published in several resolution
tiers whose filenames carry a suffix token::

    .../PIA12345/PIA12345~orig.jpg
    .../PIA12345/PIA12345~large.jpg
    .../PIA12345/PIA12345~medium.jpg
    .../PIA12345/PIA12345~small.jpg
    .../PIA12345/PIA12345~thumb.jpg

Some items also ship a ``.tif`` original, and a few have no ``~`` tokens at
all.  The helpers in this module pick a URL by filename only; no file is
fetched to decide.

Two preference orders exist:

- **Delivery** (wallpapers, print renders, asset lookups) prefers
  ``~large`` over ``~orig``.  Originals can be hundreds of megabytes and
  routinely time out, while ``~large`` is plenty for a screen.
- **Print metadata** prefers ``~orig`` so the reported pixel size reflects
  the best source NASA has, then tries every other image as a last resort.
"""

from __future__ import annotations

import logging
import re
from dataclasses import asdict, dataclass, field
from typing import TYPE_CHECKING, Literal

from astrofit.core.nasa_client import NasaAPIError

if TYPE_CHECKING:
    from astrofit.core.nasa_client import NasaClient

logger = logging.getLogger(__name__)

VARIANTS: tuple[str, ...] = ("~orig", "~large", "~medium", "~small", "~thumb")
DELIVERY_ORDER: tuple[str, ...] = ("~large", "~orig", "~medium", "~small", "~thumb")
PRINT_META_ORDER: tuple[str, ...] = VARIANTS

_JPG_PNG_RE = re.compile(r"\.(jpe?g|png)$", re.IGNORECASE)
_TIFF_RE = re.compile(r"\.(tif|tiff)$", re.IGNORECASE)

AssetKind = Literal["jpg", "tiff", "none", "thumb-fallback"]


def is_jpg_png(url: str) -> bool:
    return bool(_JPG_PNG_RE.search(url))


def is_tiff(url: str) -> bool:
    return bool(_TIFF_RE.search(url))


def is_print_source(url: str) -> bool:
    """Return ``True`` for any raster format the renderer accepts."""
    return is_jpg_png(url) or is_tiff(url)


def pick_from(urls: list[str], order: tuple[str, ...] = DELIVERY_ORDER) -> str | None:
    """Pick the first URL containing the earliest token in ``order``.

    Args:
        urls: Candidate URLs, all of the same format family.
        order: Variant tokens from most to least preferred.

    Returns:
        The preferred URL, the first URL when no token matches, or ``None``
        for an empty list.
    """
    for token in order:
        hit = next((u for u in urls if token in u), None)
        if hit:
            return hit
    return urls[0] if urls else None


def pick_best(urls: list[str]) -> tuple[str | None, AssetKind]:
    """Choose the delivery URL and report which format family it came from.

    JPEG/PNG variants always win over TIFF because Pillow decodes them
    faster and they are much smaller on the wire.

    Returns:
        ``(url, kind)`` where ``kind`` is ``"jpg"``, ``"tiff"`` or ``"none"``.
    """
    jpgs = [u for u in urls if is_jpg_png(u)]
    if jpgs:
        return pick_from(jpgs), "jpg"

    tiffs = [u for u in urls if is_tiff(u)]
    if tiffs:
        return pick_from(tiffs), "tiff"

    return None, "none"


def print_candidates(urls: list[str]) -> list[str]:
    """Order image URLs for print metadata probing.

    One URL per variant token in :data:`PRINT_META_ORDER`, followed by every
    remaining image URL in listing order.  Duplicates are removed.
    """
    images = [u for u in urls if is_print_source(u)]
    picked: list[str] = []

    for token in PRINT_META_ORDER:
        hit = next((u for u in images if token in u), None)
        if hit and hit not in picked:
            picked.append(hit)

    for u in images:
        if u not in picked:
            picked.append(u)

    return picked


def largest_image_url(urls: list[str]) -> str | None:
    """Pick the highest-resolution JPEG/PNG, for APOD-style ``hdurl`` fields."""
    jpgs = [u for u in urls if is_jpg_png(u)]
    if not jpgs:
        return None
    return (
        next((u for u in jpgs if "~orig" in u), None)
        or next((u for u in jpgs if "orig" in u.lower()), None)
        or next((u for u in jpgs if "~large" in u), None)
        or jpgs[0]
    )


@dataclass
class AssetSelection:
    """Result of resolving the best downloadable asset for an item.

    Attributes:
        nasa_id: The NASA item identifier.
        best: Chosen URL, or ``None`` if nothing usable was found.
        kind: Which branch produced ``best``.
        items: Every URL listed by the asset endpoint.
    """

    nasa_id: str
    best: str | None
    kind: AssetKind
    items: list[str] = field(default_factory=list)

    def to_dict(self, *, debug: bool = False) -> dict:
        payload = asdict(self)
        del payload["items"]
        payload["itemsCount"] = len(self.items)
        if debug:
            payload["items"] = self.items[:50]
        return payload


async def resolve_best_asset(
    client: NasaClient,
    nasa_id: str,
    *,
    strict: bool = False,
) -> AssetSelection:
    """Resolve the delivery URL for ``nasa_id``.

    Tries the asset listing first, then falls back to the search thumbnail.

    Args:
        client: NASA API client.
        nasa_id: Item identifier.
        strict: If ``True``, an asset endpoint failure is raised instead of
            falling back (used by ``GET /api/asset/{nasa_id}``, which reports
            upstream failures as 502).

    Returns:
        The :class:`AssetSelection`; ``best`` is ``None`` when neither the
        asset list nor the search thumbnail produced a URL.

    Raises:
        NasaAPIError: Only when ``strict=True`` and the asset endpoint fails.
    """
    urls: list[str] = []
    try:
        urls = await client.asset_urls(nasa_id)
    except NasaAPIError as exc:
        if strict:
            raise
        logger.warning("Asset listing failed for '%s': %s", nasa_id, exc)

    best, kind = pick_best(urls)
    if best:
        return AssetSelection(nasa_id=nasa_id, best=best, kind=kind, items=urls)

    thumb = await client.search_thumbnail(nasa_id)
    if thumb:
        logger.info("Using search thumbnail for '%s'.", nasa_id)
        return AssetSelection(nasa_id=nasa_id, best=thumb, kind="thumb-fallback", items=urls)

    return AssetSelection(nasa_id=nasa_id, best=None, kind=kind, items=urls)


async def resolve_print_candidates(client: NasaClient, nasa_id: str) -> list[str]:
    """Resolve the ordered URLs to probe for print metadata.

    Falls back to the search thumbnail when the asset listing fails or holds
    no raster images.
    """
    try:
        candidates = print_candidates(await client.asset_urls(nasa_id))
    except NasaAPIError as exc:
        logger.warning("Asset listing failed for '%s': %s", nasa_id, exc)
        candidates = []

    if candidates:
        return candidates

    thumb = await client.search_thumbnail(nasa_id)
    return [thumb] if thumb else []
