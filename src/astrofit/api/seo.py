"""sitemap.xml and robots.txt builders.

The sitemap lists the static pages plus the first N pages of every
category.  ``/c/featured/1`` is the home page, so the featured category
starts at page 2.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from urllib.parse import quote
from xml.sax.saxutils import escape

from astrofit.core.categories import CATEGORIES


@dataclass(frozen=True)
class SitemapEntry:
    url: str
    last_modified: datetime
    change_frequency: str
    priority: float


STATIC_ROUTES: tuple[tuple[str, str, float], ...] = (
    ("/", "daily", 1.0),
    ("/about", "monthly", 0.4),
    ("/privacy", "yearly", 0.2),
    ("/terms", "yearly", 0.2),
    ("/contact", "yearly", 0.2),
)


def build_sitemap_entries(
    base_url: str,
    pages_per_category: int,
    now: datetime | None = None,
) -> list[SitemapEntry]:
    """Build every sitemap entry.

    Args:
        base_url: Public site URL without a trailing slash.
        pages_per_category: How many paged routes to list per category.
        now: Timestamp for ``lastmod`` (defaults to the current UTC time).
    """
    now = now or datetime.now(timezone.utc)
    entries = [
        SitemapEntry(f"{base_url}{path}", now, freq, prio) for path, freq, prio in STATIC_ROUTES
    ]

    for category in CATEGORIES:
        first_page = 2 if category.slug == "featured" else 1
        for page in range(first_page, pages_per_category + 1):
            entries.append(
                SitemapEntry(
                    url=f"{base_url}/c/{quote(category.slug, safe='')}/{page}",
                    last_modified=now,
                    change_frequency="daily",
                    priority=0.8 if page == 1 else 0.6,
                )
            )

    return entries


def render_sitemap(entries: list[SitemapEntry]) -> str:
    lines = [
        '<?xml version="1.0" encoding="UTF-8"?>',
        '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">',
    ]
    for entry in entries:
        lines.append(
            "<url>"
            f"<loc>{escape(entry.url)}</loc>"
            f"<lastmod>{entry.last_modified.isoformat()}</lastmod>"
            f"<changefreq>{entry.change_frequency}</changefreq>"
            f"<priority>{entry.priority}</priority>"
            "</url>"
        )
    lines.append("</urlset>")
    return "\n".join(lines) + "\n"


def render_robots(base_url: str) -> str:
    return f"User-Agent: *\nAllow: /\n\nSitemap: {base_url}/sitemap.xml\n"
