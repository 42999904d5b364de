"""Curated browse categories.

Each category maps a URL slug to the free-text query sent to the NASA Images
search endpoint.  The first entry doubles as the default for unknown slugs,
so the home page and any mistyped category URL both land on ``featured``.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass


@dataclass(frozen=True)
class Category:
    """A browsable category.

    Attributes:
        slug: URL-safe identifier used in ``/c/<slug>/<page>`` routes.
        label: Human readable name.
        query: Search query sent to the Images API.
    """

    slug: str
    label: str
    query: str

    def to_dict(self) -> dict:
        return asdict(self)


CATEGORIES: tuple[Category, ...] = (
    Category("featured", "Featured", "space"),
    Category("nebulae", "Nebulae", "nebula"),
    Category("galaxies", "Galaxies", "galaxy"),
    Category("planets", "Planets", "planet"),
    Category("moon", "Moon", "moon"),
    Category("mars", "Mars", "mars"),
    Category("earth", "Earth", "earth from space"),
    Category("iss", "ISS", "international space station"),
    Category("astronauts", "Astronauts", "astronaut"),
    Category("telescopes", "Telescopes", "hubble"),
)

_BY_SLUG: dict[str, Category] = {c.slug: c for c in CATEGORIES}


def category_by_slug(slug: str | None) -> Category:
    """Look up a category, falling back to the first one.

    Args:
        slug: Category slug, or ``None``.

    Returns:
        The matching :class:`Category`, or ``CATEGORIES[0]`` when the slug is
        missing or unknown.
    """
    if slug is None:
        return CATEGORIES[0]
    return _BY_SLUG.get(slug, CATEGORIES[0])


def is_valid_category_slug(slug: str) -> bool:
    return slug in _BY_SLUG
