"""Pydantic request and response models for the Astrofit API.

These models define the JSON schema for the API endpoints.  FastAPI uses
them for automatic request validation, serialisation, and OpenAPI
documentation generation.

Models
------
RenderRequest
    Payload for ``POST /api/wallpaper`` and the query parameters of
    ``GET /api/wallpaper``: NASA id, target size and fit mode.
PrintRequest
    ``RenderRequest`` plus the filename ``label`` used by print downloads.
ImageItem
    One decoded search hit (id, title, description, thumbnail).
FeedResponse / FeaturedResponse
    Paged category listing and the randomised home page listing.
PrintMetaResponse
    Source dimensions used to judge print quality.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class RenderRequest(BaseModel):
    """Request body for the wallpaper and print preview endpoints.

    Every field has a permissive default so that a missing value produces
    the API's own ``400 Missing nasa_id, w, h`` rather than a schema error.
    Numeric strings (``"1920"``) are accepted.

    Attributes:
        nasa_id: NASA Image Library identifier.
        w: Target width in pixels (clamped server-side).
        h: Target height in pixels (clamped server-side).
        mode: Fit mode - ``cover``, ``contain`` or ``blur``.  Unknown
            values fall back to the endpoint's default.
    """

    nasa_id: str = Field(default="", description="NASA Image Library identifier.")
    w: float = Field(default=0, allow_inf_nan=False, description="Target width in pixels.")
    h: float = Field(default=0, allow_inf_nan=False, description="Target height in pixels.")
    mode: str | None = Field(default=None, description="Fit mode: cover, contain or blur.")


class PrintRequest(RenderRequest):
    """Request for ``/api/print``: adds the download filename label."""

    label: str = Field(default="print", description="Label embedded in the download filename.")


class ImageItem(BaseModel):
    """A single NASA search hit, reduced to what the frontend renders.

    Attributes:
        nasa_id: NASA Image Library identifier.
        title: Item title (``"Untitled"`` when NASA omits it).
        description: Optional long description.
        thumb: Preview URL (the first ``links[].href`` of the item).
    """

    nasa_id: str
    title: str = "Untitled"
    description: str | None = None
    thumb: str


class FeedResponse(BaseModel):
    """Response body for ``GET /api/feed``."""

    model_config = ConfigDict(populate_by_name=True)

    cat: str
    label: str
    query: str
    page: int
    per_page: int = Field(serialization_alias="perPage")
    total_hits: int | None = Field(default=None, serialization_alias="totalHits")
    total_pages: int | None = Field(default=None, serialization_alias="totalPages")
    returned: int
    items: list[ImageItem]


class FeaturedResponse(BaseModel):
    """Response body for ``GET /api/featured``."""

    query: str
    page: int
    items: list[ImageItem]


class PrintMetaResponse(BaseModel):
    """Response body for ``GET /api/print-meta``."""

    nasa_id: str
    width: int
    height: int
    format: str | None = None
    source_url: str = Field(serialization_alias="sourceUrl")
    quality: dict | None = None
