"""Astrofit: FastAPI Application.

HTTP surface of Astrofit: the ``app`` object, its routes, and a ``main()``
console script that serves it with uvicorn.

Architecture
------------
The application is stateless.  Every handler is an independent leaf that:

- calls the NASA Images / APOD APIs through the shared
  :class:`~astrofit.core.nasa_client.NasaClient`,
- picks an asset URL by filename heuristics
  (:mod:`astrofit.core.assets`), and
- optionally renders a JPEG with :class:`~astrofit.core.imaging.ImageRenderer`.

Nothing is stored.  Caching is delegated to HTTP ``Cache-Control`` headers
so a CDN in front of the app absorbs repeat traffic.

Endpoints
---------
========  ============================  ====================================
Method    Path                          Purpose
========  ============================  ====================================
GET       ``/health``                   Liveness probe
GET       ``/api/categories``           Curated browse categories
GET       ``/api/presets``              Wallpaper presets, print sizes, DPIs
GET       ``/api/print-target``         Pixel size, preview size, label
GET       ``/api/featured``             Random curated home page listing
GET       ``/api/feed``                 Paged category listing
GET       ``/api/image/{nasa_id}``      Image detail record
GET       ``/api/asset/{nasa_id}``      Best downloadable asset URL
GET       ``/api/apod``                 Astronomy Picture of the Day
GET       ``/api/wallpaper``            Wallpaper download (JPEG)
POST      ``/api/wallpaper``            Wallpaper preview (JPEG, no-store)
GET       ``/api/print``                Print download (JPEG attachment)
POST      ``/api/print``                Print preview (JPEG, no-store)
GET       ``/api/print-meta``           Source dimensions + print quality
GET       ``/sitemap.xml``              Sitemap
GET       ``/robots.txt``               Robots rules
========  ============================  ====================================

Usage
-----
CLI (installed entry point)::

    astrofit

Direct invocation::

    python -m astrofit.api.main
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import aclosing, asynccontextmanager
from datetime import datetime, timezone
from typing import Annotated, Literal

from fastapi import Depends, FastAPI, HTTPException, Query, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from starlette.concurrency import run_in_threadpool

from astrofit import __version__
from astrofit.api.dependencies import get_config, get_nasa_client, get_renderer
from astrofit.api.listing import (
    APOD_FALLBACK_QUERIES,
    FEATURED_LIMIT,
    FEED_PER_PAGE,
    clamp_page,
    parse_search_item,
    parse_search_items,
    pick_query_and_page,
    total_hits,
    total_pages,
)
from astrofit.api.models import (
    FeaturedResponse,
    FeedResponse,
    PrintMetaResponse,
    PrintRequest,
    RenderRequest,
)
from astrofit.api.seo import build_sitemap_entries, render_robots, render_sitemap
from astrofit.api.validation import (
    ValidationError,
    build_download_filename,
    format_dimension,
    validate_nasa_id,
    validate_render_request,
)
from astrofit.core.assets import largest_image_url, resolve_best_asset, resolve_print_candidates
from astrofit.core.categories import CATEGORIES, category_by_slug
from astrofit.core.config import AstrofitConfig, config
from astrofit.core.imaging import (
    FitMode,
    ImageMeta,
    ImageRenderer,
    MetadataProbe,
    RenderError,
    parse_print_mode,
    parse_wallpaper_mode,
)
from astrofit.core.nasa_client import NasaAPIError, NasaClient
from astrofit.core.presets import (
    DEFAULT_PRINT_DPI,
    DEFAULT_PRINT_SIZE_INDEX,
    PREVIEW_MAX_EDGE,
    PRINT_DPIS,
    PRINT_SIZES,
    WALLPAPER_PRESETS,
    assess_print_quality,
    preview_dims,
    print_label,
    print_target,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Cache policies.  Listings change hourly, renders are stable for a day and
# source metadata essentially never changes.
# ---------------------------------------------------------------------------
LISTING_CACHE = "public, s-maxage=3600, stale-while-revalidate=86400"
RENDER_CACHE = "public, s-maxage=86400, stale-while-revalidate=604800"
META_CACHE = "public, s-maxage=604800, stale-while-revalidate=2592000"
NO_STORE = "no-store"

ConfigDep = Annotated[AstrofitConfig, Depends(get_config)]
NasaDep = Annotated[NasaClient, Depends(get_nasa_client)]
RendererDep = Annotated[ImageRenderer, Depends(get_renderer)]


# ---------------------------------------------------------------------------
# Application lifecycle: shared HTTP client setup and teardown.
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Put the config, NASA client and renderer on app.state; close the client on exit."""
    app.state.config = config
    app.state.nasa_client = NasaClient(config)
    app.state.renderer = ImageRenderer(config)
    logger.info("NASA client initialised (images=%s).", config.images_api_url)

    yield

    await app.state.nasa_client.aclose()
    logger.info("NASA client closed on shutdown.")


# ---------------------------------------------------------------------------
# Application.
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Astrofit",
    description="NASA imagery browser with device-fit wallpapers and print exports.",
    version=__version__,
    lifespan=lifespan,
)

# Rendered JPEGs are fetched by the frontend with fetch(), which needs CORS
# when the frontend is served from another origin.
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Render helpers.
# ---------------------------------------------------------------------------


def _render_failure(error: str, exc: Exception, source_url: str) -> HTTPException:
    return HTTPException(
        status_code=500,
        detail={"error": error, "details": str(exc), "sourceUrl": source_url},
    )


def _size_suffix(req: RenderRequest, mode: FitMode) -> str:
    return f"{format_dimension(req.w)}x{format_dimension(req.h)}_{mode.value}"


async def _load_source(req: RenderRequest, client: NasaClient) -> tuple[str, str, bytes]:
    """Validate a render request and download its source image.

    Returns:
        Tuple of ``(nasa_id, source_url, source_bytes)``.

    Raises:
        HTTPException: 400 for missing parameters, 404 when no asset exists,
            500 when the download fails.
    """
    try:
        validate_render_request(req)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    nasa_id = req.nasa_id.strip()
    selection = await resolve_best_asset(client, nasa_id)
    if not selection.best:
        raise HTTPException(status_code=404, detail="No usable asset found")

    try:
        data = await client.download(selection.best)
    except NasaAPIError as exc:
        logger.error("Source download failed for '%s': %s", nasa_id, exc)
        raise _render_failure("Source download failed", exc, selection.best) from exc

    return nasa_id, selection.best, data


async def _render_wallpaper(
    req: RenderRequest,
    client: NasaClient,
    renderer: ImageRenderer,
) -> tuple[str, FitMode, bytes]:
    nasa_id, source_url, data = await _load_source(req, client)
    mode = parse_wallpaper_mode(req.mode)
    try:
        # Pillow work is CPU-bound; keep it off the event loop.
        jpeg = await run_in_threadpool(renderer.render_wallpaper, data, req.w, req.h, mode)
    except RenderError as exc:
        logger.exception("Wallpaper generation failed for '%s'.", nasa_id)
        raise _render_failure("Wallpaper generation failed", exc, source_url) from exc
    return nasa_id, mode, jpeg


async def _render_print(
    req: PrintRequest,
    client: NasaClient,
    renderer: ImageRenderer,
    *,
    failure: str,
) -> tuple[str, FitMode, bytes]:
    nasa_id, source_url, data = await _load_source(req, client)
    mode = parse_print_mode(req.mode)
    try:
        jpeg = await run_in_threadpool(renderer.render_print, data, req.w, req.h, mode)
    except RenderError as exc:
        logger.exception("%s for '%s'.", failure, nasa_id)
        raise _render_failure(failure, exc, source_url) from exc
    return nasa_id, mode, jpeg


async def _probe_remote(client: NasaClient, url: str, max_pixels: int) -> ImageMeta:
    """Read an image's header from a streamed download.

    The download is abandoned as soon as the header has been parsed.
    """
    probe = MetadataProbe(max_pixels=max_pixels)
    async with aclosing(client.iter_bytes(url)) as chunks:
        async for chunk in chunks:
            meta = probe.feed(chunk)
            if meta is not None:
                return meta
    return probe.finish()


# ---------------------------------------------------------------------------
# Routes: static data.
# ---------------------------------------------------------------------------


@app.get("/health")
async def health() -> dict:
    """Liveness probe; never touches NASA."""
    return {"status": "ok", "version": __version__}


@app.get("/api/categories")
async def get_categories() -> dict:
    """Return the curated category table."""
    return {"categories": [c.to_dict() for c in CATEGORIES]}


@app.get("/api/presets")
async def get_presets() -> dict:
    """Return the size presets and fit modes the frontend offers.

    Returns:
        Dictionary with ``wallpaper`` (presets, modes, default mode) and
        ``print`` (sizes, DPIs, defaults, preview edge) sections.
    """
    return {
        "wallpaper": {
            "presets": [p.to_dict() for p in WALLPAPER_PRESETS],
            "modes": [m.value for m in FitMode],
            "default_mode": FitMode.BLUR.value,
        },
        "print": {
            "sizes": [s.to_dict() for s in PRINT_SIZES],
            "dpis": list(PRINT_DPIS),
            "default_size": DEFAULT_PRINT_SIZE_INDEX,
            "default_dpi": DEFAULT_PRINT_DPI,
            "mode": FitMode.CONTAIN.value,
            "preview_max_edge": PREVIEW_MAX_EDGE,
        },
    }


@app.get("/api/print-target")
async def get_print_target(
    size: int = DEFAULT_PRINT_SIZE_INDEX,
    dpi: int = DEFAULT_PRINT_DPI,
    orientation: Literal["portrait", "landscape"] = "portrait",
) -> dict:
    """Resolve a print size preset into pixel dimensions.

    Args:
        size: Index into the print size table.
        dpi: Dots per inch; must be one of the offered DPIs.
        orientation: ``portrait`` or ``landscape``.

    Returns:
        Dictionary with the full-size target, the preview size, and the
        filename label used by ``GET /api/print``.

    Raises:
        HTTPException: 400 for an unknown size index or DPI.
    """
    if not 0 <= size < len(PRINT_SIZES):
        raise HTTPException(
            status_code=400,
            detail=f"size must be between 0 and {len(PRINT_SIZES) - 1}",
        )
    if dpi not in PRINT_DPIS:
        raise HTTPException(status_code=400, detail=f"dpi must be one of {list(PRINT_DPIS)}")

    preset = PRINT_SIZES[size]
    target = print_target(preset, dpi, orientation)
    pw, ph = preview_dims(target.width, target.height)
    return {
        "size": preset.to_dict(),
        "dpi": dpi,
        "orientation": orientation,
        "w": target.width,
        "h": target.height,
        "w_in": target.width_in,
        "h_in": target.height_in,
        "preview": {"w": pw, "h": ph},
        "label": print_label(preset.label, dpi, orientation),
        "mode": FitMode.CONTAIN.value,
    }


# ---------------------------------------------------------------------------
# Routes: browsing.
# ---------------------------------------------------------------------------


@app.get("/api/featured")
async def get_featured(response: Response, client: NasaDep, cfg: ConfigDep) -> dict:
    """Return a fresh home page listing.

    A random curated query and a random page (1–10) keep the home page
    varied between cache periods.  Upstream calls retry transient failures.

    Raises:
        HTTPException: 502 if the search fails.
    """
    query, page = pick_query_and_page()
    try:
        data = await client.search(query, page, retries=cfg.retry_attempts)
    except NasaAPIError as exc:
        logger.warning("Featured search failed (q=%r, page=%d): %s", query, page, exc)
        raise HTTPException(
            status_code=502,
            detail={"error": "Failed to fetch featured images", "details": str(exc)},
        ) from exc

    items = parse_search_items(data)[:FEATURED_LIMIT]
    response.headers["Cache-Control"] = LISTING_CACHE
    return FeaturedResponse(query=query, page=page, items=items).model_dump()


@app.get("/api/feed")
async def get_feed(
    response: Response,
    client: NasaDep,
    cat: str = "featured",
    page: str | None = None,
) -> dict:
    """Return one page of a category listing.

    Args:
        cat: Category slug; unknown slugs fall back to ``featured``.
        page: Requested page; clamped to 1–100, non-numeric means 1.

    Returns:
        Dictionary with category info, paging metadata and up to 25 items.

    Raises:
        HTTPException: 502 if the search fails.
    """
    category = category_by_slug(cat)
    page_no = clamp_page(page if page is not None else 1)

    try:
        data = await client.search(category.query, page_no)
    except NasaAPIError as exc:
        logger.warning("Feed search failed (cat=%s, page=%d): %s", category.slug, page_no, exc)
        raise HTTPException(
            status_code=502,
            detail={"error": "Failed to fetch NASA feed", "status": exc.status_code},
        ) from exc

    # Filter unusable items *before* slicing so pages stay full.
    items = parse_search_items(data)[:FEED_PER_PAGE]
    hits = total_hits(data)

    response.headers["Cache-Control"] = LISTING_CACHE
    return FeedResponse(
        cat=category.slug,
        label=category.label,
        query=category.query,
        page=page_no,
        per_page=FEED_PER_PAGE,
        total_hits=hits,
        total_pages=total_pages(hits),
        returned=len(items),
        items=items,
    ).model_dump(by_alias=True)


@app.get("/api/image/{nasa_id}")
async def get_image(nasa_id: str, response: Response, client: NasaDep) -> dict:
    """Return the detail record for a single image.

    Raises:
        HTTPException: 404 if NASA has no usable item, 502 on upstream failure.
    """
    try:
        raw = await client.search_by_id(nasa_id)
    except NasaAPIError as exc:
        raise HTTPException(
            status_code=502,
            detail={"error": "Failed to fetch image", "status": exc.status_code},
        ) from exc

    item = parse_search_item(raw)
    if item is None:
        raise HTTPException(status_code=404, detail="Image not found")

    response.headers["Cache-Control"] = META_CACHE
    return item.model_dump()


@app.get("/api/asset/{nasa_id}")
async def get_asset(nasa_id: str, client: NasaDep, debug: str | None = None) -> dict:
    """Return the best downloadable asset for an image.

    Args:
        nasa_id: NASA item identifier.
        debug: ``"1"`` adds the first 50 listed URLs to the response.

    Returns:
        Dictionary with ``nasa_id``, ``best``, ``kind`` and ``itemsCount``.

    Raises:
        HTTPException: 502 if the asset listing fails.
    """
    try:
        selection = await resolve_best_asset(client, nasa_id, strict=True)
    except NasaAPIError as exc:
        raise HTTPException(
            status_code=502,
            detail={"error": "Failed to fetch asset list", "status": exc.status_code},
        ) from exc
    return selection.to_dict(debug=debug == "1")


async def _apod_from_images_api(client: NasaClient, retries: int) -> dict:
    """Build an APOD-shaped record from a random Images API search.

    Raises:
        NasaAPIError: If the search fails or returns no usable item.
    """
    query, page = pick_query_and_page(APOD_FALLBACK_QUERIES)
    data = await client.search(query, page, retries=retries)

    items = parse_search_items(data)
    if not items:
        raise NasaAPIError("Images API returned no usable items")
    first = items[0]

    record = {
        "date": datetime.now(timezone.utc).date().isoformat(),
        "title": first.title,
        "explanation": first.description or "From NASA Image Library.",
        "media_type": "image",
        "url": first.thumb,
        "nasa_id": first.nasa_id,
        "source": "images-api",
        "query": query,
    }

    # The preview is enough on its own; hdurl is a bonus.
    try:
        urls = await client.asset_urls(first.nasa_id, retries=retries)
        hdurl = largest_image_url(urls)
    except NasaAPIError as exc:
        logger.warning("Asset lookup for APOD fallback '%s' failed: %s", first.nasa_id, exc)
        hdurl = None
    if hdurl:
        record["hdurl"] = hdurl
    return record


@app.get("/api/apod")
async def get_apod(
    response: Response,
    client: NasaDep,
    cfg: ConfigDep,
    date: str | None = None,
) -> dict:
    """Return the Astronomy Picture of the Day.

    Fallback chain:

    1. APOD with ``hd=true``
    2. APOD with ``hd=false``
    3. A random image from the keyless Images API, marked with the
       ``X-APOD-Fallback: 1`` header.

    Raises:
        HTTPException: 502 with every error message if all three fail.
    """
    errors: dict[str, str] = {}
    for key, hd in (("hd", True), ("nonHd", False)):
        try:
            apod = await client.apod(date, hd=hd)
        except NasaAPIError as exc:
            logger.warning("APOD request failed (hd=%s): %s", hd, exc)
            errors[key] = str(exc)
            continue
        response.headers["Cache-Control"] = LISTING_CACHE
        return apod

    try:
        fallback = await _apod_from_images_api(client, cfg.retry_attempts)
    except NasaAPIError as exc:
        logger.error("APOD fallback failed: %s", exc)
        raise HTTPException(
            status_code=502,
            detail={
                "error": "Failed to fetch APOD (and fallback failed)",
                "details": {**errors, "fallback": str(exc)},
            },
        ) from exc

    response.headers["Cache-Control"] = LISTING_CACHE
    response.headers["X-APOD-Fallback"] = "1"
    return fallback


# ---------------------------------------------------------------------------
# Routes: rendering.
# ---------------------------------------------------------------------------


@app.get("/api/wallpaper")
async def download_wallpaper(
    req: Annotated[RenderRequest, Query()],
    client: NasaDep,
    renderer: RendererDep,
) -> Response:
    """Render a wallpaper for download links.

    Query parameters: ``nasa_id``, ``w``, ``h`` and optional ``mode``
    (``blur`` by default).

    Returns:
        JPEG response with an ``inline`` disposition and a public cache
        policy.
    """
    nasa_id, mode, jpeg = await _render_wallpaper(req, client, renderer)
    filename = build_download_filename(nasa_id, _size_suffix(req, mode))
    return Response(
        content=jpeg,
        media_type="image/jpeg",
        headers={
            "Content-Disposition": f'inline; filename="{filename}"',
            "Cache-Control": RENDER_CACHE,
        },
    )


@app.post("/api/wallpaper")
async def preview_wallpaper(req: RenderRequest, client: NasaDep, renderer: RendererDep) -> Response:
    """Render a wallpaper preview from a JSON body (never cached)."""
    _, _, jpeg = await _render_wallpaper(req, client, renderer)
    return Response(content=jpeg, media_type="image/jpeg", headers={"Cache-Control": NO_STORE})


@app.get("/api/print")
async def download_print(
    req: Annotated[PrintRequest, Query()],
    client: NasaDep,
    renderer: RendererDep,
) -> Response:
    """Render a print export as a file download.

    Query parameters: ``nasa_id``, ``w``, ``h``, optional ``mode``
    (``cover`` unless ``contain``) and ``label``.

    Returns:
        JPEG response with an ``attachment`` disposition.
    """
    nasa_id, mode, jpeg = await _render_print(
        req, client, renderer, failure="Print generation failed"
    )
    filename = build_download_filename(nasa_id, _size_suffix(req, mode), req.label)
    return Response(
        content=jpeg,
        media_type="image/jpeg",
        headers={
            "Content-Disposition": f'attachment; filename="{filename}"',
            "Cache-Control": RENDER_CACHE,
            "X-Content-Type-Options": "nosniff",
        },
    )


@app.post("/api/print")
async def preview_print(req: PrintRequest, client: NasaDep, renderer: RendererDep) -> Response:
    """Render a print preview from a JSON body (never cached)."""
    _, _, jpeg = await _render_print(req, client, renderer, failure="Print preview failed")
    return Response(
        content=jpeg,
        media_type="image/jpeg",
        headers={"Cache-Control": NO_STORE, "X-Content-Type-Options": "nosniff"},
    )


@app.get("/api/print-meta")
async def get_print_meta(
    response: Response,
    client: NasaDep,
    cfg: ConfigDep,
    nasa_id: str | None = None,
    w: int | None = None,
    h: int | None = None,
    dpi: int | None = None,
) -> dict:
    """Report the pixel size of the best available source image.

    Up to ``config.print_meta_max_candidates`` asset variants are probed,
    originals first.  Only each image's header is downloaded, and sources over
    ``limit_input_pixels`` are skipped.

    Args:
        nasa_id: NASA item identifier.
        w: Optional print target width in pixels.
        h: Optional print target height in pixels.
        dpi: Optional nominal DPI; with ``w`` and ``h`` adds a ``quality``
            assessment to the response.

    Raises:
        HTTPException: 400 without ``nasa_id``, 404 when no candidate
            exists, 502 when no candidate yields metadata.
    """
    try:
        nasa_id = validate_nasa_id(nasa_id)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    urls = await resolve_print_candidates(client, nasa_id)
    if not urls:
        raise HTTPException(status_code=404, detail="No candidate assets found")

    last_error: Exception | None = None
    for url in urls[: cfg.print_meta_max_candidates]:
        try:
            meta = await _probe_remote(client, url, cfg.limit_input_pixels)
        except (NasaAPIError, RenderError) as exc:
            logger.warning("Metadata probe failed for %s: %s", url, exc)
            last_error = exc
            continue

        if not meta.width or not meta.height:
            last_error = RenderError("No width/height in metadata")
            continue

        quality = None
        if w and h and dpi and min(w, h, dpi) > 0:
            quality = assess_print_quality(meta.width, meta.height, w, h, dpi).to_dict()

        payload = PrintMetaResponse(
            nasa_id=nasa_id,
            width=meta.width,
            height=meta.height,
            format=meta.format,
            source_url=url,
            quality=quality,
        ).model_dump(by_alias=True)
        if quality is None:
            del payload["quality"]

        response.headers["Cache-Control"] = META_CACHE
        return payload

    raise HTTPException(
        status_code=502,
        detail={"error": "Failed to read image metadata", "details": str(last_error)},
    )


# ---------------------------------------------------------------------------
# Routes: crawlers.
# ---------------------------------------------------------------------------


@app.get("/sitemap.xml")
async def sitemap(cfg: ConfigDep) -> Response:
    entries = build_sitemap_entries(cfg.base_url, cfg.sitemap_pages_per_category)
    return Response(content=render_sitemap(entries), media_type="application/xml")


@app.get("/robots.txt", response_class=PlainTextResponse)
async def robots(cfg: ConfigDep) -> str:
    return render_robots(cfg.base_url)


# ---------------------------------------------------------------------------
# Console script.
# ---------------------------------------------------------------------------


def main() -> None:
    """Serve :data:`app` on ``config.server_host``:``config.server_port``."""
    import uvicorn

    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    uvicorn.run(
        "astrofit.api.main:app",
        host=config.server_host,
        port=config.server_port,
        reload=False,
    )


if __name__ == "__main__":
    main()
