"""Async client for the NASA Image and Video Library and APOD APIs.

This module provides :class:`NasaClient`, the single place where Astrofit
talks to NASA.  Route handlers never build upstream URLs themselves; they call
the high-level methods here and translate :class:`NasaAPIError` into HTTP
responses.

Key Responsibilities
--------------------
- **Timeouts**: every JSON call uses ``config.request_timeout`` and every
  image download uses ``config.download_timeout``.
- **Bounded retries**: :meth:`NasaClient.fetch_json` retries network errors
  and retryable statuses (408, 429, 5xx) with linear backoff
  (``backoff * attempt``) using ``tenacity``.  Non-retryable statuses fail
  immediately.
- **Response normalisation**: asset lists may contain bare URL strings or
  ``{"href": ...}`` objects; :meth:`NasaClient.asset_urls` always returns
  plain strings.
- **Streaming**: :meth:`NasaClient.iter_bytes` streams an image so callers
  can stop once the header has been parsed.

Endpoints
---------
==================================  ==================================
Upstream                            Used by
==================================  ==================================
``GET {images}/search``             feed, featured, detail, fallbacks
``GET {images}/asset/{nasa_id}``    asset selection, print metadata
``GET {apod}``                      Astronomy Picture of the Day
``GET <asset url>``                 wallpaper / print source download
==================================  ==================================

Usage
-----
::

    from astrofit.core.config import config
    from astrofit.core.nasa_client import NasaClient

    client = NasaClient(config)
    data = await client.search("nebula", page=2)
    urls = await client.asset_urls("PIA01322")
    await client.aclose()
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from typing import Any
from urllib.parse import quote

import httpx
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_incrementing,
)

from astrofit.core.config import AstrofitConfig

logger = logging.getLogger(__name__)

# Upstream error bodies can be whole HTML pages.
_MAX_ERROR_BODY = 500


class NasaAPIError(Exception):
    """An upstream NASA request failed.

    Attributes:
        status_code: HTTP status returned by NASA, or ``None`` for network
            errors, timeouts, and undecodable bodies.
        retryable: Whether another attempt could plausibly succeed.
    """

    def __init__(self, message: str, status_code: int | None = None, retryable: bool = False):
        super().__init__(message)
        self.status_code = status_code
        self.retryable = retryable


def is_retryable_status(status: int) -> bool:
    """Return ``True`` for 408, 429 and any 5xx status."""
    return status in (408, 429) or 500 <= status <= 599


def _is_retryable(exc: BaseException) -> bool:
    return isinstance(exc, NasaAPIError) and exc.retryable


def normalize_asset_items(items: Any) -> list[str]:
    """Flatten an asset ``collection.items`` list into URL strings.

    Args:
        items: Raw items, each either a URL string or a dict with ``href``.

    Returns:
        Non-empty URL strings in their original order.
    """
    if not isinstance(items, list):
        return []

    urls: list[str] = []
    for item in items:
        href = item.get("href") if isinstance(item, dict) else item
        if isinstance(href, str) and href:
            urls.append(href)
    return urls


class NasaClient:
    """Thin async wrapper around one shared :class:`httpx.AsyncClient`.

    Attributes:
        _config (AstrofitConfig):
            Application configuration (URLs, timeouts, retry policy).
        _http (httpx.AsyncClient):
            Connection pool shared by every request made through the client.
    """

    def __init__(self, config: AstrofitConfig, http_client: httpx.AsyncClient | None = None) -> None:
        """Create the client.

        Args:
            config: Application configuration instance.
            http_client: Optional pre-built client (tests pass one backed by
                ``httpx.MockTransport``).  When omitted a client that follows
                redirects is created; NASA asset URLs redirect from ``http``
                to ``https``.
        """
        self._config = config
        self._http = http_client or httpx.AsyncClient(
            follow_redirects=True,
            timeout=config.request_timeout,
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    # -- Low-level JSON access ----------------------------------------------

    async def _get_json(self, url: str, params: dict | None) -> Any:
        try:
            response = await self._http.get(
                url,
                params=params,
                headers={"Accept": "application/json"},
                timeout=self._config.request_timeout,
            )
        except httpx.TransportError as exc:
            raise NasaAPIError(f"{type(exc).__name__}: {exc}", retryable=True) from exc

        if not response.is_success:
            body = response.text[:_MAX_ERROR_BODY]
            raise NasaAPIError(
                f"HTTP {response.status_code} {response.reason_phrase} :: {body}",
                status_code=response.status_code,
                retryable=is_retryable_status(response.status_code),
            )

        try:
            return response.json()
        except ValueError as exc:
            raise NasaAPIError(f"Invalid JSON from {url}", status_code=response.status_code) from exc

    async def fetch_json(self, url: str, params: dict | None = None, *, retries: int | None = None) -> Any:
        """GET a JSON document, retrying transient failures.

        Attempt ``n`` (1-based) that fails with a retryable error waits
        ``retry_backoff * n`` seconds before the next attempt, so the default
        policy waits 0.4 s then 0.8 s.

        Args:
            url: Absolute URL.
            params: Optional query parameters.
            retries: Extra attempts after the first.  Defaults to
                ``config.retry_attempts``; ``0`` means a single attempt.

        Returns:
            The decoded JSON body.

        Raises:
            NasaAPIError: When the last attempt fails or the failure is not
                retryable.
        """
        if retries is None:
            retries = self._config.retry_attempts

        retrying = AsyncRetrying(
            stop=stop_after_attempt(retries + 1),
            wait=wait_incrementing(
                start=self._config.retry_backoff,
                increment=self._config.retry_backoff,
            ),
            retry=retry_if_exception(_is_retryable),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        return await retrying(self._get_json, url, params)

    # -- Images API -----------------------------------------------------------

    async def search(self, query: str, page: int = 1, *, retries: int = 0) -> dict:
        """Run an image search.

        Args:
            query: Free-text query.
            page: One-based result page (the API serves 100 hits per page).
            retries: Extra attempts for transient failures.

        Returns:
            Raw search JSON (``{"collection": {...}}``).
        """
        params = {"q": query, "media_type": "image", "page": str(page)}
        return await self.fetch_json(self._config.search_url, params, retries=retries)

    async def search_by_id(self, nasa_id: str) -> dict | None:
        """Return the first search item for ``nasa_id``, or ``None``."""
        params = {"nasa_id": nasa_id, "media_type": "image"}
        data = await self.fetch_json(self._config.search_url, params, retries=0)
        items = (data or {}).get("collection", {}).get("items") or []
        return items[0] if items and isinstance(items[0], dict) else None

    async def search_thumbnail(self, nasa_id: str) -> str | None:
        """Return the search thumbnail URL for ``nasa_id``, or ``None``.

        Upstream failures are treated as "no thumbnail" because this is only
        ever used as the last fallback of a chain.
        """
        try:
            item = await self.search_by_id(nasa_id)
        except NasaAPIError as exc:
            logger.warning("Thumbnail lookup failed for '%s': %s", nasa_id, exc)
            return None

        links = (item or {}).get("links") or []
        href = links[0].get("href") if links and isinstance(links[0], dict) else None
        return href if isinstance(href, str) else None

    async def asset_urls(self, nasa_id: str, *, retries: int = 0) -> list[str]:
        """List every file URL NASA publishes for ``nasa_id``.

        Raises:
            NasaAPIError: If the asset endpoint fails.
        """
        url = f"{self._config.asset_url}/{quote(nasa_id, safe='')}"
        data = await self.fetch_json(url, retries=retries)
        return normalize_asset_items((data or {}).get("collection", {}).get("items"))

    # -- APOD -----------------------------------------------------------------

    async def apod(self, date: str | None = None, *, hd: bool = True) -> dict:
        """Fetch the Astronomy Picture of the Day.

        Args:
            date: Optional ``YYYY-MM-DD`` date; today when omitted.
            hd: Ask for the ``hdurl`` field.

        Returns:
            The APOD JSON document as returned by NASA.
        """
        params = {"api_key": self._config.nasa_api_key, "hd": "true" if hd else "false"}
        if date:
            params["date"] = date
        return await self.fetch_json(self._config.apod_url, params)

    # -- Binary downloads -----------------------------------------------------

    async def download(self, url: str) -> bytes:
        """Download a source image into memory.

        Raises:
            NasaAPIError: On a non-2xx status or a network failure.
        """
        try:
            response = await self._http.get(url, timeout=self._config.download_timeout)
        except httpx.TransportError as exc:
            raise NasaAPIError(f"Failed to download source image: {exc}") from exc

        if not response.is_success:
            raise NasaAPIError(
                f"Failed to download source image: {response.status_code}",
                status_code=response.status_code,
            )
        return response.content

    async def iter_bytes(self, url: str) -> AsyncIterator[bytes]:
        """Stream an image body chunk by chunk.

        Closing the generator early (e.g. via :func:`contextlib.aclosing`)
        closes the underlying response, so a caller that only needs the image
        header does not download the rest of the file.

        Raises:
            NasaAPIError: On a non-2xx status or a network failure.
        """
        try:
            async with self._http.stream(
                "GET",
                url,
                headers={"Accept": "image/*"},
                timeout=self._config.download_timeout,
            ) as response:
                if not response.is_success:
                    raise NasaAPIError(
                        f"Fetch failed: {response.status_code}",
                        status_code=response.status_code,
                    )
                async for chunk in response.aiter_bytes():
                    yield chunk
        except httpx.TransportError as exc:
            raise NasaAPIError(f"Fetch failed: {exc}") from exc
