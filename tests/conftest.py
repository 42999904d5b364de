"""Shared pytest fixtures for Astrofit tests."""

from __future__ import annotations

import shutil
import struct
import tempfile
from collections.abc import Callable
from io import BytesIO
from pathlib import Path
from typing import Generator

import httpx
import pytest
from PIL import Image

from astrofit.core.config import AstrofitConfig
from astrofit.core.imaging import ImageRenderer
from astrofit.core.nasa_client import NasaClient

IMAGES_API = "https://images-api.test"
APOD_URL = "https://apod.test/planetary/apod"


def _encode(width: int, height: int, color: tuple[int, int, int], fmt: str) -> bytes:
    buffer = BytesIO()
    Image.new("RGB", (width, height), color).save(buffer, format=fmt)
    return buffer.getvalue()


def _deflate_tiff_header(width: int, height: int, payload: int = 4096) -> bytes:
    """Little-endian greyscale TIFF whose IFD claims a deflate strip.

    Built by hand so huge sizes cost only ``payload`` bytes; the strip is
    zero filler, so the file opens but never decodes.
    """
    entries = [
        (256, 4, width),  # ImageWidth
        (257, 4, height),  # ImageLength
        (258, 3, 8),  # BitsPerSample
        (259, 3, 8),  # Compression: deflate
        (262, 3, 1),  # PhotometricInterpretation: min-is-black
        (273, 4, 0),  # StripOffsets, patched below
        (277, 3, 1),  # SamplesPerPixel
        (278, 4, height),  # RowsPerStrip
        (279, 4, payload),  # StripByteCounts
    ]
    data_offset = 8 + 2 + 12 * len(entries) + 4
    ifd = struct.pack("<H", len(entries))
    for tag, typ, value in entries:
        if tag == 273:
            value = data_offset
        packed = struct.pack("<HH", value, 0) if typ == 3 else struct.pack("<I", value)
        ifd += struct.pack("<HHI", tag, typ, 1) + packed
    ifd += struct.pack("<I", 0)
    return b"II*\x00" + struct.pack("<I", 8) + ifd + b"\x00" * payload


def _search_item(nasa_id: str, title: str | None = "Test image", href: str | None = None) -> dict:
    data: dict = {"nasa_id": nasa_id, "description": f"Description of {nasa_id}"}
    if title is not None:
        data["title"] = title
    links = [{"href": href or f"https://images-assets.test/image/{nasa_id}/{nasa_id}~thumb.jpg"}]
    return {"data": [data], "links": links}


class FakeNasa:
    """Scriptable stand-in for the NASA Images and APOD APIs.

    Tests mutate the public attributes, then every request made through the
    ``httpx.MockTransport`` is answered from them and recorded in
    ``requests``.

    Attributes:
        search_items: Items returned by ``/search`` (filtered by ``nasa_id``
            when that parameter is present).
        total_hits: ``collection.metadata.total_hits`` of search responses.
        assets: ``nasa_id`` -> URL list served by ``/asset/<nasa_id>``.
        files: Absolute URL -> body for image downloads.
        statuses: URL path -> list of statuses returned (one per
            request, the last one repeats) before the normal response.
        apod: Payload for successful APOD calls.
        apod_status: ``"true"`` / ``"false"`` (the ``hd`` flag) -> status.
    """

    def __init__(self) -> None:
        self.search_items: list[dict] = []
        self.total_hits = 0
        self.assets: dict[str, list] = {}
        self.files: dict[str, bytes] = {}
        self.statuses: dict[str, list[int]] = {}
        self.apod: dict = {
            "date": "2024-01-01",
            "title": "Pillars of Creation",
            "explanation": "Stars forming in M16.",
            "media_type": "image",
            "url": "https://apod.test/image/pillars.jpg",
            "hdurl": "https://apod.test/image/pillars_big.jpg",
        }
        self.apod_status: dict[str, int] = {}
        self.requests: list[httpx.Request] = []

    def requests_to(self, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path == path]

    def _scripted_status(self, key: str) -> int | None:
        queue = self.statuses.get(key)
        if not queue:
            return None
        return queue.pop(0) if len(queue) > 1 else queue[0]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = request.url
        path = url.path

        status = self._scripted_status(path)
        if status is not None and status >= 300:
            return httpx.Response(status, text="upstream says no")

        if url.host == "images-api.test":
            if path == "/search":
                nasa_id = url.params.get("nasa_id")
                items = self.search_items
                if nasa_id is not None:
                    items = [i for i in items if i["data"][0].get("nasa_id") == nasa_id]
                return httpx.Response(
                    200,
                    json={"collection": {"items": items, "metadata": {"total_hits": self.total_hits}}},
                )
            if path.startswith("/asset/"):
                nasa_id = path[len("/asset/"):]
                if nasa_id not in self.assets:
                    return httpx.Response(404, json={"reason": "not found"})
                items = [u if isinstance(u, dict) else {"href": u} for u in self.assets[nasa_id]]
                return httpx.Response(200, json={"collection": {"items": items}})

        if url.host == "apod.test" and path == "/planetary/apod":
            apod_status = self.apod_status.get(url.params.get("hd", "true"), 200)
            if apod_status != 200:
                return httpx.Response(apod_status, json={"error": {"code": "OVER_RATE_LIMIT"}})
            return httpx.Response(200, json=self.apod)

        body = self.files.get(str(url))
        if body is not None:
            return httpx.Response(200, content=body, headers={"Content-Type": "image/jpeg"})
        return httpx.Response(404, text="missing")


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files.

    Yields:
        Path to temporary directory

    Cleanup:
        Directory is removed after test completes
    """
    temp_path = Path(tempfile.mkdtemp())
    try:
        yield temp_path
    finally:
        shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def test_config() -> AstrofitConfig:
    """Create a test configuration pointing at the fake NASA hosts.

    Backoff is zero so retry tests run instantly.

    Returns:
        AstrofitConfig instance for testing
    """
    return AstrofitConfig(
        _env_file=None,
        nasa_api_key="TEST_KEY",
        apod_url=APOD_URL,
        images_api_url=IMAGES_API,
        retry_attempts=2,
        retry_backoff=0,
        site_url="https://astrofit.test/",
    )


@pytest.fixture
def make_jpeg() -> Callable[..., bytes]:
    """Factory for solid-colour source images.

    Returns:
        ``make_jpeg(width=64, height=48, color=(30, 60, 90), fmt="JPEG")``
    """

    def _make(
        width: int = 64,
        height: int = 48,
        color: tuple[int, int, int] = (30, 60, 90),
        fmt: str = "JPEG",
    ) -> bytes:
        return _encode(width, height, color, fmt)

    return _make


@pytest.fixture
def make_tiff_header() -> Callable[..., bytes]:
    """Factory for cheap TIFFs with arbitrary claimed dimensions.

    Returns:
        ``make_tiff_header(width, height, payload=4096)``
    """
    return _deflate_tiff_header


@pytest.fixture
def search_item() -> Callable[..., dict]:
    """Factory for raw NASA search hits."""
    return _search_item


@pytest.fixture
def fake_nasa() -> FakeNasa:
    return FakeNasa()


@pytest.fixture
def nasa_client(test_config: AstrofitConfig, fake_nasa: FakeNasa) -> NasaClient:
    """NasaClient whose HTTP traffic is served by :class:`FakeNasa`."""
    http_client = httpx.AsyncClient(
        transport=httpx.MockTransport(fake_nasa.handler),
        follow_redirects=True,
    )
    return NasaClient(test_config, http_client=http_client)


@pytest.fixture
def renderer(test_config: AstrofitConfig) -> ImageRenderer:
    return ImageRenderer(test_config)


@pytest.fixture
def test_client(test_config: AstrofitConfig, nasa_client: NasaClient, renderer: ImageRenderer):
    """FastAPI TestClient with the config, NASA client and renderer overridden.

    Yields:
        ``fastapi.testclient.TestClient`` bound to the application
    """
    from fastapi.testclient import TestClient

    from astrofit.api.dependencies import get_config, get_nasa_client, get_renderer
    from astrofit.api.main import app

    app.dependency_overrides[get_config] = lambda: test_config
    app.dependency_overrides[get_nasa_client] = lambda: nasa_client
    app.dependency_overrides[get_renderer] = lambda: renderer
    try:
        with TestClient(app) as client:
            yield client
    finally:
        app.dependency_overrides.clear()
