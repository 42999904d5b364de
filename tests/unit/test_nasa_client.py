"""Tests for astrofit.core.nasa_client: upstream access and retry policy.

All HTTP traffic goes through ``httpx.MockTransport`` (see ``FakeNasa`` in
``conftest.py``); the test configuration uses a zero backoff so retries do
not sleep.
"""

from __future__ import annotations

import asyncio
from contextlib import aclosing

import httpx
import pytest

from astrofit.core.nasa_client import (
    NasaAPIError,
    NasaClient,
    is_retryable_status,
    normalize_asset_items,
)


async def _collect(client: NasaClient, url: str) -> bytes:
    chunks = []
    async with aclosing(client.iter_bytes(url)) as stream:
        async for chunk in stream:
            chunks.append(chunk)
    return b"".join(chunks)


class TestRetryableStatus:
    @pytest.mark.parametrize("status", [408, 429, 500, 502, 503, 599])
    def test_retryable(self, status):
        assert is_retryable_status(status)

    @pytest.mark.parametrize("status", [400, 401, 403, 404, 422])
    def test_not_retryable(self, status):
        assert not is_retryable_status(status)


class TestNormalizeAssetItems:
    def test_mixed_items(self):
        items = ["https://a/1.jpg", {"href": "https://a/2.jpg"}, {"href": ""}, {"rel": "x"}, 7]
        assert normalize_asset_items(items) == ["https://a/1.jpg", "https://a/2.jpg"]

    def test_not_a_list(self):
        assert normalize_asset_items(None) == []
        assert normalize_asset_items({"href": "x"}) == []


class TestFetchJson:
    def test_retries_transient_status(self, nasa_client, fake_nasa):
        fake_nasa.statuses["/search"] = [503, 503, 200]
        data = asyncio.run(nasa_client.search("nebula", retries=2))
        assert "collection" in data
        assert len(fake_nasa.requests_to("/search")) == 3

    def test_gives_up_after_retries(self, nasa_client, fake_nasa):
        fake_nasa.statuses["/search"] = [429]
        with pytest.raises(NasaAPIError) as excinfo:
            asyncio.run(nasa_client.search("nebula", retries=2))
        assert excinfo.value.status_code == 429
        assert excinfo.value.retryable
        assert len(fake_nasa.requests_to("/search")) == 3

    def test_no_retry_on_client_error(self, nasa_client, fake_nasa):
        fake_nasa.statuses["/search"] = [404]
        with pytest.raises(NasaAPIError, match="HTTP 404"):
            asyncio.run(nasa_client.search("nebula", retries=2))
        assert len(fake_nasa.requests_to("/search")) == 1

    def test_default_retries_from_config(self, nasa_client, fake_nasa, test_config):
        fake_nasa.statuses["/planetary/apod"] = [500]
        with pytest.raises(NasaAPIError):
            asyncio.run(nasa_client.apod())
        assert len(fake_nasa.requests_to("/planetary/apod")) == test_config.retry_attempts + 1

    def test_error_body_is_truncated(self, test_config):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, text="x" * 5000)

        client = NasaClient(test_config, http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))
        with pytest.raises(NasaAPIError) as excinfo:
            asyncio.run(client.fetch_json("https://images-api.test/search", retries=0))
        assert len(str(excinfo.value)) < 600

    def test_network_error_is_retried(self, test_config):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            if len(calls) == 1:
                raise httpx.ConnectError("connection refused", request=request)
            return httpx.Response(200, json={"ok": True})

        client = NasaClient(test_config, http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))
        assert asyncio.run(client.fetch_json("https://images-api.test/search", retries=1)) == {"ok": True}
        assert len(calls) == 2

    def test_invalid_json(self, test_config):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>")

        client = NasaClient(test_config, http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))
        with pytest.raises(NasaAPIError, match="Invalid JSON"):
            asyncio.run(client.fetch_json("https://images-api.test/search", retries=0))


class TestImagesApi:
    def test_search_params(self, nasa_client, fake_nasa):
        asyncio.run(nasa_client.search("earth from space", page=3))
        params = fake_nasa.requests_to("/search")[0].url.params
        assert params["q"] == "earth from space"
        assert params["media_type"] == "image"
        assert params["page"] == "3"

    def test_search_by_id(self, nasa_client, fake_nasa, search_item):
        fake_nasa.search_items = [search_item("A"), search_item("B")]
        item = asyncio.run(nasa_client.search_by_id("B"))
        assert item["data"][0]["nasa_id"] == "B"

    def test_search_by_id_missing(self, nasa_client):
        assert asyncio.run(nasa_client.search_by_id("nope")) is None

    def test_search_thumbnail_swallows_errors(self, nasa_client, fake_nasa):
        fake_nasa.statuses["/search"] = [500]
        assert asyncio.run(nasa_client.search_thumbnail("A")) is None

    def test_asset_urls(self, nasa_client, fake_nasa):
        fake_nasa.assets["PIA1"] = ["https://a/1~orig.jpg", {"href": "https://a/1~thumb.jpg"}]
        urls = asyncio.run(nasa_client.asset_urls("PIA1"))
        assert urls == ["https://a/1~orig.jpg", "https://a/1~thumb.jpg"]

    def test_asset_id_is_path_encoded(self, nasa_client, fake_nasa):
        fake_nasa.assets["a b/c"] = ["https://a/x.jpg"]
        assert asyncio.run(nasa_client.asset_urls("a b/c")) == ["https://a/x.jpg"]
        raw_path = fake_nasa.requests[0].url.raw_path
        assert raw_path == b"/asset/a%20b%2Fc"


class TestApod:
    def test_params(self, nasa_client, fake_nasa):
        asyncio.run(nasa_client.apod("2024-01-01", hd=False))
        params = fake_nasa.requests_to("/planetary/apod")[0].url.params
        assert params["api_key"] == "TEST_KEY"
        assert params["hd"] == "false"
        assert params["date"] == "2024-01-01"

    def test_date_omitted(self, nasa_client, fake_nasa):
        apod = asyncio.run(nasa_client.apod())
        assert apod["title"] == "Pillars of Creation"
        assert "date" not in fake_nasa.requests_to("/planetary/apod")[0].url.params


class TestDownloads:
    def test_download(self, nasa_client, fake_nasa):
        fake_nasa.files["https://img.test/a.jpg"] = b"jpeg-bytes"
        assert asyncio.run(nasa_client.download("https://img.test/a.jpg")) == b"jpeg-bytes"

    def test_download_failure(self, nasa_client):
        with pytest.raises(NasaAPIError, match="Failed to download source image: 404"):
            asyncio.run(nasa_client.download("https://img.test/missing.jpg"))

    def test_iter_bytes(self, nasa_client, fake_nasa):
        fake_nasa.files["https://img.test/a.jpg"] = b"abc" * 1000
        assert asyncio.run(_collect(nasa_client, "https://img.test/a.jpg")) == b"abc" * 1000

    def test_iter_bytes_failure(self, nasa_client):
        with pytest.raises(NasaAPIError, match="Fetch failed: 404"):
            asyncio.run(_collect(nasa_client, "https://img.test/missing.jpg"))

    def test_aclose(self, nasa_client):
        asyncio.run(nasa_client.aclose())
