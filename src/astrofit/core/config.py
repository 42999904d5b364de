"""Configuration management for Astrofit.

Settings for the NASA upstreams, rendering limits and the HTTP server, read
from ``ASTROFIT_*`` environment variables through pydantic-settings.

Sources
-------
Highest priority first:
1. Environment variables (ASTROFIT_* prefix)
2. .env file in the project root
3. Default values defined in AstrofitConfig

The NASA API key is the one exception to the prefix rule: it is also read
from a plain ``NASA_API_KEY`` variable, which is what most NASA tooling
documents.

A ``.env`` might contain:
    ASTROFIT_NASA_API_KEY=abc123
    ASTROFIT_REQUEST_TIMEOUT=8
    ASTROFIT_RETRY_ATTEMPTS=2
    ASTROFIT_SITE_URL=https://astrofit.example.org

Module instance
---------------
``config`` is built once on import; the API layer and the CLI both read it.

Usage
-----
    from astrofit.core.config import config

    print(config.images_api_url)
    print(config.request_timeout)

Upstream Limits
---------------
- ``DEMO_KEY`` works for APOD but is heavily rate limited (HTTP 429), which
  is why APOD requests retry and fall back to the keyless Images API.
- The Images API needs no key at all.
- ``limit_input_pixels`` caps decoded source size (~16384 x 16384); some
  NASA originals are far larger than any wallpaper needs.
"""

from typing import Literal

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AstrofitConfig(BaseSettings):
    """Main configuration for Astrofit.

    Every field maps to ``ASTROFIT_<FIELD>``; unset fields keep the defaults
    below.

    Attributes
    ----------
    Upstream APIs:
        nasa_api_key : str
            APOD API key (``DEMO_KEY`` works with strict rate limits)
        apod_url : str
            Astronomy Picture of the Day endpoint
        images_api_url : str
            Base URL of the NASA Image and Video Library API

    Retrieval:
        request_timeout : float
            Timeout in seconds for JSON API calls
        download_timeout : float
            Timeout in seconds for source image downloads
        retry_attempts : int
            Extra attempts for retryable failures (408, 429, 5xx, network)
        retry_backoff : float
            Linear backoff step in seconds (attempt n waits n * backoff)
        print_meta_max_candidates : int
            How many asset variants to probe for print metadata

    Rendering:
        limit_input_pixels : int
            Largest decoded source image accepted, in pixels
        wallpaper_min_dim / wallpaper_max_dim : int
            Clamp bounds for wallpaper sides
        print_min_dim / print_max_dim : int
            Clamp bounds for print export sides
        blur_radius : float
            Gaussian radius for the blur-fill background

    Site:
        site_url : str
            Public base URL used in sitemap.xml and robots.txt
        sitemap_pages_per_category : int
            Paged category routes listed per category

    Server:
        server_host : str
            Bind address for uvicorn
        server_port : int
            Port for uvicorn (1024-65535)
        log_level : Literal["DEBUG", "INFO", "WARNING", "ERROR"]
            Root logging level used by the CLI entry point

    Examples
    --------
        >>> from astrofit.core.config import AstrofitConfig
        >>> cfg = AstrofitConfig(retry_attempts=0, request_timeout=2.0)
        >>> cfg.retry_attempts
        0
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="ASTROFIT_",
        case_sensitive=False,
        extra="ignore",
    )

    # Upstream APIs
    nasa_api_key: str = Field(
        default="DEMO_KEY",
        validation_alias=AliasChoices("nasa_api_key", "ASTROFIT_NASA_API_KEY", "NASA_API_KEY"),
        description="API key for api.nasa.gov (APOD)",
    )
    apod_url: str = Field(
        default="https://api.nasa.gov/planetary/apod",
        description="Astronomy Picture of the Day endpoint",
    )
    images_api_url: str = Field(
        default="https://images-api.nasa.gov",
        description="Base URL of the NASA Image and Video Library API",
    )

    # Retrieval
    request_timeout: float = Field(default=8.0, gt=0, description="JSON request timeout (s)")
    download_timeout: float = Field(default=30.0, gt=0, description="Image download timeout (s)")
    retry_attempts: int = Field(
        default=2,
        ge=0,
        le=5,
        description="Extra attempts for retryable upstream failures",
    )
    retry_backoff: float = Field(
        default=0.4,
        ge=0,
        description="Linear backoff step in seconds",
    )
    print_meta_max_candidates: int = Field(default=4, ge=1, le=10)

    # Rendering
    limit_input_pixels: int = Field(
        default=268402689,
        gt=0,
        description="Largest decoded source image accepted (~16384*16384)",
    )
    wallpaper_min_dim: int = Field(default=320, ge=1)
    wallpaper_max_dim: int = Field(default=4000, ge=1)
    print_min_dim: int = Field(default=600, ge=1)
    print_max_dim: int = Field(default=12000, ge=1)
    blur_radius: float = Field(default=35.0, ge=0)

    # Site
    site_url: str = Field(
        default="http://localhost:8000",
        description="Public base URL for sitemap.xml and robots.txt",
    )
    sitemap_pages_per_category: int = Field(default=5, ge=1, le=100)

    # Server
    server_host: str = Field(
        default="0.0.0.0",
        description="Server bind address (0.0.0.0 for local network)",
    )
    server_port: int = Field(
        default=8000,
        description="Server port",
        ge=1024,
        le=65535,
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO")

    @property
    def search_url(self) -> str:
        """Full URL of the Images API search endpoint."""
        return f"{self.images_api_url.rstrip('/')}/search"

    @property
    def asset_url(self) -> str:
        """Base URL of the Images API asset endpoint (append ``/<nasa_id>``)."""
        return f"{self.images_api_url.rstrip('/')}/asset"

    @property
    def base_url(self) -> str:
        """Public site URL without a trailing slash."""
        return self.site_url.rstrip("/")


# Global configuration instance
# Loaded once at import time from ASTROFIT_* environment variables and .env.
config = AstrofitConfig()
