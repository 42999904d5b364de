"""Tests for astrofit.core.config: configuration management.

Tests cover:
- Default values for upstream URLs, retry policy and render bounds.
- Environment variable overrides via the ASTROFIT_ prefix.
- The plain NASA_API_KEY alias for the APOD key.
- Derived URL properties.
- Pydantic validation constraints (port range, retry bounds, log level).
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from astrofit.core.config import AstrofitConfig


@pytest.fixture
def clean_env(monkeypatch):
    """Remove any environment variables that would leak into defaults."""
    for name in (
        "NASA_API_KEY",
        "ASTROFIT_NASA_API_KEY",
        "ASTROFIT_RETRY_ATTEMPTS",
        "ASTROFIT_SERVER_PORT",
        "ASTROFIT_SITE_URL",
        "ASTROFIT_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestConfigDefaults:
    """Verify that AstrofitConfig provides sensible defaults."""

    def test_default_api_key_is_demo_key(self, clean_env):
        cfg = AstrofitConfig(_env_file=None)
        assert cfg.nasa_api_key == "DEMO_KEY"

    def test_default_upstream_urls(self, clean_env):
        cfg = AstrofitConfig(_env_file=None)
        assert cfg.apod_url == "https://api.nasa.gov/planetary/apod"
        assert cfg.images_api_url == "https://images-api.nasa.gov"

    def test_default_retry_policy(self, clean_env):
        """Two extra attempts with a 0.4 s linear backoff step."""
        cfg = AstrofitConfig(_env_file=None)
        assert cfg.retry_attempts == 2
        assert cfg.retry_backoff == pytest.approx(0.4)

    def test_default_timeouts(self, clean_env):
        cfg = AstrofitConfig(_env_file=None)
        assert cfg.request_timeout == 8.0
        assert cfg.download_timeout == 30.0

    def test_default_render_bounds(self, clean_env):
        cfg = AstrofitConfig(_env_file=None)
        assert (cfg.wallpaper_min_dim, cfg.wallpaper_max_dim) == (320, 4000)
        assert (cfg.print_min_dim, cfg.print_max_dim) == (600, 12000)
        assert cfg.limit_input_pixels == 268402689

    def test_default_server(self, clean_env):
        cfg = AstrofitConfig(_env_file=None)
        assert cfg.server_host == "0.0.0.0"
        assert cfg.server_port == 8000
        assert cfg.log_level == "INFO"


class TestConfigEnvironment:
    """Verify environment variable loading."""

    def test_prefixed_override(self, clean_env):
        clean_env.setenv("ASTROFIT_RETRY_ATTEMPTS", "4")
        cfg = AstrofitConfig(_env_file=None)
        assert cfg.retry_attempts == 4

    def test_plain_nasa_api_key_alias(self, clean_env):
        clean_env.setenv("NASA_API_KEY", "plain-key")
        cfg = AstrofitConfig(_env_file=None)
        assert cfg.nasa_api_key == "plain-key"

    def test_prefixed_nasa_api_key(self, clean_env):
        clean_env.setenv("ASTROFIT_NASA_API_KEY", "prefixed-key")
        cfg = AstrofitConfig(_env_file=None)
        assert cfg.nasa_api_key == "prefixed-key"

    def test_env_file(self, clean_env, temp_dir):
        env_file = temp_dir / ".env"
        env_file.write_text("ASTROFIT_SITE_URL=https://from-file.example\n")
        cfg = AstrofitConfig(_env_file=str(env_file))
        assert cfg.site_url == "https://from-file.example"


class TestConfigProperties:
    """Verify derived URLs."""

    def test_search_and_asset_urls(self, test_config: AstrofitConfig):
        assert test_config.search_url == "https://images-api.test/search"
        assert test_config.asset_url == "https://images-api.test/asset"

    def test_trailing_slash_is_ignored(self):
        cfg = AstrofitConfig(_env_file=None, images_api_url="https://images.example/")
        assert cfg.search_url == "https://images.example/search"

    def test_base_url_strips_slash(self, test_config: AstrofitConfig):
        assert test_config.base_url == "https://astrofit.test"


class TestConfigValidation:
    """Verify Pydantic constraints."""

    def test_port_below_range(self):
        with pytest.raises(ValidationError):
            AstrofitConfig(_env_file=None, server_port=80)

    def test_retry_attempts_upper_bound(self):
        with pytest.raises(ValidationError):
            AstrofitConfig(_env_file=None, retry_attempts=6)

    def test_negative_backoff(self):
        with pytest.raises(ValidationError):
            AstrofitConfig(_env_file=None, retry_backoff=-1)

    def test_unknown_log_level(self):
        with pytest.raises(ValidationError):
            AstrofitConfig(_env_file=None, log_level="LOUD")
