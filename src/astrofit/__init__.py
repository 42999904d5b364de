"""Astrofit - NASA imagery browser with device-fit wallpapers and print exports."""

__version__ = "0.3.0"

from astrofit.core.config import AstrofitConfig, config

__all__ = [
    "AstrofitConfig",
    "config",
]
