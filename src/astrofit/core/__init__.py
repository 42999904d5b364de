"""Core functionality for image retrieval and transformation.

This module provides the core components of Astrofit:

- **AstrofitConfig / config**: Configuration management using Pydantic Settings
- **NasaClient**: Async client for the NASA Images and APOD APIs
- **assets**: Asset variant selection heuristics (``~large``, ``~orig``, ...)
- **ImageRenderer**: Pillow-based wallpaper and print rendering
- **categories / presets**: Static browse categories and output size presets

Architecture Overview
---------------------
The core module has no shared engine; each piece is a leaf used directly by
the route handlers in :mod:`astrofit.api.main`:

1. **Configuration Layer** (config.py):
   - Environment-based configuration using Pydantic Settings
   - All settings prefixed with ASTROFIT_ in .env files

2. **Retrieval Layer** (nasa_client.py, assets.py):
   - Timeouts and bounded retries for upstream calls
   - Filename heuristics to pick the best asset variant
   - Search-thumbnail fallback when the asset list is unusable

3. **Transform Layer** (imaging.py):
   - cover (entropy crop), contain (letterbox), blur-fill fit modes
   - JPEG encoding tuned for screens and for print

Usage Example
-------------
    from astrofit.core import FitMode, ImageRenderer, NasaClient, config, resolve_best_asset

    client = NasaClient(config)
    selection = await resolve_best_asset(client, "PIA12345")
    data = await client.download(selection.best)
    jpeg = ImageRenderer(config).render_wallpaper(data, 1920, 1080, FitMode.BLUR)
"""

from astrofit.core.assets import AssetSelection, pick_best, resolve_best_asset
from astrofit.core.config import AstrofitConfig, config
from astrofit.core.imaging import FitMode, ImageRenderer, RenderError
from astrofit.core.nasa_client import NasaAPIError, NasaClient

__all__ = [
    "AssetSelection",
    "AstrofitConfig",
    "FitMode",
    "ImageRenderer",
    "NasaAPIError",
    "NasaClient",
    "RenderError",
    "config",
    "pick_best",
    "resolve_best_asset",
]
