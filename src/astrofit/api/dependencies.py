"""FastAPI dependencies for the shared config, upstream client and renderer.

All three objects are set up once in the application lifespan and stored on
``app.state``.  Route handlers receive them through ``Depends`` so tests can
swap them with ``app.dependency_overrides``.
"""

from fastapi import Request

from astrofit.core.config import AstrofitConfig
from astrofit.core.imaging import ImageRenderer
from astrofit.core.nasa_client import NasaClient


def get_config(request: Request) -> AstrofitConfig:
    return request.app.state.config


def get_nasa_client(request: Request) -> NasaClient:
    return request.app.state.nasa_client


def get_renderer(request: Request) -> ImageRenderer:
    return request.app.state.renderer
