"""Astrofit: FastAPI REST API layer.

This package contains the FastAPI application, Pydantic request/response
models, and the small helpers that shape NASA search results for the
frontend.

Modules
-------
main
    FastAPI application with all route handlers and the ``main()`` CLI
    entry point.
models
    Pydantic models for API request and response validation.
dependencies
    Request-scoped accessors for the shared NASA client and renderer.
listing
    Search-result decoding, page clamping, and curated query selection.
seo
    ``sitemap.xml`` and ``robots.txt`` builders.
validation
    Render request validation and filename sanitising.
"""
