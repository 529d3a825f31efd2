"""
Main entrypoint for the Freelance Marketplace API.

This module assembles the FastAPI application, sets up logging and
includes versioned routers.  ``create_app`` builds and configures the
app, which is then instantiated at import time as ``app`` so it can be
served directly::

    uvicorn freelance_marketplace_api.app.main:app --reload

The application title and version come from ``Settings`` in
``core.config``.
"""

from fastapi import FastAPI

from .core.config import settings
from .core.logging_config import setup_logging
from .api.v1.router import router as v1_router
from .core.db import init_db


def create_app() -> FastAPI:
    """Create and configure a FastAPI application.

    Configures logging, mounts the v1 routers under ``/api/v1`` and
    registers a startup hook that applies database migrations.
    """
    # Logging first so that everything below can log
    setup_logging(settings.log_level, settings.log_file or None)

    app = FastAPI(title=settings.project_name, version=settings.api_version, debug=settings.debug)

    app.include_router(v1_router, prefix="/api/v1")

    @app.on_event("startup")
    async def startup_event() -> None:
        # Creates the database file on first start and applies pending migrations
        init_db()

    return app


app = create_app()
