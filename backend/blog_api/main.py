"""FastAPI application bootstrap and router wiring."""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from blog_api.api.routers import health, imports
from blog_api.core.config import get_settings
from blog_api.core.logging import configure_logging

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    """Instantiate the FastAPI app and include top-level routers."""
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(title=settings.app_name, version="0.1.0")

    logger.info(f"[CORS] Allowed origins: {settings.cors_origins}")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health.router)
    app.include_router(imports.router, prefix="/api/imports", tags=["imports"])

    return app


app = create_app()
