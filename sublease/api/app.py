"""FastAPI application factory and entry point."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

import structlog
from fastapi import FastAPI

from sublease import __version__
from sublease.api.middleware import CorrelationIdMiddleware, add_exception_handlers
from sublease.api.routes import availability, listings, rentals, system, users, webhooks
from sublease.billing import StripeBilling
from sublease.config import Settings
from sublease.crypto import CredentialCodec
from sublease.db import Database
from sublease.logging import configure_logging

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Initialize settings, codec, DB and billing on startup, cleanup on shutdown."""
    settings = Settings()
    settings.ensure_data_dir()

    configure_logging(
        log_level=settings.log_level,
        log_format=settings.log_format,
    )

    # Raises ConfigurationError on a short key; the app must not start without it
    codec = CredentialCodec(settings.encryption_key)

    db = Database(settings.db_path)
    db.init_schema()

    app.state.db = db
    app.state.settings = settings
    app.state.codec = codec
    app.state.billing = StripeBilling(
        settings.stripe_secret_key,
        settings.stripe_webhook_secret,
        currency=settings.billing_currency,
        app_url=settings.app_url,
        tolerance=settings.webhook_tolerance_seconds,
    )

    logger.info("Sublease API started", host=settings.api_host, port=settings.api_port)
    yield

    db.close()
    logger.info("Sublease API shut down")


def include_routers(app: FastAPI) -> None:
    prefix = "/api/v1"
    app.include_router(system.router, prefix=prefix)
    app.include_router(users.router, prefix=prefix)
    app.include_router(listings.router, prefix=prefix)
    app.include_router(availability.router, prefix=prefix)
    app.include_router(rentals.router, prefix=prefix)
    app.include_router(webhooks.router, prefix=prefix)


def create_app() -> FastAPI:
    """Application factory."""
    app = FastAPI(
        title="Sublease",
        description="Subdomain rental marketplace: registrar DNS and billing lifecycle API",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(CorrelationIdMiddleware)
    add_exception_handlers(app)

    # Prometheus metrics endpoint
    from prometheus_client import make_asgi_app

    app.mount("/metrics", make_asgi_app())

    include_routers(app)
    return app


def main() -> None:
    """Entry point for `sublease-api` command."""
    import uvicorn

    settings = Settings()
    uvicorn.run(
        "sublease.api.app:create_app",
        factory=True,
        host=settings.api_host,
        port=settings.api_port,
    )
