"""FastAPI test client fixtures."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from sublease.api.app import include_routers
from sublease.api.middleware import CorrelationIdMiddleware, add_exception_handlers

if TYPE_CHECKING:
    from sublease.config import Settings
    from sublease.crypto import CredentialCodec
    from sublease.db import Database


def _create_test_app(
    db: Database, settings: Settings, codec: CredentialCodec, billing: object
) -> FastAPI:
    """Create a FastAPI app with injected test collaborators (no lifespan)."""
    app = FastAPI(title="Sublease Test")

    app.state.db = db
    app.state.settings = settings
    app.state.codec = codec
    app.state.billing = billing

    app.add_middleware(CorrelationIdMiddleware)
    add_exception_handlers(app)

    include_routers(app)

    return app


@pytest.fixture()
def client(db: Database, settings: Settings, codec: CredentialCodec, billing) -> TestClient:
    app = _create_test_app(db, settings, codec, billing)
    return TestClient(app)
