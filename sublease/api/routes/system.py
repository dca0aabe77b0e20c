"""Health check and config endpoints."""

from __future__ import annotations

from fastapi import APIRouter
from sqlalchemy.exc import SQLAlchemyError

from sublease import __version__
from sublease.api.deps import DbDep, SettingsDep
from sublease.api.schemas import ConfigCheckResponse, HealthResponse
from sublease.crypto import MIN_KEY_BYTES

router = APIRouter(tags=["system"])


@router.get("/health", response_model=HealthResponse)
def health_check(
    db: DbDep,
) -> HealthResponse:
    db_ok = False
    try:
        db_ok = db.check_connection()
    except SQLAlchemyError:
        pass

    return HealthResponse(
        status="healthy" if db_ok else "unhealthy",
        version=__version__,
        db_connected=db_ok,
    )


@router.get("/config/check", response_model=ConfigCheckResponse)
def config_check(
    settings: SettingsDep,
) -> ConfigCheckResponse:
    return ConfigCheckResponse(
        configured={
            "encryption_key": len(settings.encryption_key.encode("utf-8")) >= MIN_KEY_BYTES,
            "stripe": bool(settings.stripe_secret_key),
            "stripe_webhook": bool(settings.stripe_webhook_secret),
        }
    )
