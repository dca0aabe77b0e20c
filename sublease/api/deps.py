"""FastAPI dependency injection."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request

from sublease.availability import AvailabilityResolver
from sublease.config import Settings
from sublease.crypto import CredentialCodec
from sublease.db import Database
from sublease.lifecycle import RentalLifecycle
from sublease.listings import ListingService
from sublease.protocols import BillingPort
from sublease.rentals import RentalService
from sublease.verification import DomainVerifier


def _get_db(request: Request) -> Database:
    return request.app.state.db  # type: ignore[no-any-return]


def _get_settings(request: Request) -> Settings:
    return request.app.state.settings  # type: ignore[no-any-return]


def _get_codec(request: Request) -> CredentialCodec:
    return request.app.state.codec  # type: ignore[no-any-return]


def _get_billing(request: Request) -> BillingPort:
    return request.app.state.billing  # type: ignore[no-any-return]


DbDep = Annotated[Database, Depends(_get_db)]
SettingsDep = Annotated[Settings, Depends(_get_settings)]
CodecDep = Annotated[CredentialCodec, Depends(_get_codec)]
BillingDep = Annotated[BillingPort, Depends(_get_billing)]


def _listing_service(db: DbDep, codec: CodecDep, settings: SettingsDep) -> ListingService:
    return ListingService(db, codec, timeout=settings.registrar_timeout_seconds)


def _verifier(db: DbDep, codec: CodecDep, settings: SettingsDep) -> DomainVerifier:
    return DomainVerifier(db, codec, timeout=settings.registrar_timeout_seconds)


def _availability(db: DbDep, codec: CodecDep, settings: SettingsDep) -> AvailabilityResolver:
    return AvailabilityResolver(db, codec, timeout=settings.registrar_timeout_seconds)


def _lifecycle(
    db: DbDep, codec: CodecDep, billing: BillingDep, settings: SettingsDep
) -> RentalLifecycle:
    return RentalLifecycle(
        db,
        codec,
        billing,
        dns_ttl=settings.dns_default_ttl,
        timeout=settings.registrar_timeout_seconds,
    )


LifecycleDep = Annotated[RentalLifecycle, Depends(_lifecycle)]
AvailabilityDep = Annotated[AvailabilityResolver, Depends(_availability)]


def _rental_service(
    lifecycle: LifecycleDep, availability: AvailabilityDep, billing: BillingDep
) -> RentalService:
    return RentalService(lifecycle, availability, billing)


ListingServiceDep = Annotated[ListingService, Depends(_listing_service)]
VerifierDep = Annotated[DomainVerifier, Depends(_verifier)]
RentalServiceDep = Annotated[RentalService, Depends(_rental_service)]
