"""Owner-facing listing management."""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING, Any

import structlog
from pydantic import BaseModel

from sublease.errors import (
    InvalidCredentialsError,
    ListingHasActiveRentalsError,
    ListingNotFoundError,
    UserNotFoundError,
)
from sublease.models.listing import (
    Listing,
    ListingStatus,
    PricingPeriod,
    RecordType,
    Registrar,
)
from sublease.registrars.factory import seal_credentials, validate_credentials
from sublease.verification import VerificationInstructions, generate_verification_token

if TYPE_CHECKING:
    from sublease.crypto import CredentialCodec
    from sublease.db import Database

logger = structlog.get_logger()


class ListingSummary(BaseModel):
    listing: Listing
    active_rentals: int
    available_slots: int


class CreatedListing(BaseModel):
    listing: Listing
    instructions: VerificationInstructions


def normalize_domain(domain_name: str) -> str:
    domain = domain_name.strip().rstrip(".").lower()
    if not domain or "." not in domain:
        raise ValueError(f"Invalid domain name: {domain_name!r}")
    return domain


def _record_types(values: list[str] | list[RecordType]) -> list[RecordType]:
    if not values:
        raise ValueError("At least one allowed record type is required")
    try:
        kinds = [RecordType(v) for v in values]
    except ValueError:
        allowed = ", ".join(t.value for t in RecordType)
        raise ValueError(f"Record types must be among: {allowed}") from None
    # de-duplicate, keep order
    return list(dict.fromkeys(kinds))


def _positive_price(price: Decimal | float | str) -> Decimal:
    value = Decimal(str(price))
    if value <= 0:
        raise ValueError("Price must be greater than zero")
    return value


def _positive_max(max_subdomains: int) -> int:
    if max_subdomains < 1:
        raise ValueError("max_subdomains must be at least 1")
    return max_subdomains


class ListingService:
    def __init__(self, db: Database, codec: CredentialCodec, timeout: float = 15.0) -> None:
        self.db = db
        self.codec = codec
        self.timeout = timeout

    def _seal_and_check(
        self, registrar: Registrar, domain_name: str, credentials: dict[str, Any]
    ) -> str:
        """Seal credentials and block on a live credential check."""
        sealed = seal_credentials(registrar, credentials, self.codec)
        check = validate_credentials(
            registrar, sealed, self.codec, domain_name=domain_name, timeout=self.timeout
        )
        if not check.valid:
            raise InvalidCredentialsError(f"Invalid registrar credentials: {check.error}")
        return sealed

    def create_listing(
        self,
        owner_id: int,
        domain_name: str,
        registrar: str | Registrar,
        credentials: dict[str, Any],
        allowed_record_types: list[str] | list[RecordType],
        max_subdomains: int,
        price: Decimal | float | str,
        pricing_period: str | PricingPeriod = PricingPeriod.MONTHLY,
    ) -> CreatedListing:
        if self.db.get_user(owner_id) is None:
            raise UserNotFoundError(owner_id)

        domain = normalize_domain(domain_name)
        kinds = _record_types(allowed_record_types)
        tag = Registrar(registrar)
        listing = Listing(
            owner_id=owner_id,
            domain_name=domain,
            registrar=tag,
            credentials_encrypted=self._seal_and_check(tag, domain, credentials),
            allowed_record_types=kinds,
            max_subdomains=_positive_max(max_subdomains),
            verification_token=generate_verification_token(),
            is_verified=False,
            status=ListingStatus.ACTIVE,
            price=_positive_price(price),
            pricing_period=PricingPeriod(pricing_period),
        )

        created = self.db.create_listing(listing)
        logger.info(
            "Listing created",
            listing_id=created.id,
            domain=created.domain_name,
            registrar=created.registrar.value,
        )
        return CreatedListing(
            listing=created, instructions=VerificationInstructions.for_listing(created)
        )

    def list_listings(
        self,
        status: ListingStatus | None = None,
        registrar: Registrar | None = None,
        owner_id: int | None = None,
    ) -> list[ListingSummary]:
        listings = self.db.list_listings(status=status, registrar=registrar, owner_id=owner_id)
        counts = self.db.active_rental_counts()
        return [
            ListingSummary(
                listing=listing,
                active_rentals=counts[listing.id],
                available_slots=max(listing.max_subdomains - counts[listing.id], 0),
            )
            for listing in listings
        ]

    def get_listing(self, listing_id: int) -> Listing:
        listing = self.db.get_listing(listing_id)
        if listing is None:
            raise ListingNotFoundError(listing_id)
        return listing

    def update_listing(
        self,
        listing_id: int,
        *,
        price: Decimal | float | str | None = None,
        pricing_period: str | PricingPeriod | None = None,
        credentials: dict[str, Any] | None = None,
        max_subdomains: int | None = None,
        status: str | ListingStatus | None = None,
    ) -> Listing:
        listing = self.get_listing(listing_id)

        changes: dict[str, Any] = {}
        if price is not None:
            changes["price"] = _positive_price(price)
        if pricing_period is not None:
            changes["pricing_period"] = PricingPeriod(pricing_period)
        if max_subdomains is not None:
            changes["max_subdomains"] = _positive_max(max_subdomains)
        if status is not None:
            changes["status"] = ListingStatus(status)
        if credentials is not None:
            changes["credentials_encrypted"] = self._seal_and_check(
                listing.registrar, listing.domain_name, credentials
            )

        if not changes:
            return listing
        updated = self.db.update_listing(listing_id, **changes)
        logger.info("Listing updated", listing_id=listing_id, fields=sorted(changes))
        return updated

    def delete_listing(self, listing_id: int) -> None:
        self.get_listing(listing_id)
        if self.db.count_active_rentals(listing_id) > 0:
            raise ListingHasActiveRentalsError(listing_id)
        self.db.delete_listing(listing_id)
        logger.info("Listing deleted", listing_id=listing_id)
