"""Subdomain availability checks for a listing."""

from __future__ import annotations

import re
from decimal import Decimal
from typing import TYPE_CHECKING

import structlog
from pydantic import BaseModel

from sublease.errors import CredentialTamperError, ListingNotFoundError
from sublease.metrics import availability_checks_total
from sublease.models.listing import ListingStatus, PricingPeriod, RecordType
from sublease.registrars.base import matches_subdomain
from sublease.registrars.factory import create_client

if TYPE_CHECKING:
    from sublease.crypto import CredentialCodec
    from sublease.db import Database
    from sublease.models.listing import Listing

logger = structlog.get_logger()

SUBDOMAIN_PATTERN = re.compile(r"^[a-zA-Z0-9]([a-zA-Z0-9-]*[a-zA-Z0-9])?$")

REASON_INVALID_FORMAT = "Invalid subdomain format. Use only alphanumeric characters and hyphens."
REASON_LISTING_INACTIVE = "This domain listing is not currently active."
REASON_MAX_REACHED = "Maximum subdomains reached for this domain."
REASON_TAKEN = "This subdomain is already taken."
REASON_DNS_CONFLICT = (
    "A DNS record already exists for this subdomain. Please choose a different name."
)


def is_valid_subdomain(label: str) -> bool:
    return bool(SUBDOMAIN_PATTERN.match(label))


class AvailabilityResult(BaseModel):
    available: bool
    reason: str | None = None
    full_domain: str | None = None
    price: Decimal | None = None
    pricing_period: PricingPeriod | None = None
    allowed_record_types: list[RecordType] | None = None

    @classmethod
    def rejected(cls, reason: str) -> AvailabilityResult:
        return cls(available=False, reason=reason)


class AvailabilityResolver:
    """Ordered checks: label format, listing state, capacity, stored rentals, live DNS."""

    def __init__(self, db: Database, codec: CredentialCodec, timeout: float = 15.0) -> None:
        self.db = db
        self.codec = codec
        self.timeout = timeout

    def check(self, listing_id: int, subdomain: str) -> AvailabilityResult:
        result = self._check(listing_id, subdomain)
        outcome = "available" if result.available else "unavailable"
        availability_checks_total.labels(outcome=outcome).inc()
        return result

    def _check(self, listing_id: int, subdomain: str) -> AvailabilityResult:
        if not is_valid_subdomain(subdomain):
            return AvailabilityResult.rejected(REASON_INVALID_FORMAT)
        subdomain = subdomain.lower()

        listing = self.db.get_listing(listing_id)
        if listing is None:
            raise ListingNotFoundError(listing_id)

        if listing.status is not ListingStatus.ACTIVE:
            return AvailabilityResult.rejected(REASON_LISTING_INACTIVE)

        if self.db.count_active_rentals(listing_id) >= listing.max_subdomains:
            return AvailabilityResult.rejected(REASON_MAX_REACHED)

        if self.db.get_active_rental(listing_id, subdomain) is not None:
            return AvailabilityResult.rejected(REASON_TAKEN)

        full_domain = listing.full_domain(subdomain)
        if listing.is_verified and self._has_dns_conflict(listing, subdomain, full_domain):
            return AvailabilityResult.rejected(REASON_DNS_CONFLICT)

        return AvailabilityResult(
            available=True,
            full_domain=full_domain,
            price=listing.price,
            pricing_period=listing.pricing_period,
            allowed_record_types=listing.allowed_record_types,
        )

    def _has_dns_conflict(self, listing: Listing, subdomain: str, full_domain: str) -> bool:
        """Live-zone check; lookup failures count as no conflict."""
        try:
            client = create_client(
                listing.registrar,
                listing.credentials_encrypted,
                self.codec,
                domain_name=listing.domain_name,
                timeout=self.timeout,
            )
            listed = client.list_records()
        except (ValueError, CredentialTamperError) as exc:
            logger.warning(
                "DNS conflict check skipped", listing_id=listing.id, error=str(exc)
            )
            return False

        if not listed.success:
            logger.warning(
                "DNS conflict check skipped", listing_id=listing.id, error=listed.error
            )
            return False

        return any(matches_subdomain(r.name, full_domain, subdomain) for r in listed.records)
