"""Domain ownership verification via a published TXT challenge."""

from __future__ import annotations

import secrets
from typing import TYPE_CHECKING

import structlog
from pydantic import BaseModel

from sublease.errors import ListingNotFoundError
from sublease.models.listing import Listing, RecordType
from sublease.registrars.base import VERIFICATION_HOST
from sublease.registrars.factory import create_client

if TYPE_CHECKING:
    from sublease.crypto import CredentialCodec
    from sublease.db import Database

logger = structlog.get_logger()

TOKEN_BYTES = 32

PROPAGATION_NOTE = (
    "DNS changes can take a few minutes (occasionally up to 48 hours) to propagate. "
    "If verification fails right after adding the record, wait and try again."
)


def generate_verification_token() -> str:
    """32 random bytes rendered as 64 hex characters."""
    return secrets.token_hex(TOKEN_BYTES)


class VerificationInstructions(BaseModel):
    """What the owner must publish for the challenge to pass."""

    record_type: RecordType = RecordType.TXT
    record_name: str = VERIFICATION_HOST
    fqdn: str
    value: str
    note: str = PROPAGATION_NOTE

    @classmethod
    def for_listing(cls, listing: Listing) -> VerificationInstructions:
        return cls(
            fqdn=f"{VERIFICATION_HOST}.{listing.domain_name}",
            value=listing.verification_token or "",
        )


class VerificationOutcome(BaseModel):
    success: bool
    message: str
    error: str | None = None
    instructions: VerificationInstructions | None = None
    listing: Listing


class DomainVerifier:
    """Runs the Unverified(token) -> Verified transition for a listing."""

    def __init__(self, db: Database, codec: CredentialCodec, timeout: float = 15.0) -> None:
        self.db = db
        self.codec = codec
        self.timeout = timeout

    def verify(self, listing_id: int) -> VerificationOutcome:
        listing = self.db.get_listing(listing_id)
        if listing is None:
            raise ListingNotFoundError(listing_id)

        if listing.is_verified:
            return VerificationOutcome(
                success=True, message="Domain is already verified", listing=listing
            )
        if not listing.verification_token:
            raise ValueError(f"Listing {listing_id} has no verification token")

        client = create_client(
            listing.registrar,
            listing.credentials_encrypted,
            self.codec,
            domain_name=listing.domain_name,
            timeout=self.timeout,
        )
        result = client.verify_ownership(listing.verification_token)

        if not result.success:
            logger.info(
                "Domain verification failed",
                listing_id=listing_id,
                domain=listing.domain_name,
                error=result.error,
            )
            return VerificationOutcome(
                success=False,
                message="Domain verification failed",
                error=result.error,
                instructions=VerificationInstructions.for_listing(listing),
                listing=listing,
            )

        verified = self.db.mark_listing_verified(listing_id)
        logger.info("Domain verified", listing_id=listing_id, domain=listing.domain_name)
        return VerificationOutcome(
            success=True, message="Domain verified successfully", listing=verified
        )
