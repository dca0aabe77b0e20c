"""Listing model: an owner's offer to lease subdomains of one domain."""

from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class Registrar(StrEnum):
    CLOUDFLARE = "cloudflare"
    ROUTE53 = "route53"
    NAMECHEAP = "namecheap"

    @classmethod
    def _missing_(cls, value: object) -> Registrar | None:
        # Accept "CLOUDFLARE", "Route53", ...
        if isinstance(value, str):
            lowered = value.lower()
            for member in cls:
                if member.value == lowered:
                    return member
        return None


class RecordType(StrEnum):
    A = "A"
    AAAA = "AAAA"
    CNAME = "CNAME"
    TXT = "TXT"
    MX = "MX"
    NS = "NS"

    @classmethod
    def _missing_(cls, value: object) -> RecordType | None:
        if isinstance(value, str):
            upper = value.upper()
            for member in cls:
                if member.value == upper:
                    return member
        return None


class ListingStatus(StrEnum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"


class PricingPeriod(StrEnum):
    MONTHLY = "monthly"
    YEARLY = "yearly"

    @property
    def interval(self) -> str:
        """Billing provider recurring interval."""
        return "month" if self is PricingPeriod.MONTHLY else "year"


class Listing(BaseModel):
    """Represents one domain offered for subdomain rental."""

    model_config = ConfigDict(frozen=True)

    id: int | None = None
    owner_id: int
    domain_name: str
    registrar: Registrar
    credentials_encrypted: str = Field(default="", repr=False)
    allowed_record_types: list[RecordType] = Field(default_factory=list)
    max_subdomains: int = 1
    verification_token: str | None = Field(default=None, repr=False)
    is_verified: bool = False
    status: ListingStatus = ListingStatus.ACTIVE
    price: Decimal = Decimal("0")
    pricing_period: PricingPeriod = PricingPeriod.MONTHLY

    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    def full_domain(self, subdomain: str) -> str:
        return f"{subdomain.lower()}.{self.domain_name}"

    def allows(self, record_type: RecordType) -> bool:
        return record_type in self.allowed_record_types
