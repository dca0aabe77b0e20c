"""Re-exports all Pydantic models."""

from sublease.models.dns import (
    CloudflareCredentials,
    DnsRecord,
    DnsResult,
    NamecheapCredentials,
    RecordChanges,
    RegistrarCredentials,
    Route53Credentials,
)
from sublease.models.listing import Listing, ListingStatus, PricingPeriod, RecordType, Registrar
from sublease.models.rental import (
    Rental,
    RentalStatus,
    Transaction,
    TransactionStatus,
    User,
)

__all__ = [
    "CloudflareCredentials",
    "DnsRecord",
    "DnsResult",
    "Listing",
    "ListingStatus",
    "NamecheapCredentials",
    "PricingPeriod",
    "RecordChanges",
    "RecordType",
    "Registrar",
    "RegistrarCredentials",
    "Rental",
    "RentalStatus",
    "Route53Credentials",
    "Transaction",
    "TransactionStatus",
    "User",
]
