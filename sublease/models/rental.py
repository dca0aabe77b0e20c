"""Rental, transaction and user models."""

from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from sublease.models.listing import RecordType


class RentalStatus(StrEnum):
    ACTIVE = "active"
    CANCELLED = "cancelled"
    EXPIRED = "expired"

    @property
    def is_terminal(self) -> bool:
        return self is not RentalStatus.ACTIVE


class TransactionStatus(StrEnum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class User(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int | None = None
    email: str
    billing_customer_ref: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class Rental(BaseModel):
    """A renter's lease of one subdomain label under a listing."""

    model_config = ConfigDict(frozen=True)

    id: int | None = None
    listing_id: int
    renter_id: int
    subdomain: str
    full_domain: str
    record_type: RecordType
    record_value: str
    period_start: datetime = Field(default_factory=lambda: datetime.now(UTC))
    period_end: datetime = Field(default_factory=lambda: datetime.now(UTC))
    subscription_ref: str | None = None
    status: RentalStatus = RentalStatus.ACTIVE

    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @field_validator("subdomain", "full_domain")
    @classmethod
    def _lower_dns_name(cls, value: str) -> str:
        # DNS names are case-insensitive; store one spelling per label
        return value.lower()


class Transaction(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int | None = None
    rental_id: int
    amount: Decimal
    payment_ref: str
    status: TransactionStatus = TransactionStatus.PENDING
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
