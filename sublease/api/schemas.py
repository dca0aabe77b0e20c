"""API request/response schemas (separate from domain models).

Responses never carry sealed credentials or the verification token; the
token is handed out once, inside the verification instructions.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from sublease.listings import ListingSummary
from sublease.models.listing import Listing
from sublease.models.rental import Rental, Transaction, User
from sublease.verification import VerificationInstructions

# --- Responses ---


class HealthResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: str
    version: str
    db_connected: bool


class ConfigCheckResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    configured: dict[str, bool]


class UserResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    email: str
    has_billing_customer: bool
    created_at: datetime

    @classmethod
    def from_user(cls, user: User) -> UserResponse:
        return cls(
            id=user.id,
            email=user.email,
            has_billing_customer=bool(user.billing_customer_ref),
            created_at=user.created_at,
        )


class ListingResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    owner_id: int
    domain_name: str
    registrar: str
    allowed_record_types: list[str]
    max_subdomains: int
    is_verified: bool
    status: str
    price: Decimal
    pricing_period: str
    active_rentals: int | None = None
    available_slots: int | None = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_listing(cls, listing: Listing) -> ListingResponse:
        return cls(
            id=listing.id,
            owner_id=listing.owner_id,
            domain_name=listing.domain_name,
            registrar=listing.registrar.value,
            allowed_record_types=[t.value for t in listing.allowed_record_types],
            max_subdomains=listing.max_subdomains,
            is_verified=listing.is_verified,
            status=listing.status.value,
            price=listing.price,
            pricing_period=listing.pricing_period.value,
            created_at=listing.created_at,
            updated_at=listing.updated_at,
        )

    @classmethod
    def from_summary(cls, summary: ListingSummary) -> ListingResponse:
        base = cls.from_listing(summary.listing)
        return base.model_copy(
            update={
                "active_rentals": summary.active_rentals,
                "available_slots": summary.available_slots,
            }
        )


class ListingListResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    listings: list[ListingResponse]
    total: int


class ListingCreatedResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    listing: ListingResponse
    verification: VerificationInstructions


class VerifyResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    success: bool
    message: str
    error: str | None = None
    instructions: VerificationInstructions | None = None
    listing: ListingResponse


class TransactionResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    amount: Decimal
    payment_ref: str
    status: str
    created_at: datetime


class RentalResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    listing_id: int
    renter_id: int
    subdomain: str
    full_domain: str
    record_type: str
    record_value: str
    period_start: datetime
    period_end: datetime
    status: str
    domain_name: str | None = None
    transactions: list[TransactionResponse] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_rental(
        cls,
        rental: Rental,
        domain_name: str | None = None,
        transactions: list[Transaction] | None = None,
    ) -> RentalResponse:
        return cls(
            id=rental.id,
            listing_id=rental.listing_id,
            renter_id=rental.renter_id,
            subdomain=rental.subdomain,
            full_domain=rental.full_domain,
            record_type=rental.record_type.value,
            record_value=rental.record_value,
            period_start=rental.period_start,
            period_end=rental.period_end,
            status=rental.status.value,
            domain_name=domain_name,
            transactions=[
                TransactionResponse(
                    id=t.id,
                    amount=t.amount,
                    payment_ref=t.payment_ref,
                    status=t.status.value,
                    created_at=t.created_at,
                )
                for t in transactions or []
            ],
            created_at=rental.created_at,
            updated_at=rental.updated_at,
        )


class CheckoutResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    session_id: str
    session_url: str | None


class CancelResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str
    rental: RentalResponse
    dns_success: bool | None = None


class WebhookResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    received: bool = True
    action: str | None = None


# --- Requests ---


class UserCreateRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    email: str = Field(min_length=3, pattern=r"^[^@\s]+@[^@\s]+$")


class ListingCreateRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    owner_id: int
    domain_name: str = Field(min_length=1)
    registrar: str
    credentials: dict[str, str]
    allowed_record_types: list[str] = Field(min_length=1)
    max_subdomains: int = Field(default=1, ge=1)
    price: Decimal = Field(gt=0)
    pricing_period: str = "monthly"


class ListingUpdateRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    price: Decimal | None = Field(default=None, gt=0)
    pricing_period: str | None = None
    credentials: dict[str, str] | None = None
    max_subdomains: int | None = Field(default=None, ge=1)
    status: str | None = None


class AvailabilityRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    listing_id: int
    subdomain: str = Field(min_length=1)


class RentalCreateRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    listing_id: int
    renter_id: int
    subdomain: str = Field(min_length=1)
    record_type: str
    record_value: str = Field(min_length=1)


class RentalUpdateRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    record_type: str | None = None
    record_value: str | None = None
