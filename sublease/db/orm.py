"""SQLAlchemy ORM models mapping to the sublease database tables."""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import (
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    Text,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _utcnow_str() -> str:
    return datetime.now(UTC).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


class Base(DeclarativeBase):
    pass


class UserRow(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    billing_customer_ref: Mapped[str | None] = mapped_column(Text, nullable=True, default=None)
    created_at: Mapped[str] = mapped_column(Text, nullable=False, default=_utcnow_str)


class ListingRow(Base):
    __tablename__ = "listings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    owner_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False)
    domain_name: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    registrar: Mapped[str] = mapped_column(Text, nullable=False)
    credentials_encrypted: Mapped[str] = mapped_column(Text, nullable=False)
    # JSON array of record kinds, e.g. '["A", "CNAME"]'
    allowed_record_types: Mapped[str] = mapped_column(Text, nullable=False, default="[]")
    max_subdomains: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    verification_token: Mapped[str | None] = mapped_column(Text, nullable=True, default=None)
    is_verified: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[str] = mapped_column(Text, nullable=False, default="active")
    # Decimal as text to keep exact cents on SQLite
    price: Mapped[str] = mapped_column(Text, nullable=False)
    pricing_period: Mapped[str] = mapped_column(Text, nullable=False, default="monthly")

    created_at: Mapped[str] = mapped_column(Text, nullable=False, default=_utcnow_str)
    updated_at: Mapped[str] = mapped_column(Text, nullable=False, default=_utcnow_str)

    __table_args__ = (
        CheckConstraint(
            "registrar IN ('cloudflare', 'route53', 'namecheap')",
            name="ck_listings_registrar",
        ),
        CheckConstraint(
            "status IN ('active', 'inactive', 'suspended')",
            name="ck_listings_status",
        ),
        CheckConstraint(
            "pricing_period IN ('monthly', 'yearly')",
            name="ck_listings_pricing_period",
        ),
        CheckConstraint("max_subdomains > 0", name="ck_listings_max_subdomains"),
        Index("idx_listings_owner", "owner_id"),
        Index("idx_listings_status", "status"),
    )


class RentalRow(Base):
    __tablename__ = "rentals"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    listing_id: Mapped[int] = mapped_column(Integer, ForeignKey("listings.id"), nullable=False)
    renter_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False)
    subdomain: Mapped[str] = mapped_column(Text, nullable=False)
    full_domain: Mapped[str] = mapped_column(Text, nullable=False)
    record_type: Mapped[str] = mapped_column(Text, nullable=False)
    record_value: Mapped[str] = mapped_column(Text, nullable=False)
    period_start: Mapped[str] = mapped_column(Text, nullable=False)
    period_end: Mapped[str] = mapped_column(Text, nullable=False)
    subscription_ref: Mapped[str | None] = mapped_column(Text, nullable=True, default=None)
    status: Mapped[str] = mapped_column(Text, nullable=False, default="active")

    created_at: Mapped[str] = mapped_column(Text, nullable=False, default=_utcnow_str)
    updated_at: Mapped[str] = mapped_column(Text, nullable=False, default=_utcnow_str)

    __table_args__ = (
        CheckConstraint(
            "status IN ('active', 'cancelled', 'expired')",
            name="ck_rentals_status",
        ),
        CheckConstraint(
            "record_type IN ('A', 'AAAA', 'CNAME', 'TXT', 'MX', 'NS')",
            name="ck_rentals_record_type",
        ),
        # One active rental per label on a listing
        Index(
            "idx_rentals_active_subdomain",
            "listing_id",
            "subdomain",
            unique=True,
            sqlite_where=text("status = 'active'"),
            postgresql_where=text("status = 'active'"),
        ),
        Index("idx_rentals_subscription", "subscription_ref"),
        Index("idx_rentals_renter", "renter_id"),
    )


class TransactionRow(Base):
    __tablename__ = "transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    rental_id: Mapped[int] = mapped_column(Integer, ForeignKey("rentals.id"), nullable=False)
    amount: Mapped[str] = mapped_column(Text, nullable=False)
    payment_ref: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(Text, nullable=False, default="pending")

    created_at: Mapped[str] = mapped_column(Text, nullable=False, default=_utcnow_str)
    updated_at: Mapped[str] = mapped_column(Text, nullable=False, default=_utcnow_str)

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'completed', 'failed')",
            name="ck_transactions_status",
        ),
        Index("idx_transactions_payment_ref", "payment_ref"),
        Index("idx_transactions_rental", "rental_id"),
    )
