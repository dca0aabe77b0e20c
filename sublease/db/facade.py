"""SQLAlchemy-backed database connection and CRUD helpers."""

from __future__ import annotations

import json
from collections import Counter
from datetime import UTC, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from sqlalchemy import func, select, text, update
from sqlalchemy.exc import IntegrityError

from sublease.db.engine import create_db_engine, create_session_factory
from sublease.db.orm import Base, ListingRow, RentalRow, TransactionRow, UserRow
from sublease.errors import (
    ConflictError,
    DomainAlreadyListedError,
    ListingHasRentalHistoryError,
    ListingNotFoundError,
    RentalNotFoundError,
    SubdomainTakenError,
    UserNotFoundError,
)
from sublease.models.listing import (
    Listing,
    ListingStatus,
    PricingPeriod,
    RecordType,
    Registrar,
)
from sublease.models.rental import (
    Rental,
    RentalStatus,
    Transaction,
    TransactionStatus,
    User,
)

if TYPE_CHECKING:
    from pathlib import Path

    from sqlalchemy import Engine
    from sqlalchemy.orm import Session, sessionmaker

# Listing columns an owner may change after creation
_LISTING_MUTABLE = frozenset(
    {"price", "pricing_period", "credentials_encrypted", "max_subdomains", "status"}
)


def _is_unique_violation(exc: IntegrityError) -> bool:
    return "UNIQUE" in str(exc.orig).upper()


class Database:
    """SQLAlchemy-backed wrapper with CRUD helpers for users, listings and rentals."""

    def __init__(self, db_path: str | Path = ":memory:"):
        self.db_path = str(db_path)
        self._engine: Engine = create_db_engine(self.db_path)
        self._session_factory: sessionmaker[Session] = create_session_factory(self._engine)

    @property
    def engine(self) -> Engine:
        return self._engine

    def init_schema(self) -> None:
        """Create all tables via ORM metadata."""
        Base.metadata.create_all(self._engine)

    def close(self) -> None:
        self._engine.dispose()

    def check_connection(self) -> bool:
        """Verify the database is reachable. Returns True or raises."""
        with self._session_factory() as session:
            session.execute(text("SELECT 1"))
        return True

    # --- Users ---

    def create_user(self, email: str) -> User:
        with self._session_factory() as session:
            row = UserRow(email=email.strip().lower())
            session.add(row)
            try:
                session.commit()
            except IntegrityError:
                session.rollback()
                raise ConflictError(f"User with email {email} already exists") from None
            return self._row_to_user(row)

    def get_user(self, user_id: int) -> User | None:
        with self._session_factory() as session:
            row = session.get(UserRow, user_id)
            return self._row_to_user(row) if row else None

    def set_billing_customer_ref(self, user_id: int, customer_ref: str) -> User:
        with self._session_factory() as session:
            row = session.get(UserRow, user_id)
            if row is None:
                raise UserNotFoundError(user_id)
            row.billing_customer_ref = customer_ref
            session.commit()
            return self._row_to_user(row)

    # --- Listings ---

    def create_listing(self, listing: Listing) -> Listing:
        with self._session_factory() as session:
            row = ListingRow(
                owner_id=listing.owner_id,
                domain_name=listing.domain_name,
                registrar=listing.registrar.value,
                credentials_encrypted=listing.credentials_encrypted,
                allowed_record_types=json.dumps([t.value for t in listing.allowed_record_types]),
                max_subdomains=listing.max_subdomains,
                verification_token=listing.verification_token,
                is_verified=int(listing.is_verified),
                status=listing.status.value,
                price=str(listing.price),
                pricing_period=listing.pricing_period.value,
            )
            session.add(row)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                if _is_unique_violation(exc):
                    raise DomainAlreadyListedError(listing.domain_name) from None
                raise
            return self._row_to_listing(row)

    def get_listing(self, listing_id: int) -> Listing | None:
        with self._session_factory() as session:
            row = session.get(ListingRow, listing_id)
            return self._row_to_listing(row) if row else None

    def list_listings(
        self,
        status: ListingStatus | None = None,
        registrar: Registrar | None = None,
        owner_id: int | None = None,
    ) -> list[Listing]:
        with self._session_factory() as session:
            stmt = select(ListingRow).order_by(ListingRow.id)
            if status:
                stmt = stmt.where(ListingRow.status == status.value)
            if registrar:
                stmt = stmt.where(ListingRow.registrar == registrar.value)
            if owner_id is not None:
                stmt = stmt.where(ListingRow.owner_id == owner_id)
            return [self._row_to_listing(r) for r in session.scalars(stmt).all()]

    def update_listing(self, listing_id: int, **changes: Any) -> Listing:
        unknown = set(changes) - _LISTING_MUTABLE
        if unknown:
            raise ValueError(f"Listing fields cannot be updated: {', '.join(sorted(unknown))}")

        with self._session_factory() as session:
            row = session.get(ListingRow, listing_id)
            if row is None:
                raise ListingNotFoundError(listing_id)
            for field, value in changes.items():
                if value is None:
                    continue
                if field in ("price", "pricing_period", "status"):
                    value = str(value)
                setattr(row, field, value)
            row.updated_at = _utcnow_str()
            session.commit()
            return self._row_to_listing(row)

    def mark_listing_verified(self, listing_id: int) -> Listing:
        """Flip the listing to verified and clear its token."""
        with self._session_factory() as session:
            row = session.get(ListingRow, listing_id)
            if row is None:
                raise ListingNotFoundError(listing_id)
            row.is_verified = 1
            row.verification_token = None
            row.updated_at = _utcnow_str()
            session.commit()
            return self._row_to_listing(row)

    def delete_listing(self, listing_id: int) -> None:
        with self._session_factory() as session:
            row = session.get(ListingRow, listing_id)
            if row is None:
                raise ListingNotFoundError(listing_id)
            # Transactions are never deleted, so neither are the rentals they hang off
            has_rentals = session.scalar(
                select(RentalRow.id).where(RentalRow.listing_id == listing_id).limit(1)
            )
            if has_rentals is not None:
                raise ListingHasRentalHistoryError(listing_id)
            session.delete(row)
            session.commit()

    def count_active_rentals(self, listing_id: int) -> int:
        with self._session_factory() as session:
            stmt = select(func.count(RentalRow.id)).where(
                RentalRow.listing_id == listing_id,
                RentalRow.status == RentalStatus.ACTIVE.value,
            )
            return session.scalar(stmt) or 0

    def active_rental_counts(self) -> Counter[int]:
        """Active rental count per listing id."""
        with self._session_factory() as session:
            stmt = (
                select(RentalRow.listing_id, func.count(RentalRow.id))
                .where(RentalRow.status == RentalStatus.ACTIVE.value)
                .group_by(RentalRow.listing_id)
            )
            return Counter({listing_id: count for listing_id, count in session.execute(stmt)})

    # --- Rentals ---

    def create_rental(self, rental: Rental) -> Rental:
        """Insert a rental; the partial unique index rejects a second active one per label."""
        with self._session_factory() as session:
            row = RentalRow(
                listing_id=rental.listing_id,
                renter_id=rental.renter_id,
                subdomain=rental.subdomain,
                full_domain=rental.full_domain,
                record_type=rental.record_type.value,
                record_value=rental.record_value,
                period_start=_dt_str(rental.period_start),
                period_end=_dt_str(rental.period_end),
                subscription_ref=rental.subscription_ref,
                status=rental.status.value,
            )
            session.add(row)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                if _is_unique_violation(exc):
                    raise SubdomainTakenError(rental.listing_id, rental.subdomain) from None
                raise
            return self._row_to_rental(row)

    def get_rental(self, rental_id: int) -> Rental | None:
        with self._session_factory() as session:
            row = session.get(RentalRow, rental_id)
            return self._row_to_rental(row) if row else None

    def get_rental_by_subscription(self, subscription_ref: str) -> Rental | None:
        with self._session_factory() as session:
            stmt = (
                select(RentalRow)
                .where(RentalRow.subscription_ref == subscription_ref)
                .order_by(RentalRow.id.desc())
            )
            row = session.scalars(stmt).first()
            return self._row_to_rental(row) if row else None

    def get_active_rental(self, listing_id: int, subdomain: str) -> Rental | None:
        with self._session_factory() as session:
            stmt = select(RentalRow).where(
                RentalRow.listing_id == listing_id,
                RentalRow.subdomain == subdomain.lower(),
                RentalRow.status == RentalStatus.ACTIVE.value,
            )
            row = session.scalars(stmt).first()
            return self._row_to_rental(row) if row else None

    def list_rentals(
        self,
        renter_id: int | None = None,
        listing_id: int | None = None,
        status: RentalStatus | None = None,
    ) -> list[Rental]:
        with self._session_factory() as session:
            stmt = select(RentalRow).order_by(RentalRow.created_at.desc(), RentalRow.id.desc())
            if renter_id is not None:
                stmt = stmt.where(RentalRow.renter_id == renter_id)
            if listing_id is not None:
                stmt = stmt.where(RentalRow.listing_id == listing_id)
            if status:
                stmt = stmt.where(RentalRow.status == status.value)
            return [self._row_to_rental(r) for r in session.scalars(stmt).all()]

    def set_rental_status(
        self,
        rental_id: int,
        status: RentalStatus,
        *,
        expected: RentalStatus = RentalStatus.ACTIVE,
    ) -> bool:
        """Conditional status transition. Returns False if the rental was not in *expected*."""
        with self._session_factory() as session:
            result = session.execute(
                update(RentalRow)
                .where(RentalRow.id == rental_id, RentalRow.status == expected.value)
                .values(status=status.value, updated_at=_utcnow_str())
            )
            session.commit()
            return result.rowcount == 1

    def update_rental_record(
        self, rental_id: int, record_type: RecordType, record_value: str
    ) -> Rental:
        with self._session_factory() as session:
            row = session.get(RentalRow, rental_id)
            if row is None:
                raise RentalNotFoundError(rental_id)
            row.record_type = record_type.value
            row.record_value = record_value
            row.updated_at = _utcnow_str()
            session.commit()
            return self._row_to_rental(row)

    # --- Transactions ---

    def create_transaction(self, transaction: Transaction) -> Transaction:
        with self._session_factory() as session:
            row = TransactionRow(
                rental_id=transaction.rental_id,
                amount=str(transaction.amount),
                payment_ref=transaction.payment_ref,
                status=transaction.status.value,
            )
            session.add(row)
            session.commit()
            return self._row_to_transaction(row)

    def get_transaction_by_payment_ref(self, payment_ref: str) -> Transaction | None:
        with self._session_factory() as session:
            stmt = select(TransactionRow).where(TransactionRow.payment_ref == payment_ref)
            row = session.scalars(stmt).first()
            return self._row_to_transaction(row) if row else None

    def set_transaction_status(self, transaction_id: int, status: TransactionStatus) -> None:
        with self._session_factory() as session:
            row = session.get(TransactionRow, transaction_id)
            if row is None:
                return
            row.status = status.value
            row.updated_at = _utcnow_str()
            session.commit()

    def list_transactions(self, rental_id: int) -> list[Transaction]:
        with self._session_factory() as session:
            stmt = (
                select(TransactionRow)
                .where(TransactionRow.rental_id == rental_id)
                .order_by(TransactionRow.id)
            )
            return [self._row_to_transaction(r) for r in session.scalars(stmt).all()]

    # --- Helpers ---

    @staticmethod
    def _parse_dt(value: str) -> datetime:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))

    @staticmethod
    def _row_to_user(row: UserRow) -> User:
        return User(
            id=row.id,
            email=row.email,
            billing_customer_ref=row.billing_customer_ref,
            created_at=Database._parse_dt(row.created_at),
        )

    @staticmethod
    def _row_to_listing(row: ListingRow) -> Listing:
        return Listing(
            id=row.id,
            owner_id=row.owner_id,
            domain_name=row.domain_name,
            registrar=Registrar(row.registrar),
            credentials_encrypted=row.credentials_encrypted,
            allowed_record_types=[RecordType(t) for t in json.loads(row.allowed_record_types)],
            max_subdomains=row.max_subdomains,
            verification_token=row.verification_token,
            is_verified=bool(row.is_verified),
            status=ListingStatus(row.status),
            price=Decimal(row.price),
            pricing_period=PricingPeriod(row.pricing_period),
            created_at=Database._parse_dt(row.created_at),
            updated_at=Database._parse_dt(row.updated_at),
        )

    @staticmethod
    def _row_to_rental(row: RentalRow) -> Rental:
        return Rental(
            id=row.id,
            listing_id=row.listing_id,
            renter_id=row.renter_id,
            subdomain=row.subdomain,
            full_domain=row.full_domain,
            record_type=RecordType(row.record_type),
            record_value=row.record_value,
            period_start=Database._parse_dt(row.period_start),
            period_end=Database._parse_dt(row.period_end),
            subscription_ref=row.subscription_ref,
            status=RentalStatus(row.status),
            created_at=Database._parse_dt(row.created_at),
            updated_at=Database._parse_dt(row.updated_at),
        )

    @staticmethod
    def _row_to_transaction(row: TransactionRow) -> Transaction:
        return Transaction(
            id=row.id,
            rental_id=row.rental_id,
            amount=Decimal(row.amount),
            payment_ref=row.payment_ref,
            status=TransactionStatus(row.status),
            created_at=Database._parse_dt(row.created_at),
            updated_at=Database._parse_dt(row.updated_at),
        )


def _utcnow_str() -> str:
    return datetime.now(UTC).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def _dt_str(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%S.%fZ")
