"""Renter-facing rental operations: checkout, cancellation, record edits."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
from pydantic import BaseModel

from sublease.availability import AvailabilityResolver, is_valid_subdomain
from sublease.billing import CheckoutMetadata
from sublease.errors import (
    BillingError,
    ListingNotFoundError,
    ListingNotVerifiedError,
    RentalNotActiveError,
    RentalNotFoundError,
    RentalUnavailableError,
    UserNotFoundError,
)
from sublease.models.dns import RecordChanges
from sublease.models.listing import RecordType
from sublease.models.rental import Rental, Transaction
from sublease.registrars.base import matches_subdomain

if TYPE_CHECKING:
    from sublease.billing import CheckoutSession
    from sublease.lifecycle import LifecycleOutcome, RentalLifecycle
    from sublease.models.listing import Listing
    from sublease.protocols import BillingPort

logger = structlog.get_logger()


class RentalWithTransactions(BaseModel):
    rental: Rental
    domain_name: str | None = None
    transactions: list[Transaction]


class RentalService:
    def __init__(
        self,
        lifecycle: RentalLifecycle,
        availability: AvailabilityResolver,
        billing: BillingPort,
    ) -> None:
        self.lifecycle = lifecycle
        self.availability = availability
        self.billing = billing
        self.db = lifecycle.db

    def initiate_rental(
        self,
        listing_id: int,
        renter_id: int,
        subdomain: str,
        record_type: str | RecordType,
        record_value: str,
    ) -> CheckoutSession:
        """Validate the request and open a subscription checkout for it.

        No rental exists until the billing provider confirms checkout.
        """
        if not is_valid_subdomain(subdomain):
            raise ValueError(
                "Invalid subdomain format. Use only alphanumeric characters and hyphens."
            )
        subdomain = subdomain.lower()
        if not record_value.strip():
            raise ValueError("record_value is required")
        kind = RecordType(record_type)

        listing = self.db.get_listing(listing_id)
        if listing is None:
            raise ListingNotFoundError(listing_id)
        if not listing.allows(kind):
            raise ValueError(f"DNS record type {kind} is not allowed for this listing")
        if not listing.is_verified:
            raise ListingNotVerifiedError(listing_id)

        available = self.availability.check(listing_id, subdomain)
        if not available.available:
            raise RentalUnavailableError(available.reason or "Subdomain is not available")

        renter = self.db.get_user(renter_id)
        if renter is None:
            raise UserNotFoundError(renter_id)

        customer_ref = renter.billing_customer_ref
        if not customer_ref:
            customer_ref = self.billing.create_customer(renter.email, renter.id)
            self.db.set_billing_customer_ref(renter.id, customer_ref)

        full_domain = listing.full_domain(subdomain)
        metadata = CheckoutMetadata(
            listing_id=listing.id,
            renter_id=renter.id,
            subdomain=subdomain,
            full_domain=full_domain,
            record_type=kind,
            record_value=record_value,
        )
        session = self.billing.create_checkout_session(
            customer_ref,
            listing.price,
            listing.pricing_period.interval,
            f"Subdomain: {full_domain}",
            metadata.as_metadata(),
            cancel_path=f"/listings/{listing.id}",
        )
        logger.info(
            "Checkout session created",
            listing_id=listing.id,
            renter_id=renter.id,
            full_domain=full_domain,
            session_id=session.session_id,
        )
        return session

    def get_rental(self, rental_id: int) -> Rental:
        rental = self.db.get_rental(rental_id)
        if rental is None:
            raise RentalNotFoundError(rental_id)
        return rental

    def cancel_rental(self, rental_id: int) -> LifecycleOutcome:
        """Cancel billing, then run the subscription-deleted transition immediately.

        The provider's later deletion event for the same subscription is a no-op.
        """
        rental = self.get_rental(rental_id)
        if rental.subscription_ref and not rental.status.is_terminal:
            try:
                self.billing.cancel_subscription(rental.subscription_ref)
            except BillingError as exc:
                logger.error(
                    "Subscription cancellation failed; cancelling rental anyway",
                    rental_id=rental_id,
                    error=str(exc),
                )
        return self.lifecycle.cancel(rental)

    def update_rental(
        self,
        rental_id: int,
        record_type: str | RecordType | None = None,
        record_value: str | None = None,
    ) -> Rental:
        rental = self.get_rental(rental_id)
        if rental.status.is_terminal:
            raise RentalNotActiveError(rental_id)

        kind = RecordType(record_type) if record_type is not None else rental.record_type
        value = record_value if record_value is not None else rental.record_value
        if not value.strip():
            raise ValueError("record_value must not be empty")

        listing = self.db.get_listing(rental.listing_id)
        if listing is None:
            raise ListingNotFoundError(rental.listing_id)
        if not listing.allows(kind):
            raise ValueError(f"DNS record type {kind} is not allowed for this listing")

        if listing.is_verified and (kind, value) != (rental.record_type, rental.record_value):
            self._update_live_record(listing, rental, kind, value)

        updated = self.db.update_rental_record(rental_id, kind, value)
        logger.info("Rental record updated", rental_id=rental_id, record_type=kind.value)
        return updated

    def _update_live_record(
        self, listing: Listing, rental: Rental, kind: RecordType, value: str
    ) -> None:
        client = self.lifecycle.client_for(listing)
        if client is None:
            return

        listed = client.list_records(rental.record_type)
        match = next(
            (
                r
                for r in listed.records
                if matches_subdomain(r.name, rental.full_domain, rental.subdomain)
            ),
            None,
        )
        if match is None:
            logger.error(
                "Live record not found for update; stored value changes only",
                rental_id=rental.id,
                full_domain=rental.full_domain,
                error=listed.error,
            )
            return

        changes = RecordChanges(
            type=kind if kind != rental.record_type else None,
            content=value,
        )
        result = client.update_record(match.id, changes)
        if not result.success:
            logger.error(
                "Live record update failed; stored value changes only",
                rental_id=rental.id,
                full_domain=rental.full_domain,
                error=result.error,
            )

    def list_rentals_for_renter(self, renter_id: int) -> list[RentalWithTransactions]:
        if self.db.get_user(renter_id) is None:
            raise UserNotFoundError(renter_id)

        domains: dict[int, str | None] = {}
        results = []
        for rental in self.db.list_rentals(renter_id=renter_id):
            if rental.listing_id not in domains:
                listing = self.db.get_listing(rental.listing_id)
                domains[rental.listing_id] = listing.domain_name if listing else None
            results.append(
                RentalWithTransactions(
                    rental=rental,
                    domain_name=domains[rental.listing_id],
                    transactions=self.db.list_transactions(rental.id),
                )
            )
        return results
