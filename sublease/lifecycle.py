"""Rental lifecycle orchestration driven by billing events.

State machine per rental::

    (none) --checkout completed--> active --subscription deleted | payment failed--> cancelled

The billing side is authoritative. DNS provisioning and teardown are
attempted, and their failures are logged for manual reconciliation, but they
never block the rental's state transition. Every handler is safe to run
again for a re-delivered event.
"""

from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal
from enum import StrEnum
from typing import TYPE_CHECKING

import structlog
from pydantic import BaseModel

from sublease.billing import (
    CheckoutCompleted,
    PaymentFailed,
    PaymentSucceeded,
    SubscriptionDeleted,
)
from sublease.errors import BillingError, CredentialTamperError, SubdomainTakenError
from sublease.metrics import lifecycle_events_total
from sublease.models.rental import Rental, RentalStatus, Transaction, TransactionStatus
from sublease.registrars.base import bare_name, matches_subdomain
from sublease.registrars.factory import create_client

if TYPE_CHECKING:
    from sublease.billing import BillingEvent, CheckoutMetadata
    from sublease.crypto import CredentialCodec
    from sublease.db import Database
    from sublease.models.listing import Listing
    from sublease.protocols import BillingPort, RegistrarClient

logger = structlog.get_logger()


class LifecycleAction(StrEnum):
    CREATED = "created"
    CANCELLED = "cancelled"
    UPDATED = "updated"
    REJECTED = "rejected"
    DUPLICATE = "duplicate"
    IGNORED = "ignored"


class LifecycleOutcome(BaseModel):
    action: LifecycleAction
    rental_id: int | None = None
    reason: str | None = None
    # None when no DNS call was made
    dns_success: bool | None = None


class RentalLifecycle:
    """Applies billing events to rentals and their DNS records."""

    def __init__(
        self,
        db: Database,
        codec: CredentialCodec,
        billing: BillingPort,
        *,
        dns_ttl: int = 3600,
        timeout: float = 15.0,
    ) -> None:
        self.db = db
        self.codec = codec
        self.billing = billing
        self.dns_ttl = dns_ttl
        self.timeout = timeout

    def handle(self, event: BillingEvent) -> LifecycleOutcome:
        if isinstance(event, CheckoutCompleted):
            outcome = self.checkout_completed(event)
        elif isinstance(event, SubscriptionDeleted):
            outcome = self.subscription_deleted(event.subscription_ref)
        elif isinstance(event, PaymentFailed):
            outcome = self.payment_failed(event.payment_ref)
        elif isinstance(event, PaymentSucceeded):
            outcome = self.payment_succeeded(event.payment_ref)
        else:
            outcome = LifecycleOutcome(action=LifecycleAction.IGNORED)

        lifecycle_events_total.labels(
            event_type=event.event_type, outcome=outcome.action.value
        ).inc()
        logger.info(
            "Billing event handled",
            event_type=event.event_type,
            event_id=event.event_id,
            action=outcome.action.value,
            rental_id=outcome.rental_id,
            reason=outcome.reason,
        )
        return outcome

    # --- Checkout completed ---

    def checkout_completed(self, event: CheckoutCompleted) -> LifecycleOutcome:
        meta = event.metadata
        if meta is None:
            return self._reject("Checkout session has no rental metadata", session=event.session_id)

        if event.subscription_ref:
            existing = self.db.get_rental_by_subscription(event.subscription_ref)
            if existing is not None:
                return LifecycleOutcome(
                    action=LifecycleAction.DUPLICATE,
                    rental_id=existing.id,
                    reason="Rental already recorded for this subscription",
                )

        listing = self.db.get_listing(meta.listing_id)
        if listing is None:
            return self._reject(f"Listing {meta.listing_id} not found", session=event.session_id)
        if not listing.is_verified:
            return self._reject(
                f"Cannot provision DNS for unverified listing {listing.id}",
                session=event.session_id,
            )
        if not listing.allows(meta.record_type):
            return self._reject(
                f"DNS record type {meta.record_type} not allowed for listing {listing.id}",
                session=event.session_id,
            )
        if self.db.get_active_rental(listing.id, meta.subdomain) is not None:
            return self._reject(
                f"Subdomain '{meta.subdomain}' already has an active rental",
                session=event.session_id,
            )

        period_start, period_end, amount = self._billing_period(event)
        dns_success = self._provision(listing, meta)

        try:
            rental = self.db.create_rental(
                Rental(
                    listing_id=listing.id,
                    renter_id=meta.renter_id,
                    subdomain=meta.subdomain,
                    full_domain=meta.full_domain,
                    record_type=meta.record_type,
                    record_value=meta.record_value,
                    period_start=period_start,
                    period_end=period_end,
                    subscription_ref=event.subscription_ref,
                    status=RentalStatus.ACTIVE,
                )
            )
        except SubdomainTakenError as exc:
            # DNS may already point at this renter's value; leave it for an operator
            logger.error(
                "Rental lost race after DNS provisioning; reconcile manually",
                listing_id=listing.id,
                subdomain=meta.subdomain,
                subscription_ref=event.subscription_ref,
                dns_success=dns_success,
            )
            return LifecycleOutcome(
                action=LifecycleAction.REJECTED, reason=str(exc), dns_success=dns_success
            )

        payment_ref = event.payment_ref or event.invoice_ref or event.session_id
        self.db.create_transaction(
            Transaction(
                rental_id=rental.id,
                amount=amount,
                payment_ref=payment_ref,
                status=TransactionStatus.COMPLETED,
            )
        )
        logger.info(
            "Rental created",
            rental_id=rental.id,
            full_domain=rental.full_domain,
            dns_success=dns_success,
        )
        return LifecycleOutcome(
            action=LifecycleAction.CREATED, rental_id=rental.id, dns_success=dns_success
        )

    def _billing_period(self, event: CheckoutCompleted) -> tuple[datetime, datetime, Decimal]:
        """Period bounds and charged amount, re-derived from the billing provider."""
        now = datetime.now(UTC)
        start, end, amount = now, now, Decimal("0")

        try:
            if event.subscription_ref:
                sub = self.billing.retrieve_subscription(event.subscription_ref)
                start, end = sub.period_start, sub.period_end
                if sub.unit_amount is not None:
                    amount = sub.unit_amount
            if amount == 0 and event.payment_ref:
                amount = self.billing.retrieve_payment_intent(event.payment_ref).amount
        except BillingError as exc:
            logger.warning(
                "Billing period lookup failed; using defaults",
                session_id=event.session_id,
                error=str(exc),
            )
        return start, end, amount

    def _provision(self, listing: Listing, meta: CheckoutMetadata) -> bool:
        client = self.client_for(listing)
        if client is None:
            return False

        # At-least-once delivery: reuse a record an earlier attempt already made
        listed = client.list_records(meta.record_type)
        if listed.success:
            target = bare_name(meta.full_domain)
            for record in listed.records:
                if bare_name(record.name) == target and record.content == meta.record_value:
                    logger.info(
                        "DNS record already present",
                        listing_id=listing.id,
                        full_domain=meta.full_domain,
                        record_id=record.id,
                    )
                    return True

        created = client.create_record(
            meta.record_type, meta.full_domain, meta.record_value, ttl=self.dns_ttl
        )
        if not created.success:
            logger.error(
                "DNS record creation failed; rental proceeds without it",
                listing_id=listing.id,
                full_domain=meta.full_domain,
                error=created.error,
            )
            return False

        logger.info(
            "DNS record created",
            listing_id=listing.id,
            full_domain=meta.full_domain,
            record_id=created.record_id,
        )
        return True

    # --- Subscription deleted ---

    def subscription_deleted(self, subscription_ref: str) -> LifecycleOutcome:
        rental = self.db.get_rental_by_subscription(subscription_ref)
        if rental is None:
            return LifecycleOutcome(
                action=LifecycleAction.IGNORED,
                reason=f"No rental found for subscription {subscription_ref}",
            )
        return self.cancel(rental)

    def cancel(self, rental: Rental) -> LifecycleOutcome:
        """Tear down DNS (best effort) and move an active rental to cancelled."""
        if rental.status.is_terminal:
            return LifecycleOutcome(
                action=LifecycleAction.DUPLICATE,
                rental_id=rental.id,
                reason=f"Rental already {rental.status.value}",
            )

        dns_success = None
        listing = self.db.get_listing(rental.listing_id)
        if listing is not None and listing.is_verified:
            dns_success = self._teardown(listing, rental)

        if not self.db.set_rental_status(rental.id, RentalStatus.CANCELLED):
            # A concurrent delivery got there first
            return LifecycleOutcome(
                action=LifecycleAction.DUPLICATE, rental_id=rental.id, dns_success=dns_success
            )
        return LifecycleOutcome(
            action=LifecycleAction.CANCELLED, rental_id=rental.id, dns_success=dns_success
        )

    def _teardown(self, listing: Listing, rental: Rental) -> bool:
        client = self.client_for(listing)
        if client is None:
            return False

        listed = client.list_records(rental.record_type)
        if not listed.success:
            logger.error(
                "DNS lookup for teardown failed",
                rental_id=rental.id,
                full_domain=rental.full_domain,
                error=listed.error,
            )
            return False

        match = next(
            (
                r
                for r in listed.records
                if matches_subdomain(r.name, rental.full_domain, rental.subdomain)
            ),
            None,
        )
        if match is None:
            logger.warning(
                "DNS record not found for deletion",
                rental_id=rental.id,
                full_domain=rental.full_domain,
            )
            return False

        deleted = client.delete_record(match.id)
        if not deleted.success:
            logger.error(
                "DNS record deletion failed; cancelling rental anyway",
                rental_id=rental.id,
                full_domain=rental.full_domain,
                error=deleted.error,
            )
            return False

        logger.info("DNS record deleted", rental_id=rental.id, full_domain=rental.full_domain)
        return True

    # --- Payments ---

    def payment_failed(self, payment_ref: str) -> LifecycleOutcome:
        transaction = self.db.get_transaction_by_payment_ref(payment_ref)
        if transaction is None:
            return LifecycleOutcome(
                action=LifecycleAction.IGNORED,
                reason=f"No transaction found for payment {payment_ref}",
            )

        self.db.set_transaction_status(transaction.id, TransactionStatus.FAILED)
        # Status-level cascade only; DNS is left for the subscription-deleted path
        if self.db.set_rental_status(transaction.rental_id, RentalStatus.CANCELLED):
            return LifecycleOutcome(
                action=LifecycleAction.CANCELLED, rental_id=transaction.rental_id
            )
        return LifecycleOutcome(action=LifecycleAction.UPDATED, rental_id=transaction.rental_id)

    def payment_succeeded(self, payment_ref: str) -> LifecycleOutcome:
        transaction = self.db.get_transaction_by_payment_ref(payment_ref)
        if transaction is None:
            return LifecycleOutcome(
                action=LifecycleAction.IGNORED,
                reason=f"No transaction found for payment {payment_ref}",
            )
        if transaction.status is TransactionStatus.COMPLETED:
            return LifecycleOutcome(
                action=LifecycleAction.DUPLICATE, rental_id=transaction.rental_id
            )

        self.db.set_transaction_status(transaction.id, TransactionStatus.COMPLETED)
        return LifecycleOutcome(action=LifecycleAction.UPDATED, rental_id=transaction.rental_id)

    # --- Helpers ---

    def client_for(self, listing: Listing) -> RegistrarClient | None:
        try:
            return create_client(
                listing.registrar,
                listing.credentials_encrypted,
                self.codec,
                domain_name=listing.domain_name,
                timeout=self.timeout,
            )
        except (ValueError, CredentialTamperError) as exc:
            logger.error(
                "Registrar client unavailable; DNS step skipped",
                listing_id=listing.id,
                registrar=listing.registrar.value,
                error=str(exc),
            )
            return None

    def _reject(self, reason: str, **context: object) -> LifecycleOutcome:
        logger.error("Billing event rejected", reason=reason, **context)
        return LifecycleOutcome(action=LifecycleAction.REJECTED, reason=reason)
