"""Port interfaces (Protocols) for registrar and billing collaborators."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from decimal import Decimal

    from sublease.billing import (
        BillingEvent,
        CheckoutSession,
        PaymentIntentInfo,
        SubscriptionInfo,
    )
    from sublease.models.dns import DnsResult, RecordChanges
    from sublease.models.listing import RecordType


@runtime_checkable
class RegistrarClient(Protocol):
    """Uniform five-operation contract over a registrar's DNS API.

    Implementations never raise for provider or network failures; they
    return ``DnsResult(success=False, error=...)`` instead.
    """

    registrar: str

    def create_record(
        self,
        record_type: RecordType,
        name: str,
        content: str,
        ttl: int | None = None,
        priority: int | None = None,
    ) -> DnsResult: ...

    def delete_record(self, record_id: str) -> DnsResult: ...

    def update_record(self, record_id: str, changes: RecordChanges) -> DnsResult: ...

    def list_records(self, record_type: RecordType | None = None) -> DnsResult: ...

    def verify_ownership(self, token: str) -> DnsResult: ...


@runtime_checkable
class BillingPort(Protocol):
    """Commands accepted by, and events emitted from, the payment provider."""

    def create_customer(self, email: str, user_id: int) -> str: ...

    def create_checkout_session(
        self,
        customer_ref: str,
        amount: Decimal,
        interval: str,
        product_name: str,
        metadata: dict[str, str],
        cancel_path: str = "",
    ) -> CheckoutSession: ...

    def cancel_subscription(self, subscription_ref: str) -> None: ...

    def retrieve_subscription(self, subscription_ref: str) -> SubscriptionInfo: ...

    def retrieve_payment_intent(self, payment_ref: str) -> PaymentIntentInfo: ...

    def parse_event(self, payload: bytes, signature: str) -> BillingEvent | None: ...
