"""Billing collaborator: Stripe subscriptions and signed lifecycle events.

``StripeBilling`` owns one ``stripe.StripeClient``; no process-wide API key
is set. Webhook payloads are trusted only after the ``Stripe-Signature``
header checks out, and are then mapped onto the small typed event set the
lifecycle orchestrator understands.
"""

from __future__ import annotations

import json
from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, ClassVar

import stripe
import structlog
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from sublease.errors import BillingError, WebhookSignatureError
from sublease.models.listing import RecordType

logger = structlog.get_logger()

CENTS = Decimal("100")


class CheckoutSession(BaseModel):
    session_id: str
    url: str | None = None


class SubscriptionInfo(BaseModel):
    subscription_ref: str
    period_start: datetime
    period_end: datetime
    unit_amount: Decimal | None = None


class PaymentIntentInfo(BaseModel):
    payment_ref: str
    amount: Decimal


class CheckoutMetadata(BaseModel):
    """Rental request carried through checkout as string metadata."""

    model_config = ConfigDict(frozen=True)

    listing_id: int
    renter_id: int
    subdomain: str
    full_domain: str
    record_type: RecordType
    record_value: str

    @field_validator("subdomain", "full_domain")
    @classmethod
    def _lower_dns_name(cls, value: str) -> str:
        return value.lower()

    def as_metadata(self) -> dict[str, str]:
        return {k: str(v) for k, v in self.model_dump(mode="json").items()}


class _Event(BaseModel):
    model_config = ConfigDict(frozen=True)

    event_type: ClassVar[str]
    event_id: str = ""


class CheckoutCompleted(_Event):
    event_type: ClassVar[str] = "checkout_completed"

    session_id: str
    subscription_ref: str | None = None
    payment_ref: str | None = None
    invoice_ref: str | None = None
    metadata: CheckoutMetadata | None = None


class SubscriptionDeleted(_Event):
    event_type: ClassVar[str] = "subscription_deleted"

    subscription_ref: str


class PaymentSucceeded(_Event):
    event_type: ClassVar[str] = "payment_succeeded"

    payment_ref: str


class PaymentFailed(_Event):
    event_type: ClassVar[str] = "payment_failed"

    payment_ref: str


BillingEvent = CheckoutCompleted | SubscriptionDeleted | PaymentSucceeded | PaymentFailed


def to_minor_units(amount: Decimal) -> int:
    """12.50 -> 1250"""
    return int((amount * CENTS).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_minor_units(amount: int | None) -> Decimal:
    return Decimal(amount or 0) / CENTS


def _field(obj: Any, key: str) -> Any:
    """Read *key* from a StripeObject or plain dict, None when absent."""
    if obj is None:
        return None
    try:
        return obj[key]
    except (KeyError, TypeError):
        return None


def _timestamp(value: Any) -> datetime | None:
    if value is None:
        return None
    return datetime.fromtimestamp(int(value), tz=UTC)


def map_event(event: dict[str, Any]) -> BillingEvent | None:
    """Translate a verified Stripe event body into a typed event, or None if unhandled."""
    event_type = event.get("type", "")
    event_id = event.get("id", "")
    obj = (event.get("data") or {}).get("object") or {}

    if event_type == "checkout.session.completed":
        metadata = None
        if obj.get("metadata"):
            try:
                metadata = CheckoutMetadata.model_validate(obj["metadata"])
            except ValidationError as exc:
                logger.warning(
                    "Checkout metadata unusable",
                    session_id=obj.get("id"),
                    errors=exc.error_count(),
                )
        return CheckoutCompleted(
            event_id=event_id,
            session_id=obj.get("id", ""),
            subscription_ref=obj.get("subscription"),
            payment_ref=obj.get("payment_intent"),
            invoice_ref=obj.get("invoice"),
            metadata=metadata,
        )
    if event_type == "customer.subscription.deleted":
        return SubscriptionDeleted(event_id=event_id, subscription_ref=obj.get("id", ""))
    if event_type == "payment_intent.succeeded":
        return PaymentSucceeded(event_id=event_id, payment_ref=obj.get("id", ""))
    if event_type == "payment_intent.payment_failed":
        return PaymentFailed(event_id=event_id, payment_ref=obj.get("id", ""))

    logger.info("Unhandled billing event", event_type=event_type, event_id=event_id)
    return None


class StripeBilling:
    """BillingPort backed by the Stripe API."""

    def __init__(
        self,
        secret_key: str,
        webhook_secret: str,
        *,
        currency: str = "usd",
        app_url: str = "http://localhost:3000",
        tolerance: int = 300,
        client: stripe.StripeClient | None = None,
    ) -> None:
        self.webhook_secret = webhook_secret
        self.currency = currency
        self.app_url = app_url.rstrip("/")
        self.tolerance = tolerance
        self._client = client or stripe.StripeClient(secret_key)

    def create_customer(self, email: str, user_id: int) -> str:
        try:
            customer = self._client.customers.create(
                params={"email": email, "metadata": {"user_id": str(user_id)}}
            )
        except stripe.StripeError as exc:
            raise BillingError(f"Failed to create billing customer: {exc}") from exc
        logger.info("Billing customer created", user_id=user_id)
        return customer.id

    def create_checkout_session(
        self,
        customer_ref: str,
        amount: Decimal,
        interval: str,
        product_name: str,
        metadata: dict[str, str],
        cancel_path: str = "",
    ) -> CheckoutSession:
        params: dict[str, Any] = {
            "customer": customer_ref,
            "mode": "subscription",
            "payment_method_types": ["card"],
            "line_items": [
                {
                    "price_data": {
                        "currency": self.currency,
                        "product_data": {
                            "name": product_name,
                            "description": f"{interval}ly subdomain rental",
                        },
                        "unit_amount": to_minor_units(amount),
                        "recurring": {"interval": interval},
                    },
                    "quantity": 1,
                }
            ],
            "success_url": f"{self.app_url}/rentals/success?session_id={{CHECKOUT_SESSION_ID}}",
            "cancel_url": f"{self.app_url}{cancel_path}",
            "metadata": metadata,
        }
        try:
            session = self._client.checkout.sessions.create(params=params)
        except stripe.StripeError as exc:
            raise BillingError(f"Failed to create checkout session: {exc}") from exc
        return CheckoutSession(session_id=session.id, url=session.url)

    def cancel_subscription(self, subscription_ref: str) -> None:
        try:
            self._client.subscriptions.cancel(subscription_ref)
        except stripe.StripeError as exc:
            raise BillingError(f"Failed to cancel subscription: {exc}") from exc

    def retrieve_subscription(self, subscription_ref: str) -> SubscriptionInfo:
        try:
            sub = self._client.subscriptions.retrieve(subscription_ref)
        except stripe.StripeError as exc:
            raise BillingError(f"Failed to retrieve subscription: {exc}") from exc

        items = _field(_field(sub, "items"), "data") or []
        first = items[0] if items else None
        # Newer API versions moved the billing period onto subscription items
        start = _field(sub, "current_period_start") or _field(first, "current_period_start")
        end = _field(sub, "current_period_end") or _field(first, "current_period_end")
        unit_amount = _field(_field(first, "price"), "unit_amount")

        now = datetime.now(UTC)
        return SubscriptionInfo(
            subscription_ref=sub.id,
            period_start=_timestamp(start) or now,
            period_end=_timestamp(end) or now,
            unit_amount=from_minor_units(unit_amount) if unit_amount is not None else None,
        )

    def retrieve_payment_intent(self, payment_ref: str) -> PaymentIntentInfo:
        try:
            intent = self._client.payment_intents.retrieve(payment_ref)
        except stripe.StripeError as exc:
            raise BillingError(f"Failed to retrieve payment intent: {exc}") from exc
        return PaymentIntentInfo(payment_ref=intent.id, amount=from_minor_units(intent.amount))

    def parse_event(self, payload: bytes, signature: str) -> BillingEvent | None:
        """Verify the signature header, then map the event body.

        Raises WebhookSignatureError for a missing or invalid signature.
        """
        if not signature:
            raise WebhookSignatureError("Missing stripe-signature header")
        body = payload.decode("utf-8")
        try:
            stripe.WebhookSignature.verify_header(
                body, signature, self.webhook_secret, self.tolerance
            )
        except stripe.SignatureVerificationError as exc:
            raise WebhookSignatureError(f"Webhook signature verification failed: {exc}") from exc

        try:
            event = json.loads(body)
        except json.JSONDecodeError as exc:
            raise ValueError("Webhook payload is not valid JSON") from exc
        return map_event(event)
