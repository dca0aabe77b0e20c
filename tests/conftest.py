"""Shared test fixtures."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any

import pytest

from sublease.billing import (
    CheckoutSession,
    PaymentIntentInfo,
    SubscriptionInfo,
    map_event,
)
from sublease.config import Settings
from sublease.crypto import CredentialCodec
from sublease.db import Database
from sublease.errors import BillingError, WebhookSignatureError
from sublease.models.dns import DnsRecord, DnsResult
from sublease.models.listing import Listing, PricingPeriod, RecordType, Registrar
from sublease.registrars.factory import seal_credentials

if TYPE_CHECKING:
    from collections.abc import Callable

    from sublease.models.rental import User

TEST_KEY = "0123456789abcdef0123456789abcdef-test-key"

CF_ZONE = "zone-123"
CF_CREDENTIALS = {"api_token": "cf-token", "zone_id": CF_ZONE}


class FakeBilling:
    """In-memory BillingPort that records every command."""

    def __init__(self) -> None:
        self.customers: list[tuple[str, int]] = []
        self.sessions: list[dict[str, Any]] = []
        self.cancelled: list[str] = []
        self.subscriptions: dict[str, SubscriptionInfo] = {}
        self.payment_intents: dict[str, PaymentIntentInfo] = {}
        self.fail_cancel = False

    def create_customer(self, email: str, user_id: int) -> str:
        self.customers.append((email, user_id))
        return f"cus_{user_id}"

    def create_checkout_session(
        self,
        customer_ref: str,
        amount: Decimal,
        interval: str,
        product_name: str,
        metadata: dict[str, str],
        cancel_path: str = "",
    ) -> CheckoutSession:
        self.sessions.append(
            {
                "customer_ref": customer_ref,
                "amount": amount,
                "interval": interval,
                "product_name": product_name,
                "metadata": metadata,
                "cancel_path": cancel_path,
            }
        )
        n = len(self.sessions)
        return CheckoutSession(session_id=f"cs_{n}", url=f"https://checkout.test/cs_{n}")

    def cancel_subscription(self, subscription_ref: str) -> None:
        if self.fail_cancel:
            raise BillingError("No such subscription")
        self.cancelled.append(subscription_ref)

    def retrieve_subscription(self, subscription_ref: str) -> SubscriptionInfo:
        if subscription_ref not in self.subscriptions:
            raise BillingError(f"No such subscription: {subscription_ref}")
        return self.subscriptions[subscription_ref]

    def retrieve_payment_intent(self, payment_ref: str) -> PaymentIntentInfo:
        if payment_ref not in self.payment_intents:
            raise BillingError(f"No such payment_intent: {payment_ref}")
        return self.payment_intents[payment_ref]

    def parse_event(self, payload: bytes, signature: str):
        if signature != "valid-signature":
            raise WebhookSignatureError("Webhook signature verification failed")
        return map_event(json.loads(payload))


class FakeRegistrar:
    """RegistrarClient double with scripted results and a call log."""

    registrar = "fake"

    def __init__(self, records: list[DnsRecord] | None = None) -> None:
        self.records = list(records or [])
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self.create_result = DnsResult.ok(record_id="rec-new")
        self.delete_result: DnsResult | None = None
        self.update_result = DnsResult.ok()
        self.list_result: DnsResult | None = None
        self.verify_result = DnsResult.fail("Verification TXT record not found")

    def create_record(self, record_type, name, content, ttl=None, priority=None) -> DnsResult:
        self.calls.append(("create", (record_type, name, content, ttl)))
        return self.create_result

    def delete_record(self, record_id: str) -> DnsResult:
        self.calls.append(("delete", (record_id,)))
        return self.delete_result or DnsResult.ok(record_id=record_id)

    def update_record(self, record_id, changes) -> DnsResult:
        self.calls.append(("update", (record_id, changes)))
        return self.update_result

    def list_records(self, record_type=None) -> DnsResult:
        self.calls.append(("list", (record_type,)))
        if self.list_result is not None:
            return self.list_result
        records = [r for r in self.records if record_type is None or r.type == record_type]
        return DnsResult.ok(records=records)

    def verify_ownership(self, token: str) -> DnsResult:
        self.calls.append(("verify", (token,)))
        return self.verify_result

    def operations(self) -> list[str]:
        return [op for op, _ in self.calls]


@pytest.fixture()
def settings(tmp_path) -> Settings:
    return Settings(
        encryption_key=TEST_KEY,
        stripe_secret_key="sk_test_123",
        stripe_webhook_secret="whsec_test",
        data_dir=tmp_path / "data",
        log_level="DEBUG",
        log_format="console",
        _env_file=None,
    )


@pytest.fixture()
def db(tmp_path) -> Database:
    db = Database(tmp_path / "test.db")
    db.init_schema()
    yield db
    db.close()


@pytest.fixture()
def codec() -> CredentialCodec:
    return CredentialCodec(TEST_KEY)


@pytest.fixture()
def billing() -> FakeBilling:
    return FakeBilling()


@pytest.fixture()
def fake_registrar() -> FakeRegistrar:
    return FakeRegistrar()


@pytest.fixture()
def registrar(monkeypatch, fake_registrar: FakeRegistrar) -> FakeRegistrar:
    """Route every service's client construction to the fake registrar."""

    def _create_client(*args: Any, **kwargs: Any) -> FakeRegistrar:
        return fake_registrar

    for module in ("sublease.verification", "sublease.availability", "sublease.lifecycle"):
        monkeypatch.setattr(f"{module}.create_client", _create_client)
    return fake_registrar


@pytest.fixture()
def owner(db: Database) -> User:
    return db.create_user("owner@example.com")


@pytest.fixture()
def renter(db: Database) -> User:
    return db.create_user("renter@example.com")


@pytest.fixture()
def make_listing(db: Database, codec: CredentialCodec, owner: User) -> Callable[..., Listing]:
    """Insert a Cloudflare listing directly, bypassing the credential check."""

    def _make(
        domain_name: str = "example.com",
        *,
        verified: bool = True,
        allowed: list[RecordType] | None = None,
        max_subdomains: int = 5,
        price: str = "9.99",
    ) -> Listing:
        listing = Listing(
            owner_id=owner.id,
            domain_name=domain_name,
            registrar=Registrar.CLOUDFLARE,
            credentials_encrypted=seal_credentials(Registrar.CLOUDFLARE, CF_CREDENTIALS, codec),
            allowed_record_types=allowed or [RecordType.A, RecordType.CNAME],
            max_subdomains=max_subdomains,
            verification_token=None if verified else "a" * 64,
            is_verified=verified,
            price=Decimal(price),
            pricing_period=PricingPeriod.MONTHLY,
        )
        return db.create_listing(listing)

    return _make


@pytest.fixture()
def subscription() -> SubscriptionInfo:
    return SubscriptionInfo(
        subscription_ref="sub_1",
        period_start=datetime(2026, 1, 1, tzinfo=UTC),
        period_end=datetime(2026, 2, 1, tzinfo=UTC),
        unit_amount=Decimal("9.99"),
    )
