"""Tests for the billing webhook endpoint."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

import pytest

if TYPE_CHECKING:
    from fastapi.testclient import TestClient

WEBHOOK_URL = "/api/v1/webhooks/stripe"


@pytest.fixture()
def post_event(client: TestClient):
    def _post(body: dict[str, object], signature: str = "valid-signature"):
        return client.post(
            WEBHOOK_URL,
            content=json.dumps(body),
            headers={"Stripe-Signature": signature, "Content-Type": "application/json"},
        )

    return _post


def _checkout_body(listing_id: int, renter_id: int, subdomain: str = "blog") -> dict[str, object]:
    return {
        "id": "evt_checkout",
        "type": "checkout.session.completed",
        "data": {
            "object": {
                "id": "cs_1",
                "subscription": "sub_1",
                "payment_intent": "pi_1",
                "metadata": {
                    "listing_id": str(listing_id),
                    "renter_id": str(renter_id),
                    "subdomain": subdomain,
                    "full_domain": f"{subdomain}.example.com",
                    "record_type": "A",
                    "record_value": "192.0.2.1",
                },
            }
        },
    }


class TestSignature:
    def test_bad_signature_rejected(self, post_event, db, make_listing, renter, registrar):
        listing = make_listing()

        resp = post_event(_checkout_body(listing.id, renter.id), signature="t=1,v1=forged")

        assert resp.status_code == 400
        assert resp.json()["error"] == "bad_request"
        assert db.list_rentals() == []
        assert registrar.calls == []

    def test_unhandled_event_ignored(self, post_event):
        resp = post_event({"id": "evt_1", "type": "invoice.created", "data": {"object": {}}})

        assert resp.status_code == 200
        assert resp.json() == {"received": True, "action": "ignored"}


class TestCheckoutFlow:
    def test_checkout_creates_rental_once(
        self, post_event, db, billing, subscription, make_listing, renter, registrar
    ):
        billing.subscriptions["sub_1"] = subscription
        listing = make_listing()
        body = _checkout_body(listing.id, renter.id)

        first = post_event(body)
        second = post_event(body)

        assert first.json()["action"] == "created"
        assert second.json()["action"] == "duplicate"
        [rental] = db.list_rentals(listing_id=listing.id)
        assert rental.subscription_ref == "sub_1"
        assert rental.period_end == subscription.period_end
        assert registrar.operations().count("create") == 1

    def test_subscription_deleted_cancels(
        self, post_event, db, billing, subscription, make_listing, renter, registrar
    ):
        billing.subscriptions["sub_1"] = subscription
        listing = make_listing()
        post_event(_checkout_body(listing.id, renter.id))

        resp = post_event(
            {
                "id": "evt_deleted",
                "type": "customer.subscription.deleted",
                "data": {"object": {"id": "sub_1"}},
            }
        )

        assert resp.json()["action"] == "cancelled"
        assert db.get_rental_by_subscription("sub_1").status == "cancelled"

    def test_unknown_subscription_ignored(self, post_event):
        resp = post_event(
            {
                "id": "evt_deleted",
                "type": "customer.subscription.deleted",
                "data": {"object": {"id": "sub_unknown"}},
            }
        )

        assert resp.status_code == 200
        assert resp.json()["action"] == "ignored"
