"""Stripe webhook: signature check, idempotency and event handling"""
import asyncio
import hashlib
import hmac
import json
import time

import pytest

from app.models import Organization, ProcessedEvent, Subscription, Transaction
from app.services import stripe_gateway

WEBHOOK_SECRET = "whsec_test_secret"


def signed_headers(payload: str, secret: str = WEBHOOK_SECRET) -> dict:
    timestamp = int(time.time())
    signature = hmac.new(secret.encode(), f"{timestamp}.{payload}".encode(), hashlib.sha256).hexdigest()
    return {"stripe-signature": f"t={timestamp},v1={signature}", "Content-Type": "application/json"}


def send_event(client, event_id: str, event_type: str, obj: dict):
    payload = json.dumps({
        "id": event_id,
        "object": "event",
        "type": event_type,
        "data": {"object": obj},
    })
    return client.post("/webhooks/stripe", content=payload, headers=signed_headers(payload))


def invoice(charge_id="ch_renewal_1", billing_reason="subscription_cycle", subscription="sub_123", amount=10000):
    return {
        "id": "in_renewal_1",
        "object": "invoice",
        "subscription": subscription,
        "charge": charge_id,
        "amount_paid": amount,
        "billing_reason": billing_reason,
        "customer": "cus_1",
    }


@pytest.fixture
def card_subscription(make_subscription):
    return make_subscription(
        payment_provider="stripe",
        stripe_subscription_id="sub_123",
        stripe_customer_id="cus_1",
        amount=10000,
    )


def test_missing_signature_is_400(client):
    response = client.post("/webhooks/stripe", content=b"{}")
    assert response.status_code == 400


def test_bad_signature_is_400(client):
    payload = json.dumps({"id": "evt_1", "type": "invoice.payment_succeeded", "data": {"object": {}}})
    response = client.post("/webhooks/stripe", content=payload, headers=signed_headers(payload, "whsec_wrong"))
    assert response.status_code == 400


def test_unknown_event_type_is_acknowledged(client, db):
    response = send_event(client, "evt_unknown", "customer.created", {"id": "cus_1"})
    assert response.status_code == 200
    assert response.json() == {"received": True}
    assert db.query(ProcessedEvent).count() == 1


def test_renewal_invoice_recorded_once(client, db, card_subscription):
    response = send_event(client, "evt_inv_1", "invoice.payment_succeeded", invoice())
    assert response.status_code == 200

    transaction = db.query(Transaction).one()
    assert transaction.stripe_charge_id == "ch_renewal_1"
    assert transaction.status == "succeeded"
    assert transaction.amount == 10000
    assert transaction.platform_fee == 1000
    assert transaction.paid_at is not None

    # Same charge delivered through a different event
    response = send_event(client, "evt_inv_2", "invoice.payment_succeeded", invoice())
    assert response.status_code == 200
    assert db.query(Transaction).count() == 1


def test_same_event_twice_is_duplicate(client, db, card_subscription):
    first = send_event(client, "evt_dup", "invoice.payment_succeeded", invoice())
    second = send_event(client, "evt_dup", "invoice.payment_succeeded", invoice())

    assert first.json() == {"received": True}
    assert second.status_code == 200
    assert second.json() == {"received": True, "duplicate": True}
    assert db.query(Transaction).count() == 1


def test_first_invoice_is_skipped(client, db, card_subscription):
    response = send_event(
        client, "evt_first", "invoice.payment_succeeded", invoice(billing_reason="subscription_create"),
    )
    assert response.status_code == 200
    assert db.query(Transaction).count() == 0


def test_charge_id_from_newer_invoice_shape(client, db, card_subscription):
    obj = {
        "id": "in_new_1",
        "object": "invoice",
        "parent": {"subscription_details": {"subscription": "sub_123"}},
        "payments": {"data": [{"payment": {"type": "charge", "charge": "ch_from_payments"}}]},
        "amount_paid": 10000,
        "billing_reason": "subscription_cycle",
    }
    response = send_event(client, "evt_new_shape", "invoice.payment_succeeded", obj)
    assert response.status_code == 200
    assert db.query(Transaction).one().stripe_charge_id == "ch_from_payments"


def test_renewal_for_unknown_subscription_is_retried(client, db, make_subscription):
    response = send_event(client, "evt_early", "invoice.payment_succeeded", invoice(subscription="sub_late"))
    assert response.status_code == 500
    assert "error" in response.json()
    # The marker was rolled back with the failed handler
    assert db.query(ProcessedEvent).count() == 0

    make_subscription(payment_provider="stripe", stripe_subscription_id="sub_late", amount=10000)
    response = send_event(client, "evt_early", "invoice.payment_succeeded", invoice(subscription="sub_late"))
    assert response.status_code == 200
    assert response.json() == {"received": True}
    assert db.query(Transaction).count() == 1


def test_checkout_completed_creates_monthly_subscription(client, db, organization, monkeypatch):
    monkeypatch.setattr(stripe_gateway, "retrieve_subscription", lambda sub_id: {
        "id": sub_id,
        "metadata": {"organization_id": str(organization.id), "sponsor_name": "Kari Sponsor"},
    })
    monkeypatch.setattr(stripe_gateway, "retrieve_invoice", lambda invoice_id: {
        "id": invoice_id,
        "charge": "ch_first",
    })
    session = {
        "id": "cs_1",
        "object": "checkout.session",
        "mode": "subscription",
        "subscription": "sub_new",
        "invoice": "in_first",
        "customer": "cus_9",
        "customer_email": "sponsor@fjellby.no",
        "amount_total": 10000,
        "metadata": {"organization_id": str(organization.id), "group_id": "", "individual_id": ""},
    }

    response = send_event(client, "evt_cs_1", "checkout.session.completed", session)
    assert response.status_code == 200

    subscription = db.query(Subscription).one()
    assert subscription.payment_provider == "stripe"
    assert subscription.status == "active"
    assert subscription.interval == "monthly"
    assert subscription.stripe_subscription_id == "sub_new"
    assert subscription.stripe_customer_id == "cus_9"
    assert subscription.sponsor_name == "Kari Sponsor"
    assert subscription.group_id is None
    assert subscription.started_at is not None

    first = db.query(Transaction).one()
    assert first.stripe_charge_id == "ch_first"
    assert first.status == "succeeded"

    # Redelivered under a new event id: nothing new
    response = send_event(client, "evt_cs_1_again", "checkout.session.completed", session)
    assert response.status_code == 200
    assert db.query(Subscription).count() == 1
    assert db.query(Transaction).count() == 1

    # The subscription_create invoice for the same charge does not double-record
    response = send_event(
        client, "evt_inv_first", "invoice.payment_succeeded",
        invoice(charge_id="ch_first", billing_reason="subscription_create", subscription="sub_new"),
    )
    assert response.status_code == 200
    assert db.query(Transaction).count() == 1


def test_checkout_completed_one_time_payment(client, db, organization, monkeypatch):
    monkeypatch.setattr(stripe_gateway, "retrieve_payment_intent", lambda pi_id: {
        "id": pi_id,
        "latest_charge": "ch_once",
        "metadata": {"organization_id": str(organization.id), "sponsor_email": "sponsor@fjellby.no"},
    })
    session = {
        "id": "cs_2",
        "object": "checkout.session",
        "mode": "payment",
        "payment_intent": "pi_1",
        "amount_total": 25000,
        "metadata": {},
    }

    response = send_event(client, "evt_cs_2", "checkout.session.completed", session)
    assert response.status_code == 200

    subscription = db.query(Subscription).one()
    assert subscription.interval == "one_time"
    assert subscription.stripe_subscription_id is None
    assert subscription.sponsor_email == "sponsor@fjellby.no"

    transaction = db.query(Transaction).one()
    assert transaction.stripe_charge_id == "ch_once"
    assert transaction.amount == 25000
    assert transaction.platform_fee == 2500

    response = send_event(client, "evt_cs_2_again", "checkout.session.completed", session)
    assert response.status_code == 200
    assert db.query(Subscription).count() == 1


def test_account_updated_mirrors_charges_enabled(client, db, organization):
    organization.stripe_charges_enabled = False
    db.commit()

    response = send_event(client, "evt_acct", "account.updated", {
        "id": "acct_fjellby", "object": "account", "charges_enabled": True,
    })
    assert response.status_code == 200
    db.refresh(organization)
    assert organization.stripe_charges_enabled is True


def test_subscription_deleted_cancels(client, db, card_subscription):
    response = send_event(client, "evt_del", "customer.subscription.deleted", {
        "id": "sub_123", "object": "subscription", "status": "canceled",
    })
    assert response.status_code == 200
    db.refresh(card_subscription)
    assert card_subscription.status == "cancelled"
    assert card_subscription.cancelled_at is not None


def test_cancel_for_unknown_subscription_is_acknowledged(client):
    response = send_event(client, "evt_del_unknown", "customer.subscription.deleted", {"id": "sub_nope"})
    assert response.status_code == 200


def test_payment_failed_notifies_sponsor(client, card_subscription, monkeypatch):
    notified = []
    monkeypatch.setattr(
        "app.services.reconciler.notify_payment_failed",
        lambda email, org_name, provider, **kwargs: notified.append((email, org_name, provider)),
    )

    response = send_event(client, "evt_fail", "invoice.payment_failed", invoice(charge_id="ch_declined"))
    assert response.status_code == 200
    assert notified == [("sponsor@fjellby.no", "Fjellby IL", "stripe")]


def test_refund_marks_transaction_refunded(client, db, card_subscription):
    send_event(client, "evt_paid", "invoice.payment_succeeded", invoice(charge_id="ch_to_refund"))

    response = send_event(client, "evt_refund", "charge.refunded", {
        "id": "ch_to_refund", "object": "charge", "amount_refunded": 10000,
    })
    assert response.status_code == 200
    assert db.query(Transaction).one().status == "refunded"


def test_handler_runs_off_the_event_loop(client, monkeypatch):
    seen = []

    def fake_reconcile(db, event):
        try:
            asyncio.get_running_loop()
            seen.append("event loop")
        except RuntimeError:
            seen.append("worker thread")

    monkeypatch.setattr("app.api.webhooks.reconcile", fake_reconcile)

    response = send_event(client, "evt_thread", "customer.created", {"id": "cus_1"})
    assert response.status_code == 200
    assert seen == ["worker thread"]
