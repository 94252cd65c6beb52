"""Vipps Recurring webhook: HMAC auth, synthesized idempotency keys and event handling"""
import json

import pytest

from app.core.security import content_sha256, vipps_signature
from app.models import Transaction

WEBHOOK_SECRET = "vipps_test_secret"
DATE = "Sat, 17 Oct 2026 10:00:00 GMT"


def vipps_headers(body: bytes, secret: str = WEBHOOK_SECRET) -> dict:
    content_hash = content_sha256(body)
    signature = vipps_signature(secret, "POST", "/webhooks/vipps", DATE, "testserver", content_hash)
    return {
        "Content-Type": "application/json",
        "x-ms-date": DATE,
        "x-ms-content-sha256": content_hash,
        "Authorization": f"HMAC-SHA256 SignedHeaders=x-ms-date;host;x-ms-content-sha256&Signature={signature}",
    }


def send(client, payload: dict, secret: str = WEBHOOK_SECRET):
    body = json.dumps(payload).encode()
    return client.post("/webhooks/vipps", content=body, headers=vipps_headers(body, secret))


@pytest.fixture
def agreement(make_subscription):
    return make_subscription(vipps_agreement_id="agr_1", sponsor_phone="4791234567")


def captured(charge_id="chg_1", amount=20000, timestamp="2026-10-20T08:00:00Z"):
    return {
        "name": "recurring.charge-captured.v1",
        "agreementId": "agr_1",
        "chargeId": charge_id,
        "amount": amount,
        "timestamp": timestamp,
    }


def test_invalid_signature_is_400(client, agreement):
    response = send(client, captured(), secret="wrong_secret")
    assert response.status_code == 400


def test_missing_auth_headers_is_400(client, agreement):
    response = client.post("/webhooks/vipps", json=captured())
    assert response.status_code == 400


def test_tampered_body_is_400(client, agreement):
    body = json.dumps(captured()).encode()
    headers = vipps_headers(body)
    response = client.post("/webhooks/vipps", content=body.replace(b"20000", b"1"), headers=headers)
    assert response.status_code == 400


def test_capture_without_pending_row_creates_transaction(client, db, agreement):
    response = send(client, captured())
    assert response.status_code == 200

    transaction = db.query(Transaction).one()
    assert transaction.vipps_charge_id == "chg_1"
    assert transaction.status == "succeeded"
    assert transaction.amount == 20000
    assert transaction.platform_fee == 2000
    assert transaction.paid_at is not None
    assert transaction.subscription_id == agreement.id


def test_redelivered_capture_is_duplicate(client, db, agreement):
    assert send(client, captured()).json() == {"received": True}
    response = send(client, captured())
    assert response.json() == {"received": True, "duplicate": True}
    assert db.query(Transaction).count() == 1


def test_capture_with_new_timestamp_still_records_once(client, db, agreement):
    send(client, captured(timestamp="2026-10-20T08:00:00Z"))
    response = send(client, captured(timestamp="2026-10-20T08:05:00Z"))
    assert response.status_code == 200
    assert db.query(Transaction).count() == 1


def test_capture_completes_pending_transaction(client, db, agreement):
    db.add(Transaction(
        subscription_id=agreement.id,
        payment_provider="vipps",
        vipps_charge_id="chg_1",
        organization_id=agreement.organization_id,
        amount=20000,
        platform_fee=2000,
        status="pending",
    ))
    db.commit()

    response = send(client, captured())
    assert response.status_code == 200
    transaction = db.query(Transaction).one()
    assert transaction.status == "succeeded"
    assert transaction.paid_at is not None


def test_capture_for_unknown_agreement_is_retried(client, db):
    response = send(client, {**captured(), "agreementId": "agr_unknown"})
    assert response.status_code == 500
    assert db.query(Transaction).count() == 0


def test_failed_charge_marks_pending_failed_and_notifies(client, db, agreement, monkeypatch):
    notified = []
    monkeypatch.setattr(
        "app.services.reconciler.notify_payment_failed",
        lambda email, org_name, provider, **kwargs: notified.append((email, org_name, kwargs.get("reason"))),
    )
    db.add(Transaction(
        subscription_id=agreement.id,
        payment_provider="vipps",
        vipps_charge_id="chg_2",
        organization_id=agreement.organization_id,
        amount=20000,
        status="pending",
    ))
    db.commit()

    response = send(client, {
        "name": "recurring.charge-failed.v1",
        "agreementId": "agr_1",
        "chargeId": "chg_2",
        "failureReason": "insufficient_funds",
        "timestamp": "2026-10-25T08:00:00Z",
    })
    assert response.status_code == 200
    assert db.query(Transaction).one().status == "failed"
    assert notified == [("sponsor@fjellby.no", "Fjellby IL", "insufficient_funds")]


def test_cancelled_charge_does_not_notify(client, db, agreement, monkeypatch):
    notified = []
    monkeypatch.setattr(
        "app.services.reconciler.notify_payment_failed",
        lambda *args, **kwargs: notified.append(args),
    )
    db.add(Transaction(
        subscription_id=agreement.id,
        payment_provider="vipps",
        vipps_charge_id="chg_3",
        organization_id=agreement.organization_id,
        amount=20000,
        status="pending",
    ))
    db.commit()

    response = send(client, {"name": "recurring.charge-cancelled.v1", "agreementId": "agr_1", "chargeId": "chg_3"})
    assert response.status_code == 200
    assert db.query(Transaction).one().status == "failed"
    assert notified == []


def test_late_failure_does_not_undo_capture(client, db, agreement):
    send(client, captured(charge_id="chg_4"))
    response = send(client, {
        "name": "recurring.charge-failed.v1",
        "agreementId": "agr_1",
        "chargeId": "chg_4",
        "timestamp": "2026-10-19T08:00:00Z",
    })
    assert response.status_code == 200
    assert db.query(Transaction).one().status == "succeeded"


def test_agreement_lifecycle(client, db, make_subscription):
    subscription = make_subscription(status="pending", vipps_agreement_id="agr_life")

    response = send(client, {"name": "recurring.agreement-activated.v1", "agreementId": "agr_life"})
    assert response.status_code == 200
    db.refresh(subscription)
    assert subscription.status == "active"
    assert subscription.started_at is not None

    response = send(client, {
        "name": "recurring.agreement-stopped.v1", "agreementId": "agr_life", "actor": "USER",
    })
    assert response.status_code == 200
    db.refresh(subscription)
    assert subscription.status == "cancelled"
    assert subscription.cancelled_at is not None

    # A stale activation delivered after the stop is ignored
    response = send(client, {
        "name": "recurring.agreement-activated.v1", "agreementId": "agr_life", "timestamp": "2026-10-01T00:00:00Z",
    })
    assert response.status_code == 200
    db.refresh(subscription)
    assert subscription.status == "cancelled"


def test_agreement_expired(client, db, make_subscription):
    subscription = make_subscription(status="pending", vipps_agreement_id="agr_exp")

    response = send(client, {"name": "recurring.agreement-expired.v1", "agreementId": "agr_exp"})
    assert response.status_code == 200
    db.refresh(subscription)
    assert subscription.status == "expired"
    assert subscription.cancelled_at is None


def test_unknown_event_name_is_acknowledged(client):
    response = send(client, {"name": "recurring.something-new.v2", "agreementId": "agr_1"})
    assert response.status_code == 200


def test_invalid_json_is_400(client):
    body = b"not json"
    response = client.post("/webhooks/vipps", content=body, headers=vipps_headers(body))
    assert response.status_code == 400


def test_cancelled_charge_without_agreement_id_fails_transaction(client, db, agreement):
    db.add(Transaction(
        subscription_id=agreement.id,
        payment_provider="vipps",
        vipps_charge_id="chg_only",
        organization_id=agreement.organization_id,
        amount=20000,
        status="pending",
    ))
    db.commit()

    response = send(client, {"name": "recurring.charge-cancelled.v1", "chargeId": "chg_only"})
    assert response.status_code == 200
    assert db.query(Transaction).one().status == "failed"


def test_failed_charge_without_agreement_id_still_notifies(client, db, agreement, monkeypatch):
    notified = []
    monkeypatch.setattr(
        "app.services.reconciler.notify_payment_failed",
        lambda email, org_name, provider, **kwargs: notified.append((email, org_name)),
    )
    db.add(Transaction(
        subscription_id=agreement.id,
        payment_provider="vipps",
        vipps_charge_id="chg_only_2",
        organization_id=agreement.organization_id,
        amount=20000,
        status="pending",
    ))
    db.commit()

    response = send(client, {
        "name": "recurring.charge-failed.v1",
        "chargeId": "chg_only_2",
        "timestamp": "2026-10-25T08:00:00Z",
    })
    assert response.status_code == 200
    assert db.query(Transaction).one().status == "failed"
    assert notified == [("sponsor@fjellby.no", "Fjellby IL")]
