import json
from unittest.mock import patch

import pytest
import stripe


def checkout_event(user_id="user-1", **session):
    obj = {
        "id": "cs_test_1",
        "client_reference_id": user_id,
        "customer": "cus_1",
        "subscription": "sub_1",
        "metadata": {"plan_id": "pro-monthly"},
    }
    obj.update(session)
    return {"type": "checkout.session.completed", "data": {"object": obj}}


def post_event(client, event, signature=None):
    headers = {"stripe-signature": signature} if signature else {}
    return client.post("/api/webhook/stripe", content=json.dumps(event), headers=headers)


def test_unavailable_without_stripe(client):
    r = post_event(client, checkout_event())
    assert r.status_code == 503


def test_head(client):
    assert client.head("/api/webhook/stripe").status_code == 200


def test_checkout_completed_records_subscription(client, db, stripe_key):
    r = post_event(client, checkout_event())
    assert r.status_code == 200
    assert r.json() == {"received": True}

    row = db.get_latest_subscription("user-1")
    assert row["status"] == "active"
    assert row["plan_id"] == "pro-monthly"
    assert row["stripe_customer_id"] == "cus_1"
    assert row["stripe_subscription_id"] == "sub_1"


def test_checkout_without_plan_uses_default(client, db, stripe_key):
    post_event(client, checkout_event(metadata={}, customer=None, subscription=None))
    row = db.get_latest_subscription("user-1")
    assert row["plan_id"] == "basic-monthly"
    assert "stripe_customer_id" not in row


def test_invalid_payload(client, stripe_key):
    r = client.post("/api/webhook/stripe", content=b"not json")
    assert r.status_code == 400
    assert r.json() == {"error": "Invalid webhook payload"}


def test_bad_signature(client, stripe_key, monkeypatch):
    monkeypatch.setenv("STRIPE_WEBHOOK_SECRET", "whsec_test")
    with patch.object(stripe.Webhook, "construct_event", side_effect=ValueError("bad signature")):
        r = post_event(client, checkout_event(), signature="t=1,v1=deadbeef")
    assert r.status_code == 400
    assert r.json() == {"error": "Webhook signature verification failed"}


@pytest.mark.parametrize("signature", [None, ""])
def test_missing_signature_rejected_when_secret_set(client, db, stripe_key, monkeypatch, signature):
    monkeypatch.setenv("STRIPE_WEBHOOK_SECRET", "whsec_test")
    headers = {} if signature is None else {"stripe-signature": signature}
    with patch.object(stripe.Webhook, "construct_event") as construct:
        r = client.post(
            "/api/webhook/stripe",
            content=json.dumps(checkout_event("intruder", metadata={"plan_id": "enterprise-yearly"})),
            headers=headers,
        )
    assert r.status_code == 400
    assert r.json() == {"error": "Webhook signature verification failed"}
    construct.assert_not_called()
    assert db.get_latest_subscription("intruder") is None


def test_verified_event(client, db, stripe_key, monkeypatch):
    monkeypatch.setenv("STRIPE_WEBHOOK_SECRET", "whsec_test")
    with patch.object(stripe.Webhook, "construct_event", return_value=checkout_event("user-9")) as construct:
        r = post_event(client, checkout_event("user-9"), signature="t=1,v1=abc")
    assert r.status_code == 200
    assert construct.call_args.args[1] == "t=1,v1=abc"
    assert construct.call_args.args[2] == "whsec_test"
    assert db.get_latest_subscription("user-9")["status"] == "active"


def test_subscription_updated_and_deleted(client, db, stripe_key):
    db.insert_subscriptions([{"user_id": "user-1", "plan_id": "pro-monthly", "status": "active"}])
    subscription = {
        "id": "sub_1",
        "status": "past_due",
        "metadata": {"userId": "user-1"},
        "items": {"data": [{"current_period_start": 1700000000, "current_period_end": 1702592000}]},
        "cancel_at": None,
        "canceled_at": None,
    }
    r = post_event(client, {"type": "customer.subscription.updated", "data": {"object": subscription}})
    assert r.status_code == 200
    row = db.get_latest_subscription("user-1")
    assert row["status"] == "past_due"
    assert row["current_period_end"].startswith("2023-12-14")

    post_event(client, {"type": "customer.subscription.deleted", "data": {"object": subscription}})
    row = db.get_latest_subscription("user-1")
    assert row["status"] == "cancelled"
    assert row["ended_at"]


def test_unhandled_event_is_acknowledged(client, stripe_key):
    r = post_event(client, {"type": "invoice.paid", "data": {"object": {}}})
    assert r.status_code == 200
    assert r.json() == {"received": True}


def test_handler_errors_do_not_fail_webhook(client, db, stripe_key, monkeypatch):
    def boom(rows):
        raise RuntimeError("insert failed")

    monkeypatch.setattr(db, "insert_subscriptions", boom)
    r = post_event(client, checkout_event())
    assert r.status_code == 200
