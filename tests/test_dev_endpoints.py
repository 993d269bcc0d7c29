from datetime import datetime
import hashlib
import hmac
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from voicemailai.api.dev import BASIC_SUBSCRIPTIONS_SQL, sign_payload, suggested_price_env


@pytest.mark.parametrize("method, path", [
    ("GET", "/api/dev/create-test-subscription?userId=u1"),
    ("GET", "/api/dev/list-stripe-prices"),
    ("GET", "/api/dev/setup-subscriptions-table"),
    ("POST", "/api/dev/test-webhook"),
    ("GET", "/api/debug/config"),
    ("GET", "/api/debug/supabase-test"),
])
def test_forbidden_in_production(client, monkeypatch, method, path):
    monkeypatch.setenv("APP_ENV", "production")
    r = client.request(method, path, json={"userId": "u1"} if method == "POST" else None)
    assert r.status_code == 403
    assert r.json() == {"error": "This endpoint is only available in development mode"}


def test_create_test_subscription_replaces_active(client, db):
    db.insert_subscriptions([{"user_id": "u1", "plan_id": "basic-monthly", "status": "active"}])
    r = client.get("/api/dev/create-test-subscription", params={"userId": "u1", "planId": "pro-yearly"})
    assert r.status_code == 200
    created = r.json()["subscription"]
    assert created["plan_id"] == "pro-yearly"
    start = datetime.fromisoformat(created["current_period_start"])
    end = datetime.fromisoformat(created["current_period_end"])
    assert (end - start).days == 365
    statuses = sorted(s["status"] for s in db.list_subscriptions())
    assert statuses == ["active", "cancelled"]


def test_create_test_subscription_requires_user(client):
    assert client.get("/api/dev/create-test-subscription").status_code == 400


def test_sign_payload_matches_stripe_scheme():
    header = sign_payload('{"a": 1}', "whsec_x", timestamp=1700000000)
    expected = hmac.new(b"whsec_x", b'1700000000.{"a": 1}', hashlib.sha256).hexdigest()
    assert header == f"t=1700000000,v1={expected}"


def test_test_webhook_records_subscription(client, db):
    r = client.post("/api/dev/test-webhook", json={"userId": "u1"})
    assert r.status_code == 200
    body = r.json()
    assert body["webhookResult"] == {"received": True, "handled": True}
    assert body["mockSession"]["metadata"] == {"user_id": "u1", "plan_id": "pro-monthly"}
    assert body["signature"].startswith("t=")
    row = db.get_latest_subscription("u1")
    assert row["stripe_subscription_id"] == body["mockSession"]["subscription"]


def test_suggested_price_env():
    prices = [
        {"id": "price_1", "product": {"name": "Pro Plan"}, "recurring": {"interval": "month"}},
        {"id": "price_2", "product": {"name": "Enterprise"}, "recurring": {"interval": "year"}},
        {"id": "price_3", "product": {"name": "Setup fee"}, "recurring": {"interval": "month"}},
        {"id": "price_4", "product": {"name": "Basic"}, "recurring": None},
        {"id": "price_5", "product": "prod_unexpanded", "recurring": {"interval": "month"}},
    ]
    assert suggested_price_env(prices) == {
        "STRIPE_PRICE_PRO_MONTHLY": "price_1",
        "STRIPE_PRICE_ENTERPRISE_YEARLY": "price_2",
    }


def test_list_stripe_prices(client):
    fake = SimpleNamespace(
        Product=SimpleNamespace(list=MagicMock(return_value={"data": [
            {"id": "prod_1", "name": "Basic", "description": None, "active": True, "default_price": "price_b"},
        ]})),
        Price=SimpleNamespace(list=MagicMock(return_value={"data": [
            {"id": "price_b", "currency": "eur", "unit_amount": 900, "type": "recurring",
             "recurring": {"interval": "month"}, "product": {"id": "prod_1", "name": "Basic"}},
        ]})),
    )
    with patch("voicemailai.api.dev.get_stripe", return_value=fake):
        r = client.get("/api/dev/list-stripe-prices")
    assert r.status_code == 200
    body = r.json()
    assert body["products"][0]["id"] == "prod_1"
    assert body["pricesByProduct"]["prod_1"][0]["unit_amount"] == 900
    assert body["env_config"] == {"STRIPE_PRICE_BASIC_MONTHLY": "price_b"}


def test_list_stripe_prices_without_stripe(client):
    assert client.get("/api/dev/list-stripe-prices").status_code == 503


def test_debug_config(client, monkeypatch):
    monkeypatch.setenv("STRIPE_SECRET_KEY", "sk_test_1")
    body = client.get("/api/debug/config").json()
    assert body["supabase"] == {"hasUrl": False, "hasServiceKey": False, "url": "missing"}
    assert body["stripe"] == {"hasSecretKey": True, "hasWebhookSecret": False}


def test_debug_supabase_test_uses_store(client):
    body = client.get("/api/debug/supabase-test").json()
    assert body["success"] is True
    assert body["backend"] == "InMemoryDB"


@pytest.fixture
def supabase_client(monkeypatch):
    monkeypatch.setenv("SUPABASE_URL", "https://example.supabase.co")
    monkeypatch.setenv("SUPABASE_SERVICE_ROLE_KEY", "service-key")
    fake = MagicMock()
    with patch("voicemailai.db.create_client", return_value=fake):
        yield fake


def test_setup_table_needs_supabase(client):
    r = client.get("/api/dev/setup-subscriptions-table")
    assert r.status_code == 503
    assert r.json()["error"] == "Supabase is not configured"


def test_setup_table_runs_schema(client, supabase_client):
    r = client.get("/api/dev/setup-subscriptions-table")
    assert r.status_code == 200
    assert r.json()["message"] == "Subscriptions table set up successfully"
    name, params = supabase_client.rpc.call_args.args
    assert name == "exec_sql"
    assert "CREATE TABLE IF NOT EXISTS subscriptions" in params["sql"]
    assert "CREATE TABLE IF NOT EXISTS users" in params["sql"]


def test_setup_table_falls_back_to_basic_table(client, supabase_client):
    supabase_client.rpc.return_value.execute.side_effect = [RuntimeError("exec_sql failed"), None]
    r = client.get("/api/dev/setup-subscriptions-table")
    assert r.status_code == 200
    assert r.json()["message"] == "Created basic subscriptions table (fallback method)"
    assert supabase_client.rpc.call_args.args == ("exec_sql", {"sql": BASIC_SUBSCRIPTIONS_SQL})


def test_setup_table_reports_both_failures(client, supabase_client):
    supabase_client.rpc.return_value.execute.side_effect = RuntimeError("no rpc")
    r = client.get("/api/dev/setup-subscriptions-table")
    assert r.status_code == 500
    body = r.json()
    assert body["error"] == "Failed to set up subscriptions table"
    assert body["fallback_error"] == "no rpc"
