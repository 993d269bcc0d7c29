from fastapi import APIRouter, Depends, HTTPException, Query
from datetime import datetime, timedelta, timezone
from importlib import resources
from typing import Any, Dict, List, Optional
from uuid import uuid4
import hashlib
import hmac
import json
import logging
import os
import re
import time

import stripe

from ..schemas.pydantic_schemas import WebhookTestRequest
from ..services.environment import is_production
from ..services.stripe_client import as_dict, get_stripe
from ..services.billing_events import process_event
from ..db import SupabaseDB, get_db, utc_now
from .stripe_webhook import parse_event
from .errors import error_response

logger = logging.getLogger(__name__)

DEV_ONLY_MESSAGE = "This endpoint is only available in development mode"
DEFAULT_TEST_WEBHOOK_SECRET = "whsec_test_secret"

BASIC_SUBSCRIPTIONS_SQL = """
CREATE TABLE IF NOT EXISTS public.subscriptions (
  id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
  user_id uuid NOT NULL,
  plan_id text NOT NULL,
  status text NOT NULL,
  current_period_start timestamptz,
  current_period_end timestamptz NOT NULL DEFAULT (now() + interval '30 days'),
  created_at timestamptz NOT NULL DEFAULT now(),
  updated_at timestamptz NOT NULL DEFAULT now()
);
"""


def require_development():
    if is_production():
        raise HTTPException(status_code=403, detail=DEV_ONLY_MESSAGE)


router = APIRouter(dependencies=[Depends(require_development)])


def sign_payload(payload: str, secret: str, timestamp: Optional[int] = None) -> str:
    """Build a ``Stripe-Signature`` header value for ``payload``."""
    timestamp = timestamp or int(time.time())
    digest = hmac.new(secret.encode(), f"{timestamp}.{payload}".encode(), hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


@router.get("/create-test-subscription")
async def create_test_subscription(
    userId: Optional[str] = Query(default=None),
    planId: str = Query(default="pro-monthly"),
):
    if not userId:
        raise HTTPException(status_code=400, detail="User ID is required as a query parameter")
    db = get_db()
    try:
        cancelled = db.update_subscriptions_for_user(
            userId, {"status": "cancelled", "updated_at": utc_now()}, status="active"
        )
        if cancelled:
            logger.info(f"Cancelled {cancelled} existing active subscriptions for {userId}")

        now = datetime.now(timezone.utc)
        period_days = 365 if "yearly" in planId else 30
        created = db.insert_subscriptions([{
            "user_id": userId,
            "plan_id": planId,
            "status": "active",
            "current_period_start": now.isoformat(),
            "current_period_end": (now + timedelta(days=period_days)).isoformat(),
            "created_at": now.isoformat(),
            "updated_at": now.isoformat(),
        }])
    except Exception as e:
        logger.error(f"Error creating test subscription: {e}")
        return error_response("Error creating test subscription", details=str(e))
    return {
        "message": "Test subscription created successfully",
        "subscription": created[0] if created else None,
        "next_steps": "Go back to the dashboard to see the subscription",
        "dashboard_url": "/dashboard",
    }


def _plan_key(product_name: str) -> Optional[str]:
    name = re.sub(r"[^a-z0-9_]", "", re.sub(r"\s+", "_", product_name.lower()))
    for key in ("basic", "pro", "enterprise"):
        if key in name:
            return key.upper()
    return None


def suggested_price_env(prices: List[Dict[str, Any]]) -> Dict[str, str]:
    env_config: Dict[str, str] = {}
    for price in prices:
        product = price.get("product")
        if not isinstance(product, dict) or product.get("deleted"):
            continue
        plan_key = _plan_key(product.get("name") or "")
        interval = ((price.get("recurring") or {}).get("interval"))
        if not plan_key or interval not in ("month", "year"):
            continue
        env_config[f"STRIPE_PRICE_{plan_key}_{'MONTHLY' if interval == 'month' else 'YEARLY'}"] = price["id"]
    return env_config


@router.get("/list-stripe-prices")
async def list_stripe_prices():
    stripe_mod = get_stripe()
    if stripe_mod is None:
        return error_response("Stripe is not configured", 503)
    try:
        products = as_dict(stripe_mod.Product.list(active=True, limit=100, expand=["data.default_price"]))
        prices = as_dict(stripe_mod.Price.list(active=True, limit=100, expand=["data.product"]))
    except Exception as e:
        logger.error(f"Error fetching Stripe data: {e}")
        return error_response(
            "Failed to fetch Stripe data",
            details=str(e),
            next_steps="Check that your STRIPE_SECRET_KEY is correct in .env",
        )

    price_rows = [as_dict(p) for p in prices.get("data") or []]
    formatted_products = [
        {
            "id": p.get("id"),
            "name": p.get("name"),
            "description": p.get("description"),
            "active": p.get("active"),
            "default_price": p.get("default_price"),
        }
        for p in (as_dict(p) for p in products.get("data") or [])
    ]
    prices_by_product: Dict[str, List[Dict[str, Any]]] = {}
    for price in price_rows:
        product = price.get("product")
        product_id = product.get("id") if isinstance(product, dict) else product
        prices_by_product.setdefault(product_id, []).append({
            "id": price.get("id"),
            "currency": price.get("currency"),
            "unit_amount": price.get("unit_amount"),
            "nickname": price.get("nickname"),
            "type": price.get("type"),
            "recurring": price.get("recurring"),
            "lookup_key": price.get("lookup_key"),
        })
    return {
        "products": formatted_products,
        "prices": price_rows,
        "pricesByProduct": prices_by_product,
        "env_config": suggested_price_env(price_rows),
        "instructions": "Copy the values from env_config to your .env file",
    }


@router.post("/test-webhook")
async def test_webhook(body: WebhookTestRequest):
    if not body.userId:
        raise HTTPException(status_code=400, detail="User ID is required in the request body")

    mock_session = {
        "id": f"cs_test_{uuid4().hex[:8]}",
        "customer": f"cus_{uuid4().hex[:8]}",
        "client_reference_id": body.userId,
        "metadata": {"user_id": body.userId, "plan_id": body.planId},
        "subscription": f"sub_{uuid4().hex[:8]}",
    }
    payload = json.dumps({"type": "checkout.session.completed", "data": {"object": mock_session}})
    secret = os.getenv("STRIPE_WEBHOOK_SECRET") or DEFAULT_TEST_WEBHOOK_SECRET
    signature = sign_payload(payload, secret)

    try:
        event = parse_event(stripe, payload.encode("utf-8"), signature)
        handled = process_event(event)
    except ValueError as e:
        return error_response(str(e), 400)
    return {
        "message": "Webhook test completed",
        "webhookResult": {"received": True, "handled": handled},
        "mockSession": mock_session,
        "signature": signature,
    }


def load_schema_sql() -> str:
    return resources.files("voicemailai.models").joinpath("schema.sql").read_text(encoding="utf-8")


@router.get("/setup-subscriptions-table")
async def setup_subscriptions_table():
    db = get_db()
    if not isinstance(db, SupabaseDB):
        return error_response(
            "Supabase is not configured",
            503,
            next_steps="Set SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY, the in-memory store needs no setup",
        )

    try:
        sql = load_schema_sql()
    except OSError as e:
        logger.error(f"Error reading schema file: {e}")
        return error_response("Failed to read schema file", details=str(e))

    try:
        db.exec_sql(sql)
    except Exception as e:
        logger.error(f"Error executing schema SQL: {e}")
        try:
            db.exec_sql(BASIC_SUBSCRIPTIONS_SQL)
        except Exception as fallback:
            logger.error(f"Error creating basic subscriptions table: {fallback}")
            return error_response(
                "Failed to set up subscriptions table",
                details=str(e),
                fallback_error=str(fallback),
                next_steps="Run models/schema.sql manually in Supabase",
            )
        return {
            "message": "Created basic subscriptions table (fallback method)",
            "warnings": "Indexes and the remaining tables were not created",
            "next_steps": "Run the full schema manually for complete setup",
        }

    return {
        "message": "Subscriptions table set up successfully",
        "next_steps": "You can now create subscriptions",
    }
