import os
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import stripe

logger = logging.getLogger(__name__)

PLAN_IDS = [
    "basic-monthly",
    "pro-monthly",
    "enterprise-monthly",
    "basic-yearly",
    "pro-yearly",
    "enterprise-yearly",
]
DEFAULT_PLAN_ID = "basic-monthly"
PLACEHOLDER_PRICE = "price_placeholder"

STATUS_MAP = {
    "active": "active",
    "canceled": "cancelled",
    "past_due": "past_due",
    "trialing": "trialing",
    "unpaid": "unpaid",
    "incomplete": "past_due",
    "incomplete_expired": "cancelled",
}


def get_stripe():
    """Return the configured stripe module, or None when no secret key is set."""
    key = os.getenv("STRIPE_SECRET_KEY")
    if not key or not key.strip():
        logger.warning("STRIPE_SECRET_KEY missing; payment processing unavailable")
        return None
    stripe.api_key = key
    stripe.set_app_info("VoicemailAI", version="1.0.0")
    return stripe


def price_id_for_plan(plan_id: str) -> str:
    env_key = "STRIPE_PRICE_" + plan_id.upper().replace("-", "_")
    return os.getenv(env_key, PLACEHOLDER_PRICE)


def is_placeholder_price(price_id: str) -> bool:
    return not price_id or price_id == PLACEHOLDER_PRICE or not price_id.startswith("price_")


def map_stripe_status(status: Optional[str]) -> str:
    return STATUS_MAP.get(status or "", "past_due")


def from_unix(ts: Optional[int]) -> Optional[str]:
    if not ts:
        return None
    return datetime.fromtimestamp(int(ts), tz=timezone.utc).isoformat()


def as_dict(obj: Any) -> Dict[str, Any]:
    """Normalize Stripe objects (or plain dicts from tests/webhooks) to dicts."""
    if obj is None:
        return {}
    if type(obj) is dict:
        return obj
    to_dict = getattr(obj, "to_dict", None) or getattr(obj, "to_dict_recursive", None)
    if callable(to_dict):
        return to_dict()
    return dict(obj)


def resolve_user_id(metadata: Optional[Dict[str, Any]]) -> Optional[str]:
    metadata = metadata or {}
    return metadata.get("user_id") or metadata.get("userId")


def customer_id_of(subscription: Dict[str, Any]) -> Optional[str]:
    customer = subscription.get("customer")
    if isinstance(customer, dict):
        return customer.get("id")
    return customer


def period_bounds(subscription: Dict[str, Any]):
    """(start, end) unix timestamps; newer API versions keep them on the items."""
    start = subscription.get("current_period_start")
    end = subscription.get("current_period_end")
    if start is None or end is None:
        items = ((subscription.get("items") or {}).get("data")) or []
        if items:
            start = start or items[0].get("current_period_start")
            end = end or items[0].get("current_period_end")
    return start, end
