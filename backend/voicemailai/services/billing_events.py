from datetime import datetime, timedelta, timezone
from typing import Any, Dict
import logging

from ..db import get_db, utc_now
from .stripe_client import DEFAULT_PLAN_ID, as_dict, from_unix, map_stripe_status, period_bounds, resolve_user_id

logger = logging.getLogger(__name__)

PERIOD_DAYS = 30


def new_period(days: int = PERIOD_DAYS):
    now = datetime.now(timezone.utc)
    return now.isoformat(), (now + timedelta(days=days)).isoformat()


def handle_checkout_session_completed(session: Dict[str, Any]) -> None:
    db = get_db()
    metadata = session.get("metadata") or {}
    user_id = session.get("client_reference_id") or resolve_user_id(metadata)
    if not user_id:
        logger.error("checkout.session.completed without client_reference_id or user metadata")
        return
    start, end = new_period()
    row = {
        "user_id": user_id,
        "plan_id": metadata.get("plan_id") or DEFAULT_PLAN_ID,
        "status": "active",
        "current_period_start": start,
        "current_period_end": end,
        "created_at": start,
        "updated_at": start,
    }
    if isinstance(session.get("customer"), str):
        row["stripe_customer_id"] = session["customer"]
    if isinstance(session.get("subscription"), str):
        row["stripe_subscription_id"] = session["subscription"]
    created = db.insert_subscriptions([row])
    logger.info(f"Saved subscription for user {user_id}: {created}")


def handle_subscription_updated(subscription: Dict[str, Any]) -> None:
    db = get_db()
    user_id = resolve_user_id(subscription.get("metadata"))
    if not user_id:
        logger.error(f"No user ID in metadata for subscription {subscription.get('id')}")
        return
    start, end = period_bounds(subscription)
    fields = {
        "status": map_stripe_status(subscription.get("status")),
        "current_period_start": from_unix(start),
        "current_period_end": from_unix(end),
        "cancel_at": from_unix(subscription.get("cancel_at")),
        "canceled_at": from_unix(subscription.get("canceled_at")),
        "updated_at": utc_now(),
    }
    count = db.update_subscriptions_for_user(user_id, fields)
    logger.info(f"Subscription updated for user {user_id} ({count} rows)")


def handle_subscription_deleted(subscription: Dict[str, Any]) -> None:
    db = get_db()
    user_id = resolve_user_id(subscription.get("metadata"))
    if not user_id:
        logger.error(f"No user ID in metadata for subscription {subscription.get('id')}")
        return
    now = utc_now()
    count = db.update_subscriptions_for_user(user_id, {
        "status": "cancelled",
        "ended_at": now,
        "canceled_at": now,
        "updated_at": now,
    })
    logger.info(f"Subscription cancelled for user {user_id} ({count} rows)")


HANDLERS = {
    "checkout.session.completed": handle_checkout_session_completed,
    "customer.subscription.created": handle_subscription_updated,
    "customer.subscription.updated": handle_subscription_updated,
    "customer.subscription.deleted": handle_subscription_deleted,
}


def process_event(event: Any) -> bool:
    """Dispatch a webhook event. Returns False for event types we ignore.

    Handler failures are logged, not raised.
    """
    event = as_dict(event)
    event_type = event.get("type")
    handler = HANDLERS.get(event_type)
    if handler is None:
        logger.info(f"Unhandled event type: {event_type}")
        return False
    obj = as_dict((event.get("data") or {}).get("object"))
    logger.info(f"Processing webhook event: {event_type}")
    try:
        handler(obj)
    except Exception as e:
        logger.error(f"Error handling {event_type}: {e}", exc_info=True)
    return True
