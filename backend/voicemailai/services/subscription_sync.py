from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Any, Dict, List, Optional
import logging

from ..db import utc_now
from .environment import is_production
from .stripe_client import DEFAULT_PLAN_ID, as_dict, customer_id_of, from_unix, period_bounds, resolve_user_id

logger = logging.getLogger(__name__)


@dataclass
class SyncSummary:
    total_stripe: int = 0
    total_db: int = 0
    inserted: int = 0
    updated: int = 0
    deactivated: int = 0
    skipped: int = 0
    errors: int = 0

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


def _parse_ts(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def list_active_subscriptions(stripe_mod) -> List[Dict[str, Any]]:
    result = stripe_mod.Subscription.list(status="active", expand=["data.customer"], limit=100)
    pager = getattr(result, "auto_paging_iter", None)
    items = pager() if callable(pager) else (as_dict(result).get("data") or [])
    return [as_dict(s) for s in items]


class SubscriptionSync:
    """Reconcile active Stripe subscriptions into the subscriptions table.

    Each Stripe record is handled on its own; a failure is counted in
    ``errors`` and the pass continues. Nothing is rolled back.
    """

    def __init__(self, stripe_mod, db) -> None:
        self.stripe = stripe_mod
        self.db = db
        self.summary = SyncSummary()

    def run(self) -> SyncSummary:
        stripe_subs = list_active_subscriptions(self.stripe)
        db_subs = self.db.list_subscriptions()
        self.summary.total_stripe = len(stripe_subs)
        self.summary.total_db = len(db_subs)
        logger.info(f"Syncing {len(stripe_subs)} Stripe subscriptions against {len(db_subs)} stored rows")

        stored = {s["stripe_subscription_id"]: s for s in db_subs if s.get("stripe_subscription_id")}
        seen = set()
        for sub in stripe_subs:
            seen.add(sub.get("id"))
            try:
                self._sync_one(sub, stored.get(sub.get("id")))
            except Exception as e:
                self.summary.errors += 1
                logger.error(f"Failed to sync subscription {sub.get('id')}: {e}")

        for stripe_id, row in stored.items():
            if stripe_id in seen or row.get("status") != "active":
                continue
            try:
                self.db.update_subscription(row["id"], {"status": "canceled", "updated_at": utc_now()})
                self.summary.deactivated += 1
            except Exception as e:
                self.summary.errors += 1
                logger.error(f"Failed to deactivate subscription row {row.get('id')}: {e}")
        return self.summary

    def _sync_one(self, sub: Dict[str, Any], row: Optional[Dict[str, Any]]) -> None:
        user_id = self._resolve_user(sub)
        if not user_id:
            self.summary.skipped += 1
            return

        start, end = period_bounds(sub)
        if row is None:
            self.db.insert_subscriptions([{
                "user_id": user_id,
                "plan_id": (sub.get("metadata") or {}).get("plan_id") or DEFAULT_PLAN_ID,
                "status": sub.get("status"),
                "stripe_subscription_id": sub.get("id"),
                "stripe_customer_id": customer_id_of(sub),
                "current_period_start": from_unix(start),
                "current_period_end": from_unix(end),
            }])
            self.summary.inserted += 1
            return

        stripe_end = _parse_ts(from_unix(end))
        stored_end = _parse_ts(row.get("current_period_end"))
        period_behind = stripe_end is not None and (stored_end is None or stored_end < stripe_end)
        if row.get("status") != sub.get("status") or period_behind:
            self.db.update_subscription(row["id"], {
                "status": sub.get("status"),
                "current_period_start": from_unix(start),
                "current_period_end": from_unix(end),
                "updated_at": utc_now(),
            })
            self.summary.updated += 1

    def _resolve_user(self, sub: Dict[str, Any]) -> Optional[str]:
        sub_id = sub.get("id")
        metadata = dict(sub.get("metadata") or {})
        user_id = resolve_user_id(metadata)

        if not user_id:
            customer = sub.get("customer")
            if not isinstance(customer, dict):
                customer = as_dict(self.stripe.Customer.retrieve(customer_id_of(sub)))
            user_id = resolve_user_id(customer.get("metadata"))
            if not user_id:
                logger.warning(f"No user_id for subscription {sub_id} in subscription or customer metadata")
                return None
            self._write_back(sub, metadata, user_id)

        development = not is_production()
        if development and "test-" in user_id:
            return user_id

        if self.db.get_user(user_id):
            return user_id

        email = metadata.get("email")
        if email:
            found = self.db.find_user_by_email(email)
            if found:
                logger.info(f"Matched subscription {sub_id} to user {found['id']} by email")
                self._write_back(sub, metadata, found["id"])
                return found["id"]

        if development:
            logger.info(f"Development mode: accepting unknown user {user_id} for {sub_id}")
            return user_id
        logger.warning(f"User {user_id} not found for subscription {sub_id}")
        return None

    def _write_back(self, sub: Dict[str, Any], metadata: Dict[str, Any], user_id: str) -> None:
        metadata["user_id"] = user_id
        sub["metadata"] = metadata
        try:
            self.stripe.Subscription.modify(sub["id"], metadata=metadata)
        except Exception as e:
            logger.error(f"Failed to write user_id back to Stripe subscription {sub['id']}: {e}")
