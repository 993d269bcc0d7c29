from fastapi import APIRouter, HTTPException, Query
from typing import Optional
from ..schemas.pydantic_schemas import PortalSessionRequest, SubscriptionCreate
from ..services.stripe_client import get_stripe
from ..services.subscription_sync import SubscriptionSync
from ..services.billing_events import new_period
from ..services.environment import app_domain
from ..db import get_db
from .errors import error_response
import logging

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/sync")
async def sync_subscriptions():
    stripe_mod = get_stripe()
    if stripe_mod is None:
        return error_response("Stripe is not configured", 503)
    logger.info("Starting subscription sync")
    try:
        summary = SubscriptionSync(stripe_mod, get_db()).run()
    except Exception as e:
        logger.error(f"Subscription sync failed: {e}", exc_info=True)
        return error_response("Failed to sync subscriptions", details=str(e))
    logger.info(f"Subscription sync complete: {summary.to_dict()}")
    return {"success": True, "summary": summary.to_dict()}


@router.get("/status")
async def subscription_status(userId: Optional[str] = Query(default=None)):
    if not userId:
        raise HTTPException(status_code=400, detail="User ID is required")
    db = get_db()
    try:
        active = db.get_latest_subscription(userId, status="active")
        if active:
            return {"has_subscription": True, "subscription": active}
        latest = db.get_latest_subscription(userId)
    except Exception as e:
        logger.error(f"Error fetching subscription: {e}")
        return error_response("Error fetching subscription")
    return {"has_subscription": False, "subscription": latest}


@router.post("/create")
async def create_subscription(body: SubscriptionCreate):
    if not (body.userId and body.planId):
        raise HTTPException(status_code=400, detail="User ID and Plan ID are required")
    start, end = new_period()
    row = {
        "user_id": body.userId,
        "plan_id": body.planId,
        "stripe_customer_id": body.stripeCustomerId,
        "status": "active",
        "current_period_start": start,
        "current_period_end": end,
        "created_at": start,
        "updated_at": start,
    }
    try:
        get_db().insert_subscriptions([row])
    except Exception as e:
        logger.error(f"Error creating subscription: {e}")
        return error_response(str(e))
    return {"success": True}


@router.post("/create-portal-session")
async def create_portal_session(body: PortalSessionRequest):
    if not body.userId:
        raise HTTPException(status_code=400, detail="User ID is required")
    stripe_mod = get_stripe()
    if stripe_mod is None:
        return error_response("Payment processing is currently unavailable", 503)

    subscription = get_db().get_latest_subscription(body.userId)
    customer_id = (subscription or {}).get("stripe_customer_id")
    if not customer_id:
        raise HTTPException(status_code=404, detail="No Stripe customer found for this user")

    try:
        session = stripe_mod.billing_portal.Session.create(
            customer=customer_id,
            return_url=body.returnUrl or f"{app_domain()}/dashboard/settings",
        )
    except Exception as e:
        logger.error(f"Error creating Stripe portal session: {e}")
        return error_response("Failed to create portal session")
    return {"url": session["url"]}
