from fastapi import APIRouter, HTTPException
from ..schemas.pydantic_schemas import CheckoutRequest, StripeSessionRequest
from ..services.stripe_client import PLAN_IDS, as_dict, get_stripe, is_placeholder_price, price_id_for_plan
from ..services.billing_events import new_period
from ..services.environment import app_domain, dev_bypass_enabled
from ..db import get_db
from .errors import error_response
import logging

logger = logging.getLogger(__name__)

router = APIRouter()
session_router = APIRouter()


def record_dev_subscription(user_id: str, plan_id: str) -> None:
    start, end = new_period()
    try:
        get_db().insert_subscriptions([{
            "user_id": user_id,
            "plan_id": plan_id,
            "status": "active",
            "current_period_start": start,
            "current_period_end": end,
        }])
    except Exception as e:
        logger.warning(f"Failed to record subscription in development mode: {e}")


@router.post("")
async def create_checkout(body: CheckoutRequest):
    logger.info(f"Checkout request: plan={body.planId} user={body.userId}")
    if not body.planId:
        raise HTTPException(status_code=400, detail="Plan ID is required")
    if not body.userId:
        raise HTTPException(status_code=400, detail="User ID is required")
    if body.planId not in PLAN_IDS:
        raise HTTPException(status_code=400, detail="Invalid plan selected")

    stripe_mod = get_stripe()
    if stripe_mod is None:
        return error_response("Payment processing is currently unavailable", 503)

    domain = app_domain()
    price_id = price_id_for_plan(body.planId)
    bypass = dev_bypass_enabled()
    dev_url = f"{domain}/dashboard/order/success?plan={body.planId}"

    if bypass and is_placeholder_price(price_id):
        logger.info("Development mode: using direct success redirect instead of Stripe")
        record_dev_subscription(body.userId, body.planId)
        return {"dev_mode": True, "url": dev_url}

    try:
        session = stripe_mod.checkout.Session.create(
            payment_method_types=["card", "ideal"],
            line_items=[{"price": price_id, "quantity": 1}],
            mode="subscription",
            success_url=f"{domain}/dashboard/order/success?session_id={{CHECKOUT_SESSION_ID}}&plan={body.planId}",
            cancel_url=f"{domain}/dashboard/order?canceled=true",
            client_reference_id=body.userId,
            customer_email=body.email,
            metadata={"plan_id": body.planId, "user_id": body.userId, "email": body.email or ""},
        )
    except Exception as e:
        logger.error(f"Stripe checkout creation failed: {e}")
        if bypass:
            return {"dev_mode": True, "error_message": str(e), "url": dev_url}
        return error_response("An error occurred during checkout", message=str(e))

    logger.info(f"Checkout session created: {session['id']}")
    return {"url": session["url"]}


@session_router.post("")
async def get_checkout_session(body: StripeSessionRequest):
    if not body.sessionId:
        raise HTTPException(status_code=400, detail="Session ID is required")
    stripe_mod = get_stripe()
    if stripe_mod is None:
        return error_response("Payment processing is currently unavailable", 503)
    try:
        session = stripe_mod.checkout.Session.retrieve(body.sessionId)
    except Exception as e:
        logger.error(f"Error retrieving session: {e}")
        return error_response(str(e))
    return as_dict(session)
