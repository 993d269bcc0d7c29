from fastapi import APIRouter, Request, Response
from ..services.stripe_client import get_stripe
from ..services.billing_events import process_event
from .errors import error_response
import os, json
import logging

# Set up logger
logger = logging.getLogger(__name__)

router = APIRouter()


def parse_event(stripe_mod, payload: bytes, signature: str):
    """Verify and decode the event, or decode it unverified when no secret is configured.

    Once ``STRIPE_WEBHOOK_SECRET`` is set every event must carry a valid signature.
    Raises ValueError with the client-facing message on failure.
    """
    secret = os.getenv("STRIPE_WEBHOOK_SECRET")
    if secret:
        if not signature:
            logger.error("Webhook signature header missing")
            raise ValueError("Webhook signature verification failed")
        try:
            event = stripe_mod.Webhook.construct_event(payload, signature, secret)
        except Exception as e:
            logger.error(f"Webhook signature verification failed: {e}")
            raise ValueError("Webhook signature verification failed")
        logger.info("Webhook signature verified successfully")
        return event

    logger.warning("No webhook secret available, skipping signature verification")
    try:
        return json.loads(payload.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        logger.error("Invalid webhook payload")
        raise ValueError("Invalid webhook payload")


@router.post("")
async def stripe_webhook(request: Request):
    logger.info("Received Stripe webhook event")
    stripe_mod = get_stripe()
    if stripe_mod is None:
        return error_response("Payment processing is currently unavailable", 503)

    payload = await request.body()
    signature = request.headers.get("stripe-signature", "")
    try:
        event = parse_event(stripe_mod, payload, signature)
    except ValueError as e:
        return error_response(str(e), 400)

    try:
        process_event(event)
    except Exception as e:
        logger.error(f"Webhook error: {e}", exc_info=True)
        return error_response("Internal server error")
    return {"received": True}


@router.head("")
async def stripe_webhook_head():
    return Response(status_code=200)
