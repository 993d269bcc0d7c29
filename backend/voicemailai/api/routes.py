from fastapi import APIRouter
from .agenda_events import router as agenda_events_router
from .agent_chat import router as agent_chat_router
from .notifications import router as notifications_router
from .user_profile import router as user_profile_router
from .stripe_webhook import router as stripe_webhook_router
from .subscriptions import router as subscriptions_router
from .checkout import router as checkout_router, session_router as stripe_session_router
from .transcriptions import router as transcriptions_router
from .contact import router as contact_router
from .dev import router as dev_router
from .debug import router as debug_router
from .pwa import router as pwa_router

api_router = APIRouter()
api_router.include_router(agenda_events_router, prefix="/agenda-events", tags=["agenda"])
api_router.include_router(agent_chat_router, prefix="/agent/chat", tags=["agent"])
api_router.include_router(notifications_router, prefix="/notifications", tags=["notifications"])
api_router.include_router(user_profile_router, prefix="/user/profile", tags=["user"])
api_router.include_router(stripe_webhook_router, prefix="/webhook/stripe", tags=["stripe"])
api_router.include_router(subscriptions_router, prefix="/subscriptions", tags=["subscriptions"])
api_router.include_router(checkout_router, prefix="/checkout", tags=["stripe"])
api_router.include_router(stripe_session_router, prefix="/stripe/session", tags=["stripe"])
api_router.include_router(transcriptions_router, prefix="/transcriptions", tags=["transcriptions"])
api_router.include_router(contact_router, prefix="/contact", tags=["contact"])
api_router.include_router(dev_router, prefix="/dev", tags=["dev"])
api_router.include_router(debug_router, prefix="/debug", tags=["dev"])
api_router.include_router(pwa_router, prefix="/pwa", tags=["pwa"])
