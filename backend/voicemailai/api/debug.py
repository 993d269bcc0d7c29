from fastapi import APIRouter, Depends
from ..db import get_db
from .dev import require_development
import os
import logging

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(require_development)])


@router.get("/config")
async def debug_config():
    url = os.getenv("SUPABASE_URL")
    return {
        "supabase": {
            "hasUrl": bool(url),
            "hasServiceKey": bool(os.getenv("SUPABASE_SERVICE_ROLE_KEY")),
            "url": url[:30] + "..." if url else "missing",
        },
        "stripe": {
            "hasSecretKey": bool(os.getenv("STRIPE_SECRET_KEY")),
            "hasWebhookSecret": bool(os.getenv("STRIPE_WEBHOOK_SECRET")),
        },
        "appEnv": os.getenv("APP_ENV", "development"),
    }


@router.get("/supabase-test")
async def supabase_test():
    logger.info("Testing store connection...")
    db = get_db()
    ok, message = db.ping()
    return {
        "success": True,
        "client_created": True,
        "backend": type(db).__name__,
        "query_test": message,
        "message": "Supabase client is working" if ok else "Client created but query failed (normal if table does not exist)",
    }
