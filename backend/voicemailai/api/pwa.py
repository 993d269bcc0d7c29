from fastapi import APIRouter, HTTPException, Query, Request, Response
from typing import Optional
from ..schemas.pydantic_schemas import PwaMessage
from ..services.offline_cache import get_offline_cache
import logging

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/message")
async def pwa_message(body: PwaMessage):
    try:
        return get_offline_cache().handle_message(body.type)
    except ValueError as e:
        logger.warning(f"Rejected cache message: {e}")
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/fetch")
async def pwa_fetch(request: Request, url: Optional[str] = Query(default=None)):
    if not url:
        raise HTTPException(status_code=400, detail="url is required")
    result = await get_offline_cache().fetch(url, "GET", request.headers.get("accept", ""))
    headers = {"X-Cache-Source": result.source}
    return Response(
        content=result.body,
        status_code=result.status,
        media_type=result.content_type or None,
        headers=headers,
    )
