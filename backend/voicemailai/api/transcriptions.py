from fastapi import APIRouter, Query
from typing import Optional
from ..db import get_db
from .errors import error_response
import logging

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("")
async def list_transcriptions(clientId: Optional[str] = Query(default=None)):
    logger.info(f"Fetching transcriptions {'for client: ' + clientId if clientId else 'for all clients'}")
    try:
        rows = get_db().list_transcriptions(clientId)
    except Exception as e:
        logger.error(f"Error fetching transcriptions: {e}")
        return error_response("Failed to fetch transcriptions")

    transcriptions = []
    for row in rows:
        item = dict(row)
        # Clients iterate over transcript lines
        if not isinstance(item.get("transcript"), list):
            item["transcript"] = []
        transcriptions.append(item)
    logger.info(f"Found {len(transcriptions)} transcriptions")
    return {"transcriptions": transcriptions}
