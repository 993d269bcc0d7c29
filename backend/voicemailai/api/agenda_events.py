from fastapi import APIRouter, HTTPException, Query
from typing import Any, Dict, Optional
from ..schemas.pydantic_schemas import AgendaEventCreate, AgendaEventUpdate
from ..db import get_db, utc_now
from .errors import error_response
import logging

logger = logging.getLogger(__name__)

router = APIRouter()

# request field -> column
FIELD_MAP = {
    "title": "title",
    "description": "description",
    "startTime": "start_time",
    "endTime": "end_time",
    "location": "location",
    "attendees": "attendees",
    "allDay": "all_day",
    "priority": "priority",
    "color": "color",
    "reminderMinutes": "reminder_minutes",
    "recurrenceType": "recurrence_type",
}


@router.get("")
async def list_events(userId: Optional[str] = Query(default=None)):
    if not userId:
        raise HTTPException(status_code=400, detail="userId is required")
    try:
        events = get_db().list_agenda_events(userId)
    except Exception as e:
        logger.error(f"Error fetching agenda events: {e}")
        return error_response("Failed to fetch events")
    return {"events": events}


@router.post("")
async def create_event(body: AgendaEventCreate):
    if not (body.title and body.startTime and body.endTime and body.userId):
        raise HTTPException(status_code=400, detail="title, startTime, endTime, and userId are required")
    now = utc_now()
    row = {
        "title": body.title,
        "description": body.description or None,
        "start_time": body.startTime,
        "end_time": body.endTime,
        "location": body.location or None,
        "attendees": body.attendees or None,
        "all_day": body.allDay or False,
        "priority": body.priority or "medium",
        "color": body.color or "blue",
        "status": "confirmed",
        "reminder_minutes": body.reminderMinutes or 15,
        "recurrence_type": body.recurrenceType or "none",
        "user_id": body.userId,
        "created_at": now,
        "updated_at": now,
    }
    try:
        event = get_db().create_agenda_event(row)
    except Exception as e:
        logger.error(f"Error creating agenda event: {e}")
        return error_response("Failed to create event")
    logger.info(f"Created agenda event {event.get('id')} for user {body.userId}")
    return {"event": event}


@router.put("")
async def update_event(body: AgendaEventUpdate):
    if not (body.id and body.userId):
        raise HTTPException(status_code=400, detail="id and userId are required")
    provided = body.model_dump(exclude_unset=True)
    fields: Dict[str, Any] = {col: provided[key] for key, col in FIELD_MAP.items() if key in provided}
    fields["updated_at"] = utc_now()
    try:
        event = get_db().update_agenda_event(body.id, body.userId, fields)
    except Exception as e:
        logger.error(f"Error updating agenda event: {e}")
        return error_response("Failed to update event")
    if not event:
        raise HTTPException(status_code=404, detail="Event not found or unauthorized")
    return {"event": event}


@router.delete("")
async def delete_event(id: Optional[str] = Query(default=None), userId: Optional[str] = Query(default=None)):
    if not (id and userId):
        raise HTTPException(status_code=400, detail="id and userId are required")
    try:
        event = get_db().soft_delete_agenda_event(id, userId)
    except Exception as e:
        logger.error(f"Error deleting agenda event: {e}")
        return error_response("Failed to delete event")
    if not event:
        raise HTTPException(status_code=404, detail="Event not found or unauthorized")
    logger.info(f"Soft-deleted agenda event {id}")
    return {"success": True}
