from fastapi import APIRouter, Cookie, HTTPException
from typing import Optional
from ..schemas.pydantic_schemas import ProfileRead, ProfileUpdate
from ..db import get_db
from .errors import error_response
import logging

logger = logging.getLogger(__name__)

router = APIRouter()


def _require_user(user_id: Optional[str]) -> str:
    if not user_id:
        logger.error("No user ID found in cookies")
        raise HTTPException(status_code=401, detail="Unauthorized")
    return user_id


@router.get("", response_model=ProfileRead)
async def get_profile(userId: Optional[str] = Cookie(default=None)):
    user_id = _require_user(userId)
    try:
        profile = get_db().get_profile(user_id)
    except Exception as e:
        logger.error(f"Error fetching user profile: {e}")
        return error_response(str(e))
    if not profile:
        logger.info(f"Profile not found for {user_id}, returning default profile")
        return ProfileRead()
    return ProfileRead(
        name=profile.get("name") or "",
        companyName=profile.get("company_name") or "",
        mobileNumber=profile.get("mobile_number") or "",
        information=profile.get("information") or "",
        calUsername=profile.get("cal_username") or "",
        calApiKey=profile.get("cal_api_key") or "",
        calEventTypeId=profile.get("cal_event_type_id") or "",
    )


@router.put("")
async def update_profile(body: ProfileUpdate, userId: Optional[str] = Cookie(default=None)):
    user_id = _require_user(userId)
    fields = {
        "name": body.name or "",
        "company_name": body.companyName or "",
        "mobile_number": body.mobileNumber or "",
        "information": body.information or "",
    }
    cal_fields = {
        "cal_username": body.calUsername or "",
        "cal_api_key": body.calApiKey or "",
        "cal_event_type_id": body.calEventTypeId or "",
    }
    try:
        get_db().save_profile(user_id, fields, cal_fields)
    except Exception as e:
        logger.error(f"Error updating user profile: {e}")
        return error_response(
            getattr(e, "message", None) or str(e),
            details=getattr(e, "details", None),
            hint=getattr(e, "hint", None),
        )
    logger.info(f"Profile updated for user {user_id}")
    return {"success": True}
