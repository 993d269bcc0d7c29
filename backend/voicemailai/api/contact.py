from fastapi import APIRouter
from ..schemas.pydantic_schemas import ContactForm
from ..db import get_db
from .errors import error_response
import logging

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("")
async def submit_contact(body: ContactForm):
    row = {
        "name": body.name,
        "email": body.email,
        "phone": body.phone or None,
        "company": body.company or None,
        "message": body.message,
        "status": "new",
    }
    try:
        saved = get_db().create_contact_submission(row)
    except Exception as e:
        logger.error(f"Error saving contact form: {e}")
        return error_response("Failed to save contact form", success=False, details=str(e))
    logger.info(f"Contact submission {saved['id']} saved")
    return {
        "success": True,
        "message": "Contact form saved successfully",
        "submission_id": saved["id"],
    }


@router.get("/check")
async def check_contact_submissions():
    try:
        submissions = get_db().list_contact_submissions(limit=5)
    except Exception as e:
        logger.error(f"Error fetching contact submissions: {e}")
        return error_response("Failed to fetch contact submissions", success=False, details=str(e))
    return {"success": True, "submissions": submissions}
