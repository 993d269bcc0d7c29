from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from ..schemas.pydantic_schemas import AgentChatRequest, AgentChatResponse
from ..services.llm_client import LLMClient
from ..services.agent_response import extract_agent_payload
from ..services.sanitization import RateLimiter, log_security_event, sanitize_prompt_input
from ..db import now_ms
from .errors import error_response
import os
import logging

logger = logging.getLogger(__name__)

router = APIRouter()

ENDPOINT = "agent-chat"
FALLBACK_MESSAGE = "Sorry, ik ondervind momenteel technische problemen. Probeer het over een moment opnieuw."

limiter = RateLimiter(max_requests=int(os.getenv("AGENT_CHAT_RATE_LIMIT", "10")), window_seconds=60)


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    return request.client.host if request.client else "unknown"


@router.post("", response_model=AgentChatResponse)
async def agent_chat(body: AgentChatRequest, request: Request):
    ip = client_ip(request)
    rate = limiter.check(ip, ENDPOINT)
    if not rate.allowed:
        log_security_event("rate_limit", ENDPOINT, "medium", details={"ip": ip})
        return JSONResponse(
            status_code=429,
            content={"error": "Too many requests"},
            headers={"Retry-After": str(limiter.retry_after(rate))},
        )

    sanitized = sanitize_prompt_input(body.message)
    if sanitized.blocked or not sanitized.text:
        log_security_event(
            "injection_attempt",
            ENDPOINT,
            "high",
            details={"sessionId": body.sessionId, "reason": sanitized.reason},
        )
        return error_response("Invalid input detected", 400)

    context = body.context.model_dump(exclude_none=True) if body.context else None
    llm = LLMClient()
    try:
        raw = await llm.agent_chat(sanitized.text, context)
    except Exception as e:
        logger.error(f"Agent chat error: {e}")
        return JSONResponse(
            status_code=500,
            content={"message": FALLBACK_MESSAGE, "actions": [], "error": True},
        )

    payload = extract_agent_payload(raw)
    logger.info(f"Agent reply for session {body.sessionId}: {len(payload['actions'])} actions")
    return {
        "message": payload["message"],
        "actions": payload["actions"],
        "sessionId": body.sessionId,
        "timestamp": now_ms(),
    }


@router.get("")
async def agent_health():
    return {"status": "Agent API is running", "model": LLMClient().model, "timestamp": now_ms()}
