from typing import Any, Dict, List, Optional
import json
import re

from .sanitization import sanitize_ai_response


ACTION_TYPES = {"callback", "email", "meeting", "quote", "reminder", "knowledge_update"}
PRIORITIES = {"high", "medium", "low"}
ACTION_TEXT_FIELDS = ["title", "description", "customerName", "suggestedTiming", "content"]

_FENCE = re.compile(r"```(?:json)?\s*(\{[\s\S]*?\})\s*```", re.IGNORECASE)


def _try_load(text: str) -> Optional[Dict[str, Any]]:
    try:
        value = json.loads(text)
    except (ValueError, TypeError):
        return None
    return value if isinstance(value, dict) else None


def extract_json_object(raw: str) -> Optional[Dict[str, Any]]:
    """Find a JSON object in model output: bare, fenced, or the outermost brace span."""
    if not raw:
        return None
    parsed = _try_load(raw.strip())
    if parsed is not None:
        return parsed
    fence = _FENCE.search(raw)
    if fence:
        parsed = _try_load(fence.group(1))
        if parsed is not None:
            return parsed
    start, end = raw.find("{"), raw.rfind("}")
    if start != -1 and end > start:
        return _try_load(raw[start:end + 1])
    return None


def _clean_action(action: Any) -> Optional[Dict[str, Any]]:
    if not isinstance(action, dict) or action.get("type") not in ACTION_TYPES:
        return None
    cleaned: Dict[str, Any] = {"type": action["type"]}
    for key in ACTION_TEXT_FIELDS:
        value = action.get(key)
        if value is None:
            cleaned[key] = "" if key in ("title", "description") else None
        else:
            cleaned[key] = sanitize_ai_response(str(value))
    priority = str(action.get("priority") or "medium").lower()
    cleaned["priority"] = priority if priority in PRIORITIES else "medium"
    return cleaned


def extract_agent_payload(raw: str) -> Dict[str, Any]:
    parsed = extract_json_object(raw) or {}
    message = parsed.get("message")
    if not isinstance(message, str) or not message:
        message = raw
    actions: List[Dict[str, Any]] = []
    raw_actions = parsed.get("actions")
    if isinstance(raw_actions, list):
        for item in raw_actions:
            cleaned = _clean_action(item)
            if cleaned:
                actions.append(cleaned)
    return {"message": sanitize_ai_response(message), "actions": actions}
