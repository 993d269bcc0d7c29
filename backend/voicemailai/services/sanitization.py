"""
Input sanitization for the agent chat endpoint.

Prompt injection heuristics, HTML cleaning of model output and a
fixed-window rate limiter keyed by endpoint and caller.
"""

from dataclasses import dataclass, field
from html.parser import HTMLParser
from typing import Any, Dict, Iterable, List, Optional, Tuple
import html
import logging
import re
import time

logger = logging.getLogger(__name__)

MAX_PROMPT_LENGTH = 2000
HIGH_RISK_THRESHOLD = 3

INJECTION_PATTERNS = [
    # Role / system prompt assignment
    r"\b(system|assistant|user)\s*[:=]\s*",
    r"\b(prompt|instruction|role)\s*[:=]\s*",
    # Command injection
    r"\b(ignore|forget|disregard)\s+(previous|above|all|everything)",
    r"\bnow\s+(act|behave|pretend|roleplay)\s+as",
    r"\byou\s+are\s+(now|no\s+longer)",
    # Data extraction
    r"\b(show|display|print|output|reveal)\s+(your|the)\s+(prompt|instruction|system)",
    r"\btell\s+me\s+(about\s+)?(your|the)\s+(prompt|instruction|role)",
    # Overrides
    r"\boverride\s+(security|safety|filter)",
    r"\bbypass\s+(filter|security|safety)",
    # Social engineering
    r"\bpretend\s+(this|that)\s+is",
    r"\bimagine\s+(if|that)\s+you",
    # Code execution
    r"<script[\s\S]*?</script>",
    r"javascript\s*:",
    r"on\w+\s*=",
    # SQL
    r"('\s*(or|and)\s*')|('\s*(union|select|insert|update|delete|drop)\s+)",
    # XSS
    r"<[^>]*?(javascript|vbscript|onload|onerror|onclick).*?>",
]

SUSPICIOUS_KEYWORDS = [
    "system prompt",
    "ignore instructions",
    "act as",
    "pretend to be",
    "you are now",
    "new instructions",
    "override",
    "jailbreak",
]

_COMPILED = [re.compile(p, re.IGNORECASE) for p in INJECTION_PATTERNS]
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")
_SCRIPT_BLOCK = re.compile(r"<script[\s\S]*?</script>", re.IGNORECASE)
_JS_PROTOCOL = re.compile(r"javascript\s*:", re.IGNORECASE)
_EVENT_HANDLER = re.compile(r"on\w+\s*=", re.IGNORECASE)
_UNSAFE_PROTOCOLS = re.compile(r"(javascript|data|vbscript)\s*:", re.IGNORECASE)

DEFAULT_ALLOWED_TAGS = ("p", "br", "strong", "em", "u", "i", "span")
RESPONSE_ALLOWED_TAGS = ("p", "br", "strong", "em", "ul", "ol", "li")
FORBIDDEN_TAGS = {"script", "style", "iframe", "object", "embed"}
VOID_TAGS = {"br"}


@dataclass
class InjectionCheck:
    is_injection: bool
    patterns: List[str] = field(default_factory=list)
    risk_level: str = "low"


@dataclass
class SanitizedPrompt:
    text: str
    blocked: bool
    reason: Optional[str] = None


def detect_prompt_injection(text: str) -> InjectionCheck:
    if not text or not isinstance(text, str):
        return InjectionCheck(is_injection=False)

    found: List[str] = []
    for pattern in _COMPILED:
        if pattern.search(text):
            found.append(pattern.pattern)

    lower = text.lower()
    for keyword in SUSPICIOUS_KEYWORDS:
        if keyword in lower:
            found.append(keyword)

    risk = "low"
    if len(found) >= HIGH_RISK_THRESHOLD:
        risk = "high"
    elif found:
        risk = "medium"
    return InjectionCheck(is_injection=bool(found), patterns=found, risk_level=risk)


def sanitize_prompt_input(text: str) -> SanitizedPrompt:
    """Block high-risk prompts, otherwise return a cleaned, length-capped copy."""
    if not text or not isinstance(text, str):
        return SanitizedPrompt(text="", blocked=False)

    check = detect_prompt_injection(text)
    if check.is_injection and check.risk_level == "high":
        return SanitizedPrompt(text="", blocked=True, reason="Potential prompt injection detected")

    cleaned = _CONTROL_CHARS.sub("", text.strip())
    cleaned = re.sub(r"\s+", " ", cleaned)[:MAX_PROMPT_LENGTH]
    cleaned = _SCRIPT_BLOCK.sub("", cleaned)
    cleaned = _JS_PROTOCOL.sub("", cleaned)
    cleaned = _EVENT_HANDLER.sub("", cleaned)
    return SanitizedPrompt(text=cleaned, blocked=False)


class _AllowListHTML(HTMLParser):
    def __init__(self, allowed_tags: Iterable[str]) -> None:
        super().__init__(convert_charrefs=True)
        self.allowed = {t.lower() for t in allowed_tags}
        self.out: List[str] = []
        self._skip_depth = 0

    def handle_starttag(self, tag: str, attrs: List[Tuple[str, Optional[str]]]) -> None:
        if tag in FORBIDDEN_TAGS:
            self._skip_depth += 1
            return
        if self._skip_depth == 0 and tag in self.allowed:
            # attributes are never carried over
            self.out.append(f"<{tag}>")

    def handle_startendtag(self, tag: str, attrs: List[Tuple[str, Optional[str]]]) -> None:
        if self._skip_depth == 0 and tag in self.allowed:
            self.out.append(f"<{tag}>")

    def handle_endtag(self, tag: str) -> None:
        if tag in FORBIDDEN_TAGS:
            self._skip_depth = max(0, self._skip_depth - 1)
            return
        if self._skip_depth == 0 and tag in self.allowed and tag not in VOID_TAGS:
            self.out.append(f"</{tag}>")

    def handle_data(self, data: str) -> None:
        if self._skip_depth == 0:
            self.out.append(html.escape(data, quote=False))

    def handle_comment(self, data: str) -> None:
        pass


def sanitize_html(content: str, allowed_tags: Iterable[str] = DEFAULT_ALLOWED_TAGS) -> str:
    if not content or not isinstance(content, str):
        return ""
    parser = _AllowListHTML(allowed_tags)
    try:
        parser.feed(content)
        parser.close()
    except Exception as e:
        logger.error(f"HTML sanitization failed: {e}")
        return ""
    return "".join(parser.out)


def sanitize_ai_response(text: str) -> str:
    cleaned = sanitize_html(text, RESPONSE_ALLOWED_TAGS)
    return _UNSAFE_PROTOCOLS.sub("", cleaned)


@dataclass
class RateLimitResult:
    allowed: bool
    remaining: int
    reset_at: float


class RateLimiter:
    """Fixed-window counter per ``endpoint:identifier``. Process-local."""

    def __init__(self, max_requests: int = 10, window_seconds: float = 60.0, max_entries: int = 10000) -> None:
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.max_entries = max_entries
        self._entries: Dict[str, Dict[str, float]] = {}

    def check(self, identifier: str, endpoint: str = "default") -> RateLimitResult:
        key = f"{endpoint}:{identifier}"
        now = time.monotonic()
        entry = self._entries.get(key)
        if entry is None or now > entry["reset_at"]:
            entry = {"count": 0, "reset_at": now + self.window_seconds}

        if entry["count"] >= self.max_requests:
            return RateLimitResult(allowed=False, remaining=0, reset_at=entry["reset_at"])

        entry["count"] += 1
        self._entries[key] = entry
        if len(self._entries) > self.max_entries:
            self.cleanup()
        return RateLimitResult(
            allowed=True,
            remaining=self.max_requests - int(entry["count"]),
            reset_at=entry["reset_at"],
        )

    def retry_after(self, result: RateLimitResult) -> int:
        return max(1, int(result.reset_at - time.monotonic()) + 1)

    def cleanup(self) -> int:
        now = time.monotonic()
        expired = [k for k, v in self._entries.items() if now > v["reset_at"]]
        for k in expired:
            del self._entries[k]
        return len(expired)

    def reset(self) -> None:
        self._entries.clear()


def log_security_event(
    event_type: str,
    endpoint: str,
    severity: str,
    user_id: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    entry = {
        "type": event_type,
        "endpoint": endpoint,
        "user_id": f"user_{user_id[:8]}..." if user_id else "anonymous",
        "severity": severity,
        "details": details,
    }
    logger.warning(f"Security event: {entry}")
    return entry
