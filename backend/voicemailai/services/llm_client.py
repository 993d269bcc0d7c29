import os
import json
import logging
from typing import Any, Dict, List, Optional
from tenacity import retry, wait_exponential, stop_after_attempt
from openai import AsyncOpenAI

logger = logging.getLogger(__name__)

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/openai/"
OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"

AGENT_SYSTEM_PROMPT = (
    "Je bent een AI business assistant voor een Nederlandse ZZP'er. Je helpt met klantenservice "
    "(vragen over diensten, prijzen en beschikbaarheid), het genereren van concrete acties op basis "
    "van gesprekken en voicemails, en business management (planning, follow-ups, administratie).\n\n"
    "Spreek Nederlands, wees professioneel maar toegankelijk, gebruik de business context voor "
    "accurate antwoorden en stel proactief vervolgstappen voor.\n\n"
    "Actie types: callback, email, meeting, quote, reminder, knowledge_update.\n\n"
    "Antwoord altijd met exact dit JSON object:\n"
    "{\n  \"message\": \"<je antwoord aan de ZZP'er>\",\n  \"actions\": [\n    {\n"
    "      \"type\": \"callback|email|meeting|quote|reminder|knowledge_update\",\n"
    "      \"title\": \"<korte titel>\",\n      \"description\": \"<beschrijving>\",\n"
    "      \"customerName\": \"<naam klant of null>\",\n      \"priority\": \"high|medium|low\",\n"
    "      \"suggestedTiming\": \"<wanneer>\",\n      \"content\": \"<email tekst, offerte details, ...>\"\n"
    "    }\n  ]\n}"
)


def build_context_block(context: Optional[Dict[str, Any]]) -> str:
    """Render the optional business / history context into the system prompt."""
    if not context:
        return ""
    parts: List[str] = []
    business = context.get("business") or {}
    if business:
        parts.append(
            "BUSINESS INFORMATIE:\n"
            f"- Naam: {business.get('name') or ''}\n"
            f"- Diensten: {', '.join(business.get('services') or [])}\n"
            f"- Prijzen: {json.dumps(business.get('pricing') or {})}\n"
            f"- Beschikbaarheid: {business.get('availability') or ''}\n"
            f"- Contact: {business.get('contact') or ''}"
        )
    recent = context.get("recentTranscriptions") or []
    if recent:
        lines = [f"- {t.get('customerName', 'Onbekend')}: {t.get('transcriptSummary', '')}" for t in recent]
        parts.append("RECENTE GESPREKKEN:\n" + "\n".join(lines))
    actions = context.get("activeActions") or []
    if actions:
        lines = [f"- {a.get('title', '')}: {a.get('description', '')}" for a in actions]
        parts.append("ACTIEVE ACTIES:\n" + "\n".join(lines))
    return "\n\n".join(parts)


class LLMClient:
    def __init__(self) -> None:
        # Gemini first, then OpenRouter, then OpenAI
        gemini_key = os.getenv("GEMINI_API_KEY")
        openrouter_key = os.getenv("OPEN_ROUTER_API")
        openai_key = os.getenv("OPENAI_API_KEY")

        if gemini_key and gemini_key.strip():
            self.client = AsyncOpenAI(api_key=gemini_key, base_url=GEMINI_BASE_URL)
            self.model = os.getenv("GEMINI_MODEL", "gemini-1.5-flash")
            self.simulated = False
            logger.info("LLMClient: using Gemini")
        elif openrouter_key and openrouter_key.strip():
            self.client = AsyncOpenAI(api_key=openrouter_key, base_url=OPENROUTER_BASE_URL)
            self.model = os.getenv("OPENROUTER_MODEL", "google/gemini-flash-1.5-8b")
            self.simulated = False
            logger.info("LLMClient: using OpenRouter")
        elif openai_key and openai_key.strip():
            self.client = AsyncOpenAI(api_key=openai_key)
            self.model = "gpt-4o-mini"
            self.simulated = False
            logger.info("LLMClient: using OpenAI")
        else:
            self.client = None
            self.model = "simulated"
            self.simulated = True
            logger.info("LLMClient: using simulated responses (no API keys)")

    @retry(wait=wait_exponential(min=1, max=10), stop=stop_after_attempt(3), reraise=True)
    async def agent_chat(self, message: str, context: Optional[Dict[str, Any]] = None) -> str:
        """Return the raw model text for one agent turn."""
        if self.simulated:
            return self._simulated_reply(message)

        context_block = build_context_block(context)
        system_prompt = AGENT_SYSTEM_PROMPT + (f"\n\nCONTEXT:\n{context_block}" if context_block else "")
        chat = await self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": message},
            ],
            temperature=0.7,
            max_tokens=2000,
        )
        content = chat.choices[0].message.content if chat.choices else None
        if not content:
            raise RuntimeError("No response from AI")
        return content

    def _simulated_reply(self, message: str) -> str:
        text = message.lower()
        actions: List[Dict[str, Any]] = []
        if "terugbel" in text or "bel" in text:
            actions.append({
                "type": "callback",
                "title": "Klant terugbellen",
                "description": f"Terugbellen naar aanleiding van: {message[:80]}",
                "priority": "high",
                "suggestedTiming": "Vandaag",
            })
        elif "offerte" in text:
            actions.append({
                "type": "quote",
                "title": "Offerte opstellen",
                "description": f"Offerte voorbereiden: {message[:80]}",
                "priority": "medium",
                "suggestedTiming": "Binnen 2 werkdagen",
            })
        return json.dumps({"message": "Ik heb je bericht ontvangen en een voorstel gemaakt.", "actions": actions})
