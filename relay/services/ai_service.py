import json
import re
from dataclasses import dataclass, field
from typing import Optional

from relay.config import Settings
from relay.logging_config import get_logger
from relay.services.llm import GeminiProvider, LLMProvider, OpenAIProvider

logger = get_logger("ai_service")

NO_ACTION = "none"
AI_ERROR_REPLY = "Sorry, I couldn't process your message."

PROMPT_TEMPLATE = """
You are a helpful WhatsApp personal assistant. Analyze the user's message and respond with:
- a natural, conversational reply
- a structured "action" and "params" for integrations and automations

Available actions:
1. calendar.add - Add calendar events (params: title, date, time, description)
2. notes.create - Create notes (params: title, content, tags)
3. reminder.add - Set reminders (params: text, date, time, priority)
4. email.send - Send emails (params: to, subject, body)
5. none - No action required

User message: "{message}"

Respond ONLY in JSON:
{{
  "reply": "Your conversational response to the user",
  "action": "calendar.add|notes.create|reminder.add|email.send|none",
  "params": {{ }}
}}
"""

CODE_FENCE_PATTERN = re.compile(r"```json\n?|```")
JSON_OBJECT_PATTERN = re.compile(r"\{.*\}", re.DOTALL)


@dataclass
class AIResponse:
    reply: str
    action: str = NO_ACTION
    params: dict = field(default_factory=dict)

    def as_dict(self) -> dict:
        return {"reply": self.reply, "action": self.action, "params": self.params}


def build_prompt(message: str) -> str:
    return PROMPT_TEMPLATE.format(message=message)


def parse_ai_output(raw: str) -> AIResponse:
    """Turn raw model output into an AIResponse; unparsable output becomes a plain reply."""
    cleaned = CODE_FENCE_PATTERN.sub("", raw or "").strip()

    payload = None
    try:
        payload = json.loads(cleaned)
    except Exception:
        match = JSON_OBJECT_PATTERN.search(cleaned)
        if match:
            try:
                payload = json.loads(match.group(0))
            except Exception:
                payload = None

    if not isinstance(payload, dict):
        return AIResponse(reply=raw or "")

    reply = payload.get("reply")
    if not isinstance(reply, str) or not reply.strip():
        reply = raw or ""
    action = payload.get("action")
    if not isinstance(action, str) or not action.strip():
        action = NO_ACTION
    params = payload.get("params")
    if not isinstance(params, dict):
        params = {}
    return AIResponse(reply=reply, action=action.strip(), params=params)


def mock_response(message: str) -> AIResponse:
    """Deterministic answers used when no provider key is configured."""
    if "email" in (message or "").lower():
        return AIResponse(
            reply="I'll draft that email for you right away.",
            action="email.send",
            params={
                "to": "recipient@example.com",
                "subject": "Example Subject",
                "body": "This is a test email body.",
            },
        )
    return AIResponse(reply="Hello! This is a mock response.")


def get_llm_provider(settings: Settings) -> Optional[LLMProvider]:
    if settings.llm_provider == "openai":
        if not settings.openai_api_key:
            return None
        return OpenAIProvider(
            settings.openai_api_key,
            default_model=settings.openai_model,
            timeout_seconds=settings.llm_timeout_seconds,
        )
    if not settings.gemini_api_key:
        return None
    return GeminiProvider(
        settings.gemini_api_key,
        default_model=settings.gemini_model,
        timeout_seconds=settings.llm_timeout_seconds,
    )


class AIResponder:
    def __init__(self, provider: Optional[LLMProvider]):
        self.provider = provider
        if provider is None:
            logger.warning("No LLM API key provided. Using mock responses for local testing.")

    @property
    def configured(self) -> bool:
        return self.provider is not None

    async def complete(self, message: str) -> AIResponse:
        if self.provider is None:
            return mock_response(message)

        try:
            response = await self.provider.generate(build_prompt(message))
        except Exception as e:
            logger.error(f"LLM request failed: {e}", exc_info=True)
            return AIResponse(reply=AI_ERROR_REPLY)

        result = parse_ai_output(response.content)
        logger.info(
            "AI response parsed",
            extra={"context": {"model": response.model, "action": result.action}},
        )
        return result
