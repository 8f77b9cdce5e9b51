from typing import Optional

import httpx

from relay.logging_config import get_logger
from relay.services.llm.base import LLMProvider, LLMProviderError, LLMResponse

logger = get_logger("llm.gemini")


class GeminiProvider(LLMProvider):
    """Google Gemini generateContent provider."""

    BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"

    def __init__(self, api_key: str, default_model: str = "gemini-2.0-flash", timeout_seconds: float = 60.0):
        self.api_key = api_key
        self.default_model = default_model
        self.timeout_seconds = timeout_seconds

    async def generate(
        self,
        prompt: str,
        model: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 1000,
    ) -> LLMResponse:
        model = model or self.default_model
        payload = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {"temperature": temperature, "maxOutputTokens": max_tokens},
        }
        logger.debug(f"Gemini request: model={model}, prompt_chars={len(prompt)}")

        async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
            response = await client.post(
                self.BASE_URL.format(model=model),
                headers={"x-goog-api-key": self.api_key, "Content-Type": "application/json"},
                json=payload,
            )

        logger.debug(f"Gemini response status: {response.status_code}")
        if response.status_code != 200:
            logger.error(f"Gemini error: {response.text}")
            raise LLMProviderError("Gemini", response.status_code, response.text)

        data = response.json()
        parts = []
        candidates = data.get("candidates") or []
        if candidates:
            content = candidates[0].get("content") or {}
            parts = [part.get("text", "") for part in content.get("parts") or []]
        text = "".join(parts)
        logger.debug(f"Gemini content: {text[:100] if text else 'EMPTY'}")

        return LLMResponse(content=text, model=data.get("modelVersion", model), usage=data.get("usageMetadata"))
