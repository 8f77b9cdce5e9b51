from relay.services.llm.base import LLMProvider, LLMResponse
from relay.services.llm.gemini_provider import GeminiProvider
from relay.services.llm.openai_provider import OpenAIProvider

__all__ = ["LLMProvider", "LLMResponse", "GeminiProvider", "OpenAIProvider"]
