import logging
import os
from typing import Optional, Protocol

import google.generativeai as genai

from skillsync.constants import GEMINI_MODEL, LLM_PROVIDER, LLM_TIMEOUT
from skillsync.errors import GeneratorError

logger = logging.getLogger(__name__)


class QuestionGenerator(Protocol):
    async def complete(self, system_prompt: str, user_prompt: str) -> str: ...


class GeminiClient:
    """
    A question generator backed by the Gemini API.
    """

    def __init__(self, api_key: Optional[str] = None, model: str = GEMINI_MODEL):
        try:
            genai.configure(api_key=api_key or os.getenv("GEMINI_API_KEY"))
            self.model = genai.GenerativeModel(model, generation_config={"response_mime_type": "application/json"})
        except Exception as e:
            logger.error("Error configuring Gemini API: %s", e)
            self.model = None

    async def complete(self, system_prompt: str, user_prompt: str) -> str:
        if not self.model:
            raise GeneratorError("Gemini API is not configured.")

        try:
            response = await self.model.generate_content_async(
                [system_prompt, user_prompt],
                request_options={"timeout": LLM_TIMEOUT},
            )
            content = response.text
        except Exception as e:
            logger.error("LLM Error: %s", e)
            raise GeneratorError(f"Could not generate questions with Gemini: {e}") from e

        if not content:
            raise GeneratorError("No content returned from Gemini")
        return content


def build_generator(provider: str = LLM_PROVIDER) -> QuestionGenerator:
    """
    Returns the generator for `provider` ("openai", "gemini" or "ollama").
    """
    provider = provider.lower()
    if provider == "gemini":
        return GeminiClient()
    if provider == "ollama":
        from skillsync.services.ollama_client import OllamaClient

        return OllamaClient()
    if provider == "openai":
        from skillsync.services.gpt_client import GPTClient

        return GPTClient()
    raise ValueError(f"Unknown LLM provider: {provider}")
