import logging

import ollama

from skillsync.constants import LLM_TIMEOUT, OLLAMA_MODEL
from skillsync.errors import GeneratorError

logger = logging.getLogger(__name__)


class OllamaClient:
    """
    A question generator backed by a local Ollama instance.
    """

    def __init__(self, model: str = OLLAMA_MODEL):
        try:
            # Connects to http://localhost:11434 unless OLLAMA_HOST is set
            self.client = ollama.AsyncClient(timeout=LLM_TIMEOUT)
            self.model = model
        except Exception as e:
            logger.error("Error configuring Ollama client: %s", e)
            self.client = None

    async def complete(self, system_prompt: str, user_prompt: str) -> str:
        if not self.client:
            raise GeneratorError("Ollama client is not configured.")

        try:
            response = await self.client.chat(
                model=self.model,
                format="json",
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
            )
        except Exception as e:
            logger.error("An error occurred while calling Ollama: %s", e)
            raise GeneratorError(f"Could not generate questions with Ollama: {e}") from e

        content = response["message"]["content"]
        if not content:
            raise GeneratorError("No content returned from Ollama")
        return content
