import logging
import os
from typing import Optional

import openai

from skillsync.constants import LLM_TIMEOUT, OPENAI_MODEL
from skillsync.errors import GeneratorError

logger = logging.getLogger(__name__)


class GPTClient:
    """
    A question generator backed by the OpenAI chat completions API.
    """

    def __init__(self, api_key: Optional[str] = None, model: str = OPENAI_MODEL):
        """
        Initializes the GPTClient and configures the OpenAI API.
        """
        try:
            # Single-shot calls: the SDK must not retry on its own
            self.client = openai.AsyncOpenAI(
                api_key=api_key or os.getenv("OPENAI_API_KEY"),
                timeout=LLM_TIMEOUT,
                max_retries=0,
            )
            self.model = model
        except Exception as e:
            logger.error("Error configuring OpenAI API: %s", e)
            self.client = None

    async def complete(self, system_prompt: str, user_prompt: str) -> str:
        """
        Sends one prompt and returns the raw completion text.

        Args:
            system_prompt (str): Instructions for the model.
            user_prompt (str): The generation request.
        Returns:
            str: Completion text, expected to hold JSON.
        """
        if not self.client:
            raise GeneratorError("OpenAI API is not configured. Check your OPENAI_API_KEY.")

        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                response_format={"type": "json_object"},
                temperature=0.7,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
            )
        except Exception as e:
            logger.error("An error occurred while calling the OpenAI API: %s", e)
            raise GeneratorError(f"Could not generate questions with OpenAI: {e}") from e

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise GeneratorError("No content returned from OpenAI")
        return content
