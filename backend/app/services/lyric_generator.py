"""
OpenAI chat completion wrapper used to write song lyrics.
"""
import logging
from typing import Optional

from openai import AsyncOpenAI, OpenAIError

from app.core.config import OPENAI_MODEL, OPENAI_TIMEOUT_SECONDS, require_openai_key

logger = logging.getLogger(__name__)


class GenerationError(Exception):
    """The model call failed."""


class LyricGenerator:

    def __init__(self, client: Optional[AsyncOpenAI] = None, model: str = OPENAI_MODEL):
        self._client = client or AsyncOpenAI(api_key=require_openai_key(), timeout=OPENAI_TIMEOUT_SECONDS)
        self.model = model

    async def generate(self, system_prompt: str, user_prompt: str) -> str:
        """Return the model's answer, stripped. Empty string when the model returns nothing."""
        try:
            response = await self._client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
            )
        except OpenAIError as e:
            raise GenerationError(f"OpenAI request failed: {e}") from e

        if not response.choices:
            return ""
        return (response.choices[0].message.content or "").strip()
