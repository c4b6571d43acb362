"""
OpenAI chat-completions wrapper used for the trade-signal analysis.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from openai import AsyncOpenAI, OpenAIError

from tokenpulse.config import MAX_COMPLETION_TOKENS, Settings
from tokenpulse.exceptions import ConfigurationError, LLMError

logger = logging.getLogger(__name__)


class LLMClient:
    """
    JSON-mode completion client.

    The underlying AsyncOpenAI handle is created on first use and kept on
    the instance; it is stateless afterwards and safe to share.
    """

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o",
        max_completion_tokens: int = MAX_COMPLETION_TOKENS,
        client: Optional[AsyncOpenAI] = None,
    ):
        if not api_key and client is None:
            raise ConfigurationError("OPENAI_API_KEY is required")
        self.api_key = api_key
        self.model = model
        self.max_completion_tokens = max_completion_tokens
        self._client = client

    @classmethod
    def from_settings(cls, settings: Settings, api_key: Optional[str] = None) -> "LLMClient":
        return cls(api_key=api_key or settings.OPENAI_API_KEY, model=settings.OPENAI_MODEL)

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(api_key=self.api_key)
        return self._client

    def _completion_options(self, messages: List[Dict[str, str]]) -> Dict[str, Any]:
        options: Dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "response_format": {"type": "json_object"},
            "max_completion_tokens": self.max_completion_tokens,
        }
        # Reasoning models reject a custom temperature
        if self.model.startswith("gpt-4o"):
            options["temperature"] = 0
        return options

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        follow_up: Optional[str] = None,
    ) -> Optional[str]:
        """
        Run one completion.

        Args:
            system_prompt: Instruction message
            user_prompt: Data payload message
            follow_up: Extra user message appended after the payload (repair call)

        Returns:
            Stripped reply text, or None if the model returned nothing

        Raises:
            LLMError: Transport, authentication or quota failure
        """
        messages = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ]
        if follow_up:
            messages.append({"role": "user", "content": follow_up})

        try:
            response = await self.client.chat.completions.create(
                **self._completion_options(messages)
            )
        except OpenAIError as e:
            logger.warning("OpenAI call failed: %s", type(e).__name__)
            raise LLMError(f"OpenAI: {e}") from e

        if not response.choices:
            return None
        content = (response.choices[0].message.content or "").strip()
        return content or None
