"""
Prompt Generation Service

Asks a text-completion model for a slight variation of the current background
prompt, so consecutive videos drift instead of repeating.

Supported engines:
- "openai" (chat completions over HTTP)
- "anthropic" (Claude via the Anthropic SDK)

The fallback is part of the contract: generate_prompt() always returns a
prompt, and on any failure that prompt is the one it was given.
"""

import logging
from typing import Literal, Optional

import httpx
from anthropic import AsyncAnthropic

logger = logging.getLogger(__name__)

PROMPT_TIMEOUT = 30
MAX_TOKENS = 60
TEMPERATURE = 0.7

PromptEngine = Literal["openai", "anthropic"]


def build_variation_request(base_prompt: str) -> str:
    return f"{base_prompt} with slight variation"


class PromptService:
    """Service for generating background prompts."""

    def __init__(
        self,
        api_key: str,
        engine: PromptEngine = "openai",
        model: str = "gpt-4o-mini",
        api_url: str = "https://api.openai.com/v1",
        transport: Optional[httpx.AsyncBaseTransport] = None,
        anthropic_client: Optional[AsyncAnthropic] = None,
    ):
        """
        Args:
            api_key: Key for the selected engine
            engine: "openai" or "anthropic"
            model: Model name for the selected engine
            api_url: Base URL of the OpenAI-compatible API
            transport: Optional httpx transport (used by tests)
            anthropic_client: Optional pre-built Anthropic client
        """
        self.api_key = api_key
        self.engine = engine
        self.model = model
        self.api_url = api_url.rstrip("/")
        self._transport = transport
        self._anthropic = anthropic_client

        if not self.is_configured():
            logger.warning(f"Prompt service ({engine}) has no API key, prompts will not vary")

    def is_configured(self) -> bool:
        return bool(self.api_key) or self._anthropic is not None

    async def generate_prompt(self, base_prompt: str) -> str:
        """
        Generate a variation of base_prompt.

        Returns base_prompt unchanged if the service is not configured, the
        request fails, or the response has no usable text.
        """
        if not self.is_configured():
            return base_prompt

        try:
            if self.engine == "anthropic":
                text = await self._generate_anthropic(base_prompt)
            else:
                text = await self._generate_openai(base_prompt)
        except Exception as e:
            logger.error(f"Error generating prompt ({self.engine}): {e}")
            return base_prompt

        if not text:
            logger.warning("Prompt service returned no text, keeping previous prompt")
            return base_prompt

        return text

    async def _generate_openai(self, base_prompt: str) -> Optional[str]:
        async with httpx.AsyncClient(timeout=PROMPT_TIMEOUT, transport=self._transport) as client:
            response = await client.post(
                f"{self.api_url}/chat/completions",
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json"
                },
                json={
                    "model": self.model,
                    "messages": [
                        {"role": "user", "content": build_variation_request(base_prompt)}
                    ],
                    "max_tokens": MAX_TOKENS,
                    "temperature": TEMPERATURE,
                }
            )
            response.raise_for_status()
            data = response.json()

        choices = data.get("choices") or []
        if not choices:
            return None

        choice = choices[0]
        # Chat responses nest the text in a message, legacy completions do not
        text = (choice.get("message") or {}).get("content") or choice.get("text") or ""
        return text.strip()

    async def _generate_anthropic(self, base_prompt: str) -> Optional[str]:
        if self._anthropic is None:
            self._anthropic = AsyncAnthropic(api_key=self.api_key, timeout=PROMPT_TIMEOUT)

        response = await self._anthropic.messages.create(
            model=self.model,
            max_tokens=MAX_TOKENS,
            temperature=TEMPERATURE,
            system="Reply with the rewritten video prompt only.",
            messages=[
                {"role": "user", "content": build_variation_request(base_prompt)}
            ],
        )

        if not response.content:
            return None
        return response.content[0].text.strip()
