"""Anthropic Claude LLM implementation."""

import base64
import logging

import httpx
from anthropic import APIError, AsyncAnthropic, RateLimitError

from config import get_settings

from .base import BaseLLMService, LLMError

logger = logging.getLogger(__name__)

# Image types Claude accepts inline
SUPPORTED_IMAGE_TYPES = frozenset(
    {"image/jpeg", "image/png", "image/gif", "image/webp"}
)


class AnthropicService(BaseLLMService):
    """Claude LLM service via Anthropic API."""

    def __init__(self, model: str | None = None) -> None:
        settings = get_settings()
        self.model = model or settings.llm_model
        self.settings = settings

        self._client = AsyncAnthropic(
            api_key=settings.anthropic_api_key,
            timeout=httpx.Timeout(timeout=60.0, connect=10.0),
        )

    async def _create(
        self,
        content: str | list[dict],
        system: str,
        temperature: float | None,
        max_tokens: int | None,
    ) -> str:
        try:
            response = await self._client.messages.create(
                model=self.model,
                max_tokens=max_tokens or self.settings.llm_max_tokens,
                temperature=temperature
                if temperature is not None
                else self.settings.llm_temperature,
                system=system,
                messages=[{"role": "user", "content": content}],
            )
        except RateLimitError as e:
            logger.warning("Rate limit: %s", e)
            raise LLMError("Rate limit exceeded. Please try again.") from e
        except APIError as e:
            logger.error("API error: %s", e)
            raise LLMError(f"LLM error: {e}") from e

        text = "".join(
            block.text for block in response.content if block.type == "text"
        )
        if not text:
            raise LLMError("LLM returned no text")
        return text

    async def generate(
        self,
        prompt: str,
        system: str,
        *,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> str:
        """Generate a response using Claude."""
        return await self._create(prompt, system, temperature, max_tokens)

    async def generate_with_image(
        self,
        prompt: str,
        system: str,
        image: bytes,
        media_type: str,
        *,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> str:
        """Generate a response about an inline base64 image using Claude."""
        if media_type not in SUPPORTED_IMAGE_TYPES:
            raise LLMError(f"Unsupported image type: {media_type}")

        content = [
            {
                "type": "image",
                "source": {
                    "type": "base64",
                    "media_type": media_type,
                    "data": base64.b64encode(image).decode("ascii"),
                },
            },
            {"type": "text", "text": prompt},
        ]
        return await self._create(content, system, temperature, max_tokens)
