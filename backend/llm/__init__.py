"""LLM module - unified interface for language model interactions.

Usage:
    from llm import LLMService, LLMError

    llm = LLMService()
    reply = await llm.generate(prompt, system)
    reply = await llm.generate_with_image(prompt, system, image_bytes, "image/png")

Structure:
    - base.py: Abstract interface (BaseLLMService)
    - anthropic.py: Claude implementation (AnthropicService)
"""

from llm.anthropic import AnthropicService
from llm.base import BaseLLMService, LLMError
from llm.prompts import ASSISTANT_SYSTEM_PROMPT, DEFAULT_IMAGE_PROMPT

# Default provider - can be swapped by changing this alias
LLMService = AnthropicService

__all__ = [
    "BaseLLMService",
    "LLMService",
    "LLMError",
    "AnthropicService",
    "ASSISTANT_SYSTEM_PROMPT",
    "DEFAULT_IMAGE_PROMPT",
]
