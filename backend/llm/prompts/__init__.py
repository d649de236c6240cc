"""LLM prompts for the chat assistant."""

from llm.prompts.assistant import ASSISTANT_SYSTEM_PROMPT, DEFAULT_IMAGE_PROMPT

__all__ = [
    "ASSISTANT_SYSTEM_PROMPT",
    "DEFAULT_IMAGE_PROMPT",
]
