"""Tests for the Anthropic LLM service."""

from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from llm import AnthropicService, LLMError


def make_service(*blocks) -> AnthropicService:
    service = AnthropicService()
    service._client = SimpleNamespace(
        messages=SimpleNamespace(
            create=AsyncMock(return_value=SimpleNamespace(content=list(blocks)))
        )
    )
    return service


def text_block(text: str) -> SimpleNamespace:
    return SimpleNamespace(type="text", text=text)


class TestAnthropicService:
    """Tests for AnthropicService."""

    @pytest.mark.asyncio
    async def test_generate_joins_text_blocks(self):
        service = make_service(text_block("Hello"), text_block(" there"))

        reply = await service.generate("hi", "be brief")

        assert reply == "Hello there"
        kwargs = service._client.messages.create.await_args.kwargs
        assert kwargs["system"] == "be brief"
        assert kwargs["messages"] == [{"role": "user", "content": "hi"}]
        assert kwargs["temperature"] == 0.7

    @pytest.mark.asyncio
    async def test_generate_with_image_sends_base64_block(self):
        service = make_service(text_block("A cat"))

        await service.generate_with_image("what?", "sys", b"abc", "image/png")

        content = service._client.messages.create.await_args.kwargs["messages"][0]["content"]
        assert content[0]["source"] == {
            "type": "base64",
            "media_type": "image/png",
            "data": "YWJj",
        }
        assert content[1] == {"type": "text", "text": "what?"}

    @pytest.mark.asyncio
    async def test_unsupported_image_type(self):
        service = make_service(text_block("x"))

        with pytest.raises(LLMError):
            await service.generate_with_image("what?", "sys", b"abc", "image/tiff")
        service._client.messages.create.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_empty_reply_is_error(self):
        service = make_service(SimpleNamespace(type="tool_use"))

        with pytest.raises(LLMError):
            await service.generate("hi", "sys")
