"""Tests for the OpenAI-backed vision describer."""

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import openai
import pytest

from image_gateway.core.describer import (
    OpenAIVisionDescriber,
    build_prompt,
    canned_description,
)
from image_gateway.core.errors import CollaboratorFailureError
from image_gateway.core.models import DescriptionRequest, PromptVariant

DATA_URI = "data:image/jpeg;base64,YWJj"


def completion(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


def describer_with_client(config, create_mock) -> OpenAIVisionDescriber:
    describer = OpenAIVisionDescriber(config)
    client = MagicMock()
    client.chat.completions.create = create_mock
    client.close = AsyncMock()
    describer._client = client
    return describer


class TestPrompts:
    def test_variants_differ(self):
        assert build_prompt(PromptVariant.ALT) != build_prompt(PromptVariant.DEFAULT)

    def test_alt_prompt_bounds_length(self):
        prompt = build_prompt(PromptVariant.ALT)

        assert "single sentence" in prompt
        assert "12 words" in prompt

    def test_variant_from_form(self):
        assert PromptVariant.from_form("alt") is PromptVariant.ALT
        assert PromptVariant.from_form(" ALT ") is PromptVariant.ALT
        assert PromptVariant.from_form(None) is PromptVariant.DEFAULT
        assert PromptVariant.from_form("short") is PromptVariant.DEFAULT

    def test_canned_descriptions(self):
        assert canned_description("short") == "A short description of the main content of the image."
        assert canned_description(None) == "Default description for the image."


class TestOpenAIVisionDescriber:
    @pytest.mark.asyncio
    async def test_sends_prompt_and_image(self, config):
        create = AsyncMock(return_value=completion("Hai con mèo trên ghế sofa."))
        describer = describer_with_client(config, create)

        text = await describer.describe(DescriptionRequest(DATA_URI, PromptVariant.ALT))

        assert text == "Hai con mèo trên ghế sofa."
        kwargs = create.await_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini"
        system, user = kwargs["messages"]
        assert "Vietnamese" in system["content"]
        assert user["content"][0] == {"type": "text", "text": build_prompt(PromptVariant.ALT)}
        assert user["content"][1] == {"type": "image_url", "image_url": {"url": DATA_URI}}

    @pytest.mark.asyncio
    async def test_missing_api_key(self, config):
        describer = OpenAIVisionDescriber(config)

        with pytest.raises(CollaboratorFailureError):
            await describer.describe(DescriptionRequest(DATA_URI))

    @pytest.mark.asyncio
    async def test_api_error_is_wrapped(self, config):
        request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
        create = AsyncMock(side_effect=openai.APIConnectionError(request=request))
        describer = describer_with_client(config, create)

        with pytest.raises(CollaboratorFailureError):
            await describer.describe(DescriptionRequest(DATA_URI))

    @pytest.mark.asyncio
    async def test_timeout_is_enforced(self, config):
        config.describe_timeout_seconds = 1

        async def slow_create(**kwargs):
            await asyncio.sleep(10)

        describer = describer_with_client(config, AsyncMock(side_effect=slow_create))

        with pytest.raises(CollaboratorFailureError, match="timed out"):
            await describer.describe(DescriptionRequest(DATA_URI))

    @pytest.mark.asyncio
    async def test_empty_response_is_failure(self, config):
        describer = describer_with_client(config, AsyncMock(return_value=completion(None)))

        with pytest.raises(CollaboratorFailureError):
            await describer.describe(DescriptionRequest(DATA_URI))

    @pytest.mark.asyncio
    async def test_close_releases_client(self, config):
        describer = describer_with_client(config, AsyncMock())
        client = describer._client

        await describer.close()

        client.close.assert_awaited_once()
        assert describer._client is None

    @pytest.mark.asyncio
    async def test_client_created_lazily_with_key(self, config):
        config.openai_api_key = "sk-test"
        describer = OpenAIVisionDescriber(config)

        client = describer._get_client()

        assert isinstance(client, openai.AsyncOpenAI)
        assert client.max_retries == 0
        await describer.close()
