"""
Unit tests for the AI completion provider wrappers.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from skillsync.errors import GeneratorError
from skillsync.services.gpt_client import GPTClient
from skillsync.services.llm_client import GeminiClient, build_generator
from skillsync.services.ollama_client import OllamaClient


def openai_response(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


@pytest.mark.asyncio
async def test_gpt_client_sends_system_and_user_prompts():
    client = GPTClient(api_key="test-key")
    client.client = MagicMock()
    client.client.chat.completions.create = AsyncMock(return_value=openai_response('{"question": "Q"}'))

    content = await client.complete("system", "user")

    assert content == '{"question": "Q"}'
    kwargs = client.client.chat.completions.create.call_args.kwargs
    assert kwargs["response_format"] == {"type": "json_object"}
    assert kwargs["messages"] == [{"role": "system", "content": "system"}, {"role": "user", "content": "user"}]


@pytest.mark.asyncio
async def test_gpt_client_wraps_api_errors():
    client = GPTClient(api_key="test-key")
    client.client = MagicMock()
    client.client.chat.completions.create = AsyncMock(side_effect=RuntimeError("rate limited"))

    with pytest.raises(GeneratorError, match="rate limited"):
        await client.complete("system", "user")


@pytest.mark.asyncio
async def test_gpt_client_rejects_empty_content():
    client = GPTClient(api_key="test-key")
    client.client = MagicMock()
    client.client.chat.completions.create = AsyncMock(return_value=openai_response(None))

    with pytest.raises(GeneratorError, match="No content"):
        await client.complete("system", "user")


@pytest.mark.asyncio
async def test_unconfigured_client_fails_cleanly():
    client = GPTClient(api_key="test-key")
    client.client = None

    with pytest.raises(GeneratorError, match="not configured"):
        await client.complete("system", "user")


@pytest.mark.asyncio
async def test_gemini_client_returns_text():
    client = GeminiClient(api_key="test-key")
    client.model = MagicMock()
    client.model.generate_content_async = AsyncMock(return_value=SimpleNamespace(text="[]"))

    assert await client.complete("system", "user") == "[]"
    assert client.model.generate_content_async.call_args.args[0] == ["system", "user"]


@pytest.mark.asyncio
async def test_ollama_client_returns_message_content():
    client = OllamaClient()
    client.client = MagicMock()
    client.client.chat = AsyncMock(return_value={"message": {"content": '{"questions": []}'}})

    assert await client.complete("system", "user") == '{"questions": []}'
    assert client.client.chat.call_args.kwargs["format"] == "json"


def test_build_generator_rejects_unknown_provider():
    with pytest.raises(ValueError):
        build_generator("carrier-pigeon")


def test_build_generator_picks_provider(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "test-key")

    assert isinstance(build_generator("openai"), GPTClient)
    assert isinstance(build_generator("Ollama"), OllamaClient)
