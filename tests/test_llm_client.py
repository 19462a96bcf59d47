# tests/test_llm_client.py
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import openai
import pytest

from app.domain.errors import RemoteError
from app.domain.services.llm_client import LLMClient
from app.domain.services.prompts import SYSTEM_PROMPT_CART


def _completion(content):
    return SimpleNamespace(
        model="llama-3.3-70b-versatile",
        usage=SimpleNamespace(prompt_tokens=10, completion_tokens=5),
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))],
    )


def _client(create):
    fake = MagicMock()
    fake.chat.completions.create = create
    return LLMClient(api_key="k", model="llama-3.3-70b-versatile", client=fake)


async def test_generate_sends_one_chat_completion():
    create = AsyncMock(return_value=_completion('[{"productId": 1}]'))
    llm = _client(create)
    assert llm.configured
    text = await llm.generate("pick some", system=SYSTEM_PROMPT_CART)
    assert text == '[{"productId": 1}]'
    kwargs = create.await_args.kwargs
    assert kwargs["model"] == "llama-3.3-70b-versatile"
    assert kwargs["temperature"] == 0.3
    assert kwargs["max_tokens"] == 1000
    assert kwargs["messages"] == [
        {"role": "system", "content": SYSTEM_PROMPT_CART},
        {"role": "user", "content": "pick some"},
    ]


async def test_unconfigured_client_raises_without_network():
    llm = LLMClient(api_key=None, model="m")
    assert not llm.configured
    with pytest.raises(RemoteError):
        await llm.generate("x")


@pytest.mark.parametrize("content", [None, "", "   "])
async def test_empty_content_is_a_remote_error(content):
    llm = _client(AsyncMock(return_value=_completion(content)))
    with pytest.raises(RemoteError):
        await llm.generate("x")


async def test_no_choices_is_a_remote_error():
    resp = _completion("x")
    resp.choices = []
    with pytest.raises(RemoteError):
        await _client(AsyncMock(return_value=resp)).generate("x")


async def test_http_status_errors_become_remote_errors():
    request = httpx.Request("POST", "https://api.groq.com/openai/v1/chat/completions")
    response = httpx.Response(429, request=request)
    err = openai.RateLimitError("rate limited", response=response, body=None)
    with pytest.raises(RemoteError, match="429"):
        await _client(AsyncMock(side_effect=err)).generate("x")


async def test_transport_errors_become_remote_errors():
    request = httpx.Request("POST", "https://api.groq.com/openai/v1/chat/completions")
    err = openai.APIConnectionError(request=request)
    with pytest.raises(RemoteError):
        await _client(AsyncMock(side_effect=err)).generate("x")


def test_from_settings_uses_groq_defaults():
    from app.core.config import Settings

    llm = LLMClient.from_settings(Settings(LLM_API_KEY="secret"))
    assert llm.configured
    assert llm.model == "llama-3.3-70b-versatile"
    assert llm.temperature == 0.3
    assert llm.max_tokens == 1000
