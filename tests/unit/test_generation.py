"""Unit tests for the Ollama chat adapter."""
import json

import httpx
import pytest

from docchat.errors import GenerationFailed
from docchat.generation import OllamaGenerator
from docchat.llm_client import OllamaClient


def chat_transport(status=200, content="An answer"):
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(json.loads(request.content))
        if status != 200:
            return httpx.Response(status, json={"error": "boom"})
        return httpx.Response(200, json={"message": {"role": "assistant", "content": content}})

    return httpx.MockTransport(handler), requests


@pytest.mark.asyncio
async def test_complete_sends_options_and_returns_content():
    transport, requests = chat_transport()
    generator = OllamaGenerator(OllamaClient(transport=transport), model="chat-model")

    reply = await generator.complete(
        [{"role": "user", "content": "Hi"}], temperature=0.2, max_tokens=64
    )

    assert reply == {"content": "An answer"}
    assert requests[0]["model"] == "chat-model"
    assert requests[0]["stream"] is False
    assert requests[0]["options"] == {"temperature": 0.2, "num_predict": 64}


@pytest.mark.asyncio
async def test_http_error_raises_generation_failed():
    transport, _ = chat_transport(status=500)
    generator = OllamaGenerator(OllamaClient(transport=transport))

    with pytest.raises(GenerationFailed):
        await generator.complete([{"role": "user", "content": "Hi"}])


@pytest.mark.asyncio
async def test_empty_reply_raises_generation_failed():
    transport, _ = chat_transport(content="")
    generator = OllamaGenerator(OllamaClient(transport=transport))

    with pytest.raises(GenerationFailed):
        await generator.complete([{"role": "user", "content": "Hi"}])


@pytest.mark.asyncio
async def test_temperature_out_of_range():
    transport, requests = chat_transport()
    generator = OllamaGenerator(OllamaClient(transport=transport))

    with pytest.raises(ValueError):
        await generator.complete([{"role": "user", "content": "Hi"}], temperature=1.5)
    assert requests == []
