"""Tests for the OpenAI-compatible LLM clients."""

import json

import pytest
import respx
from httpx import Response

from mnemos.llm.client import Message
from mnemos.llm.ollama import OllamaClient
from mnemos.llm.openai_compat import OpenAICompatibleClient


def chat_response(content: str, finish_reason: str = "stop") -> dict:
    return {
        "id": "chatcmpl-123",
        "object": "chat.completion",
        "created": 1677652288,
        "model": "llama-3.1-8b-instant",
        "choices": [
            {
                "index": 0,
                "message": {"role": "assistant", "content": content},
                "finish_reason": finish_reason,
            }
        ],
    }


@pytest.fixture
def ollama_client():
    return OllamaClient(
        model="llama3.2",
        base_url="http://localhost:11434/v1",
        temperature=0.7,
    )


@pytest.mark.asyncio
@respx.mock
async def test_complete_simple_response(ollama_client):
    respx.post("http://localhost:11434/v1/chat/completions").mock(
        return_value=Response(200, json=chat_response("Hello! How can I help you?"))
    )

    response = await ollama_client.complete([Message(role="user", content="Hi")])

    assert response.content == "Hello! How can I help you?"
    assert response.finish_reason == "stop"


@pytest.mark.asyncio
@respx.mock
async def test_complete_sends_context_in_order(ollama_client):
    route = respx.post("http://localhost:11434/v1/chat/completions").mock(
        return_value=Response(200, json=chat_response("Blue, you said."))
    )

    messages = [
        Message(role="system", content="You are a test assistant."),
        Message(role="system", content="Relevant memories:\n- user: my favourite colour is blue"),
        Message(role="user", content="what is my favourite colour?"),
    ]
    await ollama_client.complete(messages, max_tokens=64)

    body = json.loads(route.calls.last.request.content)
    assert body["model"] == "llama3.2"
    assert body["max_tokens"] == 64
    assert body["temperature"] == 0.7
    assert [m["role"] for m in body["messages"]] == ["system", "system", "user"]
    assert body["messages"][-1]["content"] == "what is my favourite colour?"


@pytest.mark.asyncio
@respx.mock
async def test_temperature_override():
    client = OpenAICompatibleClient(
        model="gpt-4o-mini",
        base_url="https://api.example.com/v1",
        api_key="sk-test",
        temperature=0.2,
    )
    route = respx.post("https://api.example.com/v1/chat/completions").mock(
        return_value=Response(200, json=chat_response("ok"))
    )

    await client.complete([Message(role="user", content="Hi")], temperature=1.1)

    body = json.loads(route.calls.last.request.content)
    assert body["temperature"] == 1.1
    assert "max_tokens" not in body
    assert route.calls.last.request.headers["authorization"] == "Bearer sk-test"


@pytest.mark.asyncio
@respx.mock
async def test_null_content_becomes_empty_string(ollama_client):
    payload = chat_response("")
    payload["choices"][0]["message"]["content"] = None
    respx.post("http://localhost:11434/v1/chat/completions").mock(
        return_value=Response(200, json=payload)
    )

    response = await ollama_client.complete([Message(role="user", content="Hi")])
    assert response.content == ""
