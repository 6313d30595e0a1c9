import json

import httpx
import pytest

from speech_practice.core.exceptions import AnalysisServiceError, MissingCredentialError
from speech_practice.models.session import ConversationEntry, Role
from speech_practice.services.gemini import GeminiClient
from speech_practice.services.storage import CredentialStore, InMemoryKeyValueStore


def make_client(test_settings, handler, api_key="test-key"):
    credentials = CredentialStore(InMemoryKeyValueStore(), default=api_key)
    return GeminiClient(credentials, test_settings, transport=httpx.MockTransport(handler))


def gemini_reply(text):
    return {"candidates": [{"content": {"parts": [{"text": text}], "role": "model"}}]}


@pytest.mark.asyncio
async def test_generate_sends_prompt_history_and_key(test_settings):
    seen = {}

    def handler(request: httpx.Request):
        seen["url"] = str(request.url)
        seen["key"] = request.headers.get("x-goog-api-key")
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=gemini_reply('{"overallScore": 8}'))

    client = make_client(test_settings, handler)
    history = [
        ConversationEntry(role=Role.USER, content="earlier answer"),
        ConversationEntry(role=Role.ASSISTANT, content="earlier feedback"),
    ]
    text = await client.generate("analyze this", history)
    await client.close()

    assert text == '{"overallScore": 8}'
    assert seen["url"].endswith(f"/v1beta/models/{test_settings.gemini_model}:generateContent")
    assert seen["key"] == "test-key"
    assert [c["role"] for c in seen["body"]["contents"]] == ["user", "model", "user"]
    assert seen["body"]["contents"][-1]["parts"][0]["text"] == "analyze this"
    assert seen["body"]["generationConfig"]["topK"] == 40
    assert seen["body"]["safetySettings"][0]["category"] == "HARM_CATEGORY_HARASSMENT"


@pytest.mark.asyncio
async def test_generate_without_key(test_settings):
    def handler(request):
        raise AssertionError("no request expected")

    client = make_client(test_settings, handler, api_key=None)
    with pytest.raises(MissingCredentialError):
        await client.generate("prompt")
    await client.close()


@pytest.mark.asyncio
async def test_http_error_carries_service_message(test_settings):
    def handler(request):
        return httpx.Response(400, json={"error": {"message": "API key not valid"}})

    client = make_client(test_settings, handler)
    with pytest.raises(AnalysisServiceError) as exc_info:
        await client.generate("prompt")
    await client.close()

    assert "API key not valid" in exc_info.value.detail


@pytest.mark.asyncio
async def test_rate_limit(test_settings):
    client = make_client(test_settings, lambda request: httpx.Response(429, text="slow down"))
    with pytest.raises(AnalysisServiceError) as exc_info:
        await client.generate("prompt")
    await client.close()

    assert "rate limit" in exc_info.value.detail


@pytest.mark.asyncio
async def test_response_without_text(test_settings):
    client = make_client(test_settings, lambda request: httpx.Response(200, json={"candidates": []}))
    with pytest.raises(AnalysisServiceError) as exc_info:
        await client.generate("prompt")
    await client.close()

    assert exc_info.value.detail == "Invalid API response format"


@pytest.mark.asyncio
async def test_connection_error(test_settings):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    client = make_client(test_settings, handler)
    with pytest.raises(AnalysisServiceError):
        await client.generate("prompt")
    await client.close()
