"""
Integration tests for the direct chat and transcription endpoints.
"""

import pytest
from httpx import AsyncClient

from app.core.errors import RateLimited
from app.main import app
from app.services.assistant import AssistantService, get_assistant_service
from tests.conftest import FakeTranscriber

pytestmark = pytest.mark.integration

PREFIX = "/api/v1/openai"


@pytest.fixture
def transcriber() -> FakeTranscriber:
    return FakeTranscriber()


@pytest.fixture
def assistant(client, fake_llm, transcriber, fast_retry) -> AssistantService:
    service = AssistantService(fake_llm, transcriber, retry_options=fast_retry)
    app.dependency_overrides[get_assistant_service] = lambda: service
    return service


# ================================
# Chat Tests
# ================================

@pytest.mark.asyncio
async def test_chat(client: AsyncClient, auth_headers: dict, assistant):
    body = {"messages": [{"role": "system", "content": "Be brief."}, {"role": "user", "content": "Hi"}]}

    response = await client.post(f"{PREFIX}/chat", json=body, headers=auth_headers)

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["content"] == "Summary number 1."
    assert data["model"] == "fake-model"


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [
    {"messages": []},
    {"messages": [{"role": "function", "content": "Hi"}]},
    {"messages": [{"role": "user", "content": "   "}]},
    {"messages": [{"role": "user"}]},
    {},
])
async def test_chat_rejects_invalid_messages(client: AsyncClient, auth_headers: dict, assistant, fake_llm, body):
    response = await client.post(f"{PREFIX}/chat", json=body, headers=auth_headers)

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "validation/invalid-format"
    assert fake_llm.calls == []


@pytest.mark.asyncio
async def test_chat_requires_token(client: AsyncClient, assistant):
    response = await client.post(f"{PREFIX}/chat", json={"messages": [{"role": "user", "content": "Hi"}]})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_chat_model_rate_limit(client: AsyncClient, auth_headers: dict, assistant, fake_llm):
    fake_llm.fail_with = RateLimited("busy", code="ai/rate-limit")

    response = await client.post(
        f"{PREFIX}/chat",
        json={"messages": [{"role": "user", "content": "Hi"}]},
        headers=auth_headers,
    )

    assert response.status_code == 429
    assert response.json()["error"]["code"] == "ai/rate-limit"


# ================================
# Transcription Tests
# ================================

@pytest.mark.asyncio
async def test_transcribe(client: AsyncClient, auth_headers: dict, assistant, transcriber):
    response = await client.post(
        f"{PREFIX}/transcribe",
        files={"file": ("talk.mp3", b"ID3-audio-bytes", "audio/mpeg")},
        headers=auth_headers,
    )

    assert response.status_code == 200
    assert response.json()["data"] == {"text": "hello from the audio", "filename": "talk.mp3"}
    assert transcriber.calls == [("talk.mp3", b"ID3-audio-bytes", "audio/mpeg")]


@pytest.mark.asyncio
async def test_transcribe_rejects_non_audio(client: AsyncClient, auth_headers: dict, assistant, transcriber):
    response = await client.post(
        f"{PREFIX}/transcribe",
        files={"file": ("notes.txt", b"plain text", "text/plain")},
        headers=auth_headers,
    )

    assert response.status_code == 400
    assert transcriber.calls == []


@pytest.mark.asyncio
async def test_transcribe_requires_file(client: AsyncClient, auth_headers: dict, assistant):
    response = await client.post(f"{PREFIX}/transcribe", headers=auth_headers)

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "validation/invalid-format"
