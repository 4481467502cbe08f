"""OpenAI client: request shape and error mapping against a mocked API."""
from __future__ import annotations

import asyncio
import json

import httpx
import pytest
from openai import AsyncOpenAI

from parentmath.config import Settings
from parentmath.exceptions import ConfigurationError, GenerationError, RecognitionError
from parentmath.homework.schemas import Submission
from parentmath.homework.service import HomeworkAIClient

SETTINGS = Settings(openai_api_key="sk-test")

TEXT = Submission(mode="parent", kind="text", text="25 × 4")
PHOTO = Submission(mode="child", kind="image", image=b"\xff\xd8\xffjpeg", media_type="image/jpeg")


def completion(content):
    return {
        "id": "chatcmpl-1",
        "object": "chat.completion",
        "created": 0,
        "model": SETTINGS.generation_model,
        "choices": [{
            "index": 0,
            "message": {"role": "assistant", "content": content},
            "finish_reason": "stop",
        }],
        "usage": {"prompt_tokens": 10, "completion_tokens": 5, "total_tokens": 15},
    }


class OpenAIStub:
    def __init__(self, content="ok", status: int = 200, timeout: bool = False):
        self.content = content
        self.status = status
        self.timeout = timeout
        self.bodies: list[dict] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.bodies.append(json.loads(request.content))
        if self.timeout:
            raise httpx.ReadTimeout("timed out", request=request)
        if self.status != 200:
            return httpx.Response(self.status, json={"error": {"message": "upstream", "type": "error"}})
        return httpx.Response(200, json=completion(self.content))


def call(stub, method: str, *args):
    async def go():
        async with httpx.AsyncClient(transport=httpx.MockTransport(stub)) as http:
            client = AsyncOpenAI(api_key="sk-test", http_client=http, max_retries=0)
            return await getattr(HomeworkAIClient(SETTINGS, client=client), method)(*args)
    return asyncio.run(go())


# ═══════════════════════════════════════════════════════════════════════════════
# Request shape
# ═══════════════════════════════════════════════════════════════════════════════

def test_parent_mode_asks_for_json():
    stub = OpenAIStub(content='{"answer": {}}')
    assert call(stub, "generate", TEXT) == '{"answer": {}}'

    body = stub.bodies[0]
    assert body["model"] == SETTINGS.generation_model
    assert body["response_format"] == {"type": "json_object"}
    system, user = body["messages"]
    assert system["role"] == "system"
    assert "25 × 4" in user["content"]


def test_child_photo_is_sent_as_data_url():
    stub = OpenAIStub(content="## Let's count!")
    call(stub, "generate", PHOTO)

    body = stub.bodies[0]
    assert "response_format" not in body
    image_part, text_part = body["messages"][1]["content"]
    assert image_part["type"] == "image_url"
    assert image_part["image_url"]["url"].startswith("data:image/jpeg;base64,")
    assert text_part["type"] == "text"


def test_recognize_returns_raw_text():
    stub = OpenAIStub(content="1. 2+2\n2. 3+3")
    assert call(stub, "recognize", b"\xff\xd8\xffjpeg", "image/jpeg") == "1. 2+2\n2. 3+3"

    content = stub.bodies[0]["messages"][0]["content"]
    assert content[0]["image_url"]["url"].startswith("data:image/jpeg;base64,")
    assert stub.bodies[0]["model"] == SETTINGS.recognition_model


# ═══════════════════════════════════════════════════════════════════════════════
# Failures
# ═══════════════════════════════════════════════════════════════════════════════

def test_missing_key_fails_before_any_request():
    client = HomeworkAIClient(Settings(openai_api_key=""))
    with pytest.raises(ConfigurationError):
        asyncio.run(client.generate(TEXT))
    with pytest.raises(ConfigurationError):
        asyncio.run(client.recognize(b"img", "image/png"))


@pytest.mark.parametrize("stub", [
    OpenAIStub(status=429),
    OpenAIStub(status=500),
    OpenAIStub(timeout=True),
], ids=["rate_limit", "api_error", "timeout"])
def test_generation_failures(stub):
    with pytest.raises(GenerationError):
        call(stub, "generate", TEXT)
    assert len(stub.bodies) == 1


@pytest.mark.parametrize("stub", [
    OpenAIStub(status=429),
    OpenAIStub(status=500),
    OpenAIStub(timeout=True),
], ids=["rate_limit", "api_error", "timeout"])
def test_recognition_failures(stub):
    with pytest.raises(RecognitionError):
        call(stub, "recognize", b"img", "image/png")
    assert len(stub.bodies) == 1


def test_rate_limit_message_asks_to_wait():
    with pytest.raises(GenerationError, match="busy"):
        call(OpenAIStub(status=429), "generate", TEXT)


@pytest.mark.parametrize("content", ["", None])
def test_empty_generation_is_a_failure(content):
    with pytest.raises(GenerationError):
        call(OpenAIStub(content=content), "generate", TEXT)
