"""
ParentMath AI Service

Two calls, both through the OpenAI chat completions API:
1. recognize: vision OCR of a worksheet photo (raw text, line breaks kept)
2. generate: teaching guidance for one problem, as JSON (parent) or markdown (child)

No retries: every failure goes back to the parent for a manual retry.
"""

import base64
import logging
import time

from openai import AsyncOpenAI, RateLimitError, APITimeoutError, APIError

from parentmath.config import Settings
from parentmath.exceptions import ConfigurationError, GenerationError, RecognitionError
from parentmath.homework.prompts import RECOGNITION_PROMPT, system_prompt, user_message
from parentmath.homework.schemas import Submission

logger = logging.getLogger(__name__)


def _log(msg: str):
    logger.info(f"[ParentMath] {msg}")


def _image_part(image: bytes, media_type: str) -> dict:
    b64 = base64.b64encode(image).decode("ascii")
    return {"type": "image_url", "image_url": {"url": f"data:{media_type};base64,{b64}"}}


class HomeworkAIClient:
    def __init__(self, settings: Settings, client: AsyncOpenAI | None = None):
        self.settings = settings
        self._client = client

    def _openai(self) -> AsyncOpenAI:
        if self._client is not None:
            return self._client
        if not self.settings.openai_api_key:
            raise ConfigurationError("OpenAI API key not configured")
        self._client = AsyncOpenAI(api_key=self.settings.openai_api_key, max_retries=0)
        return self._client

    async def recognize(self, image: bytes, media_type: str) -> str:
        client = self._openai()
        model = self.settings.recognition_model
        start = time.time()
        _log(f"[OCR] {model} — {len(image)} bytes ({media_type})")

        try:
            completion = await client.chat.completions.create(
                model=model,
                messages=[{"role": "user", "content": [
                    _image_part(image, media_type),
                    {"type": "text", "text": RECOGNITION_PROMPT},
                ]}],
                max_tokens=1024,
                temperature=0,
                timeout=self.settings.recognition_timeout,
            )
        except RateLimitError as e:
            _log("[OCR] RATE LIMITED")
            raise RecognitionError("The reading service is busy. Wait a moment and try again.") from e
        except (APITimeoutError, APIError) as e:
            _log(f"[OCR] ERROR: {e}")
            raise RecognitionError() from e

        text = completion.choices[0].message.content if completion.choices else None
        if text is None:
            raise RecognitionError()
        _log(f"[OCR] {len(text)} chars in {time.time()-start:.1f}s")
        return text

    async def generate(self, submission: Submission) -> str:
        client = self._openai()
        model = self.settings.generation_model
        mode = submission.mode
        start = time.time()
        _log(f"[Generate] {model} — mode={mode} kind={submission.kind}")

        if submission.kind == "image":
            content = [
                _image_part(submission.image or b"", submission.media_type or "image/jpeg"),
                {"type": "text", "text": user_message(mode)},
            ]
        else:
            content = user_message(mode, submission.text or "")

        kwargs = {}
        if mode == "parent":
            kwargs["response_format"] = {"type": "json_object"}

        try:
            completion = await client.chat.completions.create(
                model=model,
                messages=[
                    {"role": "system", "content": system_prompt(mode)},
                    {"role": "user", "content": content},
                ],
                max_tokens=2048,
                temperature=0.2,
                timeout=self.settings.generation_timeout,
                **kwargs,
            )
        except RateLimitError as e:
            _log("[Generate] RATE LIMITED")
            raise GenerationError("The AI service is busy. Wait a moment and try again.") from e
        except (APITimeoutError, APIError) as e:
            _log(f"[Generate] ERROR: {e}")
            raise GenerationError() from e

        if completion.usage:
            u = completion.usage
            _log(f"[Generate] Tokens: {u.prompt_tokens}+{u.completion_tokens}={u.total_tokens}")

        msg = completion.choices[0].message if completion.choices else None
        if msg is None or not msg.content:
            _log("[Generate] Empty response")
            raise GenerationError()
        _log(f"[Generate] done in {time.time()-start:.1f}s")
        return msg.content
