"""Shared fixtures: fake AI client, in-memory profiles, API client with overrides."""
from __future__ import annotations

import base64
import io
import json

import pytest
from PIL import Image

from parentmath.auth.schemas import UsageProfile
from parentmath.usage.store import InMemoryEntitlementStore


PARENT_GUIDANCE = {
    "parsed": {
        "original_problem": "25 × 4",
        "numbers": [{"value": 25, "role": "groups"}, {"value": 4, "role": "times"}],
        "unit": None,
        "unknown": "We want to find 4 groups of 25",
        "operation": "We are finding groups of numbers",
        "operation_why": "Four groups of 25 is like four quarters.",
        "problem_type": "a groups problem",
    },
    "teaching": {
        "problem_restatement": "We need 4 groups of 25.",
        "new_math_method": {"name": "Equal groups", "explanation": "Kids see multiplication as groups."},
        "steps": [
            {"title": "Step 1: Think quarters", "instruction": "Put 4 quarters on the table.",
             "say_this": "Each quarter is 25 cents."},
            {"title": "Step 2: Count up", "say_this": "25, 50, 75, 100!"},
        ],
        "quick_notes": {
            "concept": "Multiplying is adding equal groups.",
            "common_mistake": "Adding 25 + 4 instead.",
            "if_they_ask": "Four quarters make a dollar, so 100.",
        },
        "visual_hint": None,
    },
    "answer": {"expression": "25 × 4", "value": 100},
}


class FakeAI:
    def __init__(self, recognized: str = "", guidance: str | None = None,
                 recognize_error: Exception | None = None, generate_error: Exception | None = None):
        self.recognized = recognized
        self.guidance = json.dumps(PARENT_GUIDANCE) if guidance is None else guidance
        self.recognize_error = recognize_error
        self.generate_error = generate_error
        self.recognize_calls: list[tuple[bytes, str]] = []
        self.generate_calls: list = []

    async def recognize(self, image: bytes, media_type: str) -> str:
        self.recognize_calls.append((image, media_type))
        if self.recognize_error:
            raise self.recognize_error
        return self.recognized

    async def generate(self, submission) -> str:
        self.generate_calls.append(submission)
        if self.generate_error:
            raise self.generate_error
        return self.guidance


def make_profile(uid: str = "user-1", **overrides) -> UsageProfile:
    return UsageProfile(uid=uid, **overrides)


def png_base64(size: tuple[int, int] = (64, 48)) -> str:
    buf = io.BytesIO()
    Image.new("RGB", size, color=(255, 255, 255)).save(buf, format="PNG")
    return base64.b64encode(buf.getvalue()).decode("ascii")


@pytest.fixture
def fake_ai() -> FakeAI:
    return FakeAI()


@pytest.fixture
def store() -> InMemoryEntitlementStore:
    return InMemoryEntitlementStore([make_profile("user-1")])
