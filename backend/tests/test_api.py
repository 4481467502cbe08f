"""HTTP surface with auth, store and AI client overridden."""
from __future__ import annotations

import json

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from parentmath.auth.dependencies import get_current_user, get_entitlement_store
from parentmath.auth.schemas import AnonymousSession
from parentmath.auth.session import SessionBootstrap
from parentmath.config import Settings, get_settings
from parentmath.exceptions import GenerationError, RecognitionError
from parentmath.homework.router import get_homework_ai
from parentmath.main import app
from parentmath.middleware import limiter

from conftest import FakeAI, make_profile, png_base64

USER = {"id": "user-1", "email": "parent@example.com"}


@pytest.fixture
def api(store, fake_ai):
    limiter.reset()
    app.dependency_overrides[get_current_user] = lambda: USER
    app.dependency_overrides[get_entitlement_store] = lambda: store
    app.dependency_overrides[get_homework_ai] = lambda: fake_ai
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health(api):
    assert api.get("/health").json() == {"status": "healthy", "service": "parentmath-api"}


def test_analyze_text(api, store, fake_ai):
    resp = api.post("/api/analyze", json={"mode": "parent", "kind": "text", "text": "25 × 4"})

    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "ok"
    assert body["result"]["format"] == "structured"
    assert body["limits"]["uses_remaining"] == 4
    assert store.consume_calls == ["user-1"]
    assert len(fake_ai.generate_calls) == 1


def test_analyze_fallback_is_reported(api, fake_ai):
    fake_ai.guidance = json.dumps({"answer": {"expression": "25 × 4", "value": 100}})
    body = api.post("/api/analyze", json={"mode": "parent", "text": "25 × 4"}).json()
    assert body["status"] == "fallback"
    assert body["fallback_reason"] == "schema_mismatch"
    assert body["result"]["format"] == "markdown"


def test_analyze_blocked_returns_paywall(api, store, fake_ai):
    store.profiles["user-1"] = make_profile(free_uses_used=5)
    resp = api.post("/api/analyze", json={"mode": "child", "text": "25 × 4"})

    assert resp.status_code == 402
    detail = resp.json()["detail"]
    assert detail["paywall"] is True
    assert detail["uses_remaining"] == 0
    assert fake_ai.generate_calls == []


def test_analyze_generation_failure(api, store, fake_ai):
    fake_ai.generate_error = GenerationError()
    resp = api.post("/api/analyze", json={"mode": "parent", "text": "25 × 4"})

    assert resp.status_code == 502
    assert resp.json()["detail"]["kind"] == "generation"
    assert store.profiles["user-1"].free_uses_used == 1


def test_analyze_rejects_short_text(api, store):
    resp = api.post("/api/analyze", json={"mode": "parent", "text": " 7 "})
    assert resp.status_code == 400
    assert store.consume_calls == []


def test_analyze_image(api, fake_ai):
    resp = api.post("/api/analyze", json={
        "mode": "parent", "kind": "image", "image": png_base64(), "media_type": "image/png",
    })
    assert resp.status_code == 200
    submission = fake_ai.generate_calls[0]
    assert (submission.kind, submission.media_type) == ("image", "image/jpeg")


def test_analyze_requires_sign_in(api):
    app.dependency_overrides[get_current_user] = lambda: None
    resp = api.post("/api/analyze", json={"mode": "parent", "text": "25 × 4"})
    assert resp.status_code == 401


def test_detect_multiple_problems(api, fake_ai):
    fake_ai.recognized = "1. 2+2\n\n2. 3+3"
    resp = api.post("/api/problems/detect", json={"image": png_base64(), "media_type": "image/png"})

    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "ok"
    assert body["problems"] == [
        {"id": "problem-1", "text": "2+2", "label": "Problem 1"},
        {"id": "problem-2", "text": "3+3", "label": "Problem 2"},
    ]
    assert body["selected_problem_id"] is None


def test_detect_recognition_failure_offers_image_fallback(api, store, fake_ai):
    fake_ai.recognize_error = RecognitionError()
    resp = api.post("/api/problems/detect", json={"image": png_base64(), "media_type": "image/jpeg"})

    assert resp.status_code == 502
    detail = resp.json()["detail"]
    assert detail["kind"] == "recognition"
    assert detail["image_fallback"] is True
    assert store.consume_calls == []


def test_detect_rejects_unsupported_type(api):
    resp = api.post("/api/problems/detect", json={"image": png_base64(), "media_type": "image/gif"})
    assert resp.status_code == 400


def test_limits(api, store):
    store.profiles["user-1"] = make_profile(free_uses_used=2)
    assert api.get("/api/limits").json() == {
        "plan": "free", "is_pro": False, "can_use_free": True, "uses_remaining": 3, "free_limit": 5,
    }


def test_me_creates_profile_on_first_sign_in(api, store):
    store.profiles.clear()
    body = api.get("/api/auth/me").json()
    assert body["user"]["id"] == "user-1"
    assert body["user"]["free_uses_used"] == 0
    assert "user-1" in store.profiles


def test_checkout_without_stripe_config(api):
    app.dependency_overrides[get_settings] = lambda: Settings(stripe_secret_key="", stripe_price_id="")
    resp = api.post("/api/billing/checkout")
    assert resp.status_code == 503
    assert resp.json()["detail"]["kind"] == "configuration"


def test_detect_decompression_bomb_is_a_bad_request(api, fake_ai, monkeypatch):
    payload = png_base64((100, 100))
    monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 1000)
    resp = api.post("/api/problems/detect", json={"image": payload, "media_type": "image/png"})
    assert resp.status_code == 400
    assert resp.json()["detail"]["kind"] == "input"
    assert fake_ai.recognize_calls == []


# ═══════════════════════════════════════
# Anonymous sessions
# ═══════════════════════════════════════

@pytest.fixture
def signups(monkeypatch):
    calls = []

    async def sign_in(self):
        calls.append(self)
        return AnonymousSession(uid=f"anon-{len(calls)}", access_token="jwt-token")

    monkeypatch.setattr(SessionBootstrap, "_sign_in_anonymously", sign_in)
    return calls


def test_anonymous_keeps_an_existing_session(api, store, signups):
    store.profiles.clear()
    headers = {"Authorization": "Bearer jwt-token"}

    first = api.post("/api/auth/anonymous", headers=headers).json()
    second = api.post("/api/auth/anonymous", headers=headers).json()

    assert first == second == {"uid": "user-1", "existing": True}
    assert signups == []
    assert list(store.profiles) == ["user-1"]


def test_anonymous_signs_up_a_visitor_without_a_session(api, store, signups):
    app.dependency_overrides[get_current_user] = lambda: None
    body = api.post("/api/auth/anonymous").json()

    assert (body["uid"], body["existing"]) == ("anon-1", False)
    assert len(signups) == 1
    assert store.profiles["anon-1"].free_uses_used == 0
