"""
ParentMath Homework Router

  GET  /api/limits           free uses left for the current user
  POST /api/problems/detect  read a worksheet photo, split it into problems (free)
  POST /api/analyze          teaching guidance for one problem (uses 1 free analysis)

Free tier: 5 analyses per account, Pro: unlimited. Blocked requests get a 402
with the paywall details and consume nothing.
"""

import logging
from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request

from parentmath.auth.dependencies import get_current_user, get_entitlement_store, require_auth
from parentmath.config import get_settings, Settings
from parentmath.exceptions import STATUS_BY_KIND, ConfigurationError, ParentMathError, error_detail
from parentmath.homework.flow import HomeworkFlow, Preferences, SessionContext
from parentmath.homework.images import prepare_image
from parentmath.homework.schemas import AnalyzeRequest, DetectRequest
from parentmath.homework.service import HomeworkAIClient
from parentmath.middleware import limiter
from parentmath.results import Blocked, Err, Fallback
from parentmath.usage.entitlement import FREE_LIMIT, limits_payload

logger = logging.getLogger(__name__)
router = APIRouter()


def get_homework_ai(settings: Settings = Depends(get_settings)) -> HomeworkAIClient:
    if not settings.openai_api_key:
        err = ConfigurationError("OpenAI API key not configured")
        raise _http_error(err)
    return HomeworkAIClient(settings)


def _http_error(e: ParentMathError) -> HTTPException:
    return HTTPException(status_code=STATUS_BY_KIND[e.kind], detail=error_detail(e.kind, e.message))


async def _limits(store, uid: str) -> Optional[dict]:
    try:
        profile = await store.get_profile(uid)
    except ParentMathError as e:
        logger.warning(f"Could not read limits for {uid}: {e.message}")
        return None
    return limits_payload(profile) if profile else None


# ═══════════════════════════════════════
# GET /api/limits
# ═══════════════════════════════════════

@router.get("/limits")
async def get_limits(
    user: Optional[dict] = Depends(get_current_user),
    store=Depends(get_entitlement_store),
):
    if user is None:
        return {"plan": "free", "is_pro": False, "can_use_free": True,
                "uses_remaining": FREE_LIMIT, "free_limit": FREE_LIMIT}
    try:
        profile = await store.get_profile(user["id"])
        if profile is None:
            await store.create_account_if_absent(user["id"], user.get("email"))
            profile = await store.get_profile(user["id"])
    except ParentMathError as e:
        raise _http_error(e)
    if profile is None:
        raise HTTPException(status_code=503, detail="Unable to load user profile")
    return limits_payload(profile)


# ═══════════════════════════════════════
# Problem detection
# ═══════════════════════════════════════

@router.post("/problems/detect")
@limiter.limit("10/minute")
async def detect(
    request: Request,
    req: DetectRequest,
    user: dict = Depends(require_auth),
    store=Depends(get_entitlement_store),
    ai=Depends(get_homework_ai),
):
    flow = HomeworkFlow(SessionContext(uid=user["id"], store=store, ai=ai,
                                       preferences=Preferences(method="image")))
    try:
        image, media_type = prepare_image(req.image, req.media_type)
        flow.select_image(image, media_type)
        result = await flow.recognize()
    except ParentMathError as e:
        raise _http_error(e)
    except Exception:
        logger.exception("Problem detection failed")
        raise HTTPException(status_code=500, detail="Could not read this photo. Please try again.")

    if isinstance(result, Err):
        raise HTTPException(
            status_code=STATUS_BY_KIND[result.kind],
            detail=error_detail(result.kind, result.message, image_fallback=True),
        )

    return {
        "status": "fallback" if isinstance(result, Fallback) else "ok",
        "reason": result.reason if isinstance(result, Fallback) else None,
        "problems": [asdict(p) for p in flow.problems],
        "selected_problem_id": flow.selected.id if flow.selected else None,
    }


# ═══════════════════════════════════════
# Analysis
# ═══════════════════════════════════════

@router.post("/analyze")
@limiter.limit("10/minute")
async def analyze(
    request: Request,
    req: AnalyzeRequest,
    user: dict = Depends(require_auth),
    store=Depends(get_entitlement_store),
    ai=Depends(get_homework_ai),
):
    uid = user["id"]
    flow = HomeworkFlow(SessionContext(uid=uid, store=store, ai=ai,
                                       preferences=Preferences(mode=req.mode, method=req.kind)))
    try:
        if req.kind == "image":
            image, media_type = prepare_image(req.image or "", req.media_type)
            flow.select_image(image, media_type, req.mode)
        else:
            flow.select_text(req.text or "", req.mode)
        outcome = await flow.submit()
    except ParentMathError as e:
        raise _http_error(e)
    except Exception:
        logger.exception("Analysis failed")
        raise HTTPException(status_code=500, detail="Analysis failed. Please try again.")

    if isinstance(outcome, Blocked):
        raise HTTPException(status_code=402, detail={
            "kind": "paywall",
            "message": f"You've used all {FREE_LIMIT} free problems. Go Pro for unlimited help.",
            "paywall": True,
            "uses_remaining": outcome.uses_remaining,
        })
    if isinstance(outcome, Err):
        raise HTTPException(status_code=STATUS_BY_KIND[outcome.kind],
                            detail=error_detail(outcome.kind, outcome.message))

    return {
        "status": "fallback" if isinstance(outcome, Fallback) else "ok",
        "fallback_reason": outcome.reason if isinstance(outcome, Fallback) else None,
        "result": outcome.value.model_dump(mode="json"),
        "limits": await _limits(store, uid),
    }
