import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request

from parentmath.auth.dependencies import get_current_user, get_entitlement_store
from parentmath.auth.session import SessionBootstrap
from parentmath.config import get_settings, Settings
from parentmath.exceptions import STATUS_BY_KIND, ParentMathError, StoreError, error_detail
from parentmath.middleware import limiter
from parentmath.usage.entitlement import limits_payload

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/anonymous")
@limiter.limit("10/minute")
async def start_anonymous_session(
    request: Request,
    user: Optional[dict] = Depends(get_current_user),
    settings: Settings = Depends(get_settings),
    store=Depends(get_entitlement_store),
):
    """Called by the frontend on first load. A caller that already holds a
    session keeps it; only visitors without one get a new anonymous user."""
    try:
        if user is not None:
            await store.create_account_if_absent(user["id"], user.get("email"))
            return {"uid": user["id"], "existing": True}
        session = await SessionBootstrap(settings, store).start()
    except ParentMathError as e:
        raise HTTPException(status_code=STATUS_BY_KIND[e.kind], detail=error_detail(e.kind, e.message))
    return {**session.model_dump(), "existing": False}


@router.get("/me")
async def get_me(
    user: Optional[dict] = Depends(get_current_user),
    store=Depends(get_entitlement_store),
):
    """Current user with usage. Creates the profile row on first sign-in."""
    if user is None:
        return {"user": None}

    try:
        await store.create_account_if_absent(user["id"], user.get("email"))
        profile = await store.get_profile(user["id"])
    except ParentMathError as e:
        raise HTTPException(status_code=STATUS_BY_KIND[e.kind], detail=error_detail(e.kind, e.message))

    if profile is None:
        err = StoreError()
        raise HTTPException(status_code=503, detail=error_detail(err.kind, err.message))

    return {"user": {
        "id": profile.uid,
        "email": user.get("email"),
        "is_anonymous": bool(user.get("is_anonymous", False)),
        "plan": profile.plan,
        "subscription_status": profile.subscription_status,
        "free_uses_used": profile.free_uses_used,
        "limits": limits_payload(profile),
    }}
