import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from parentmath.auth.dependencies import get_entitlement_store, require_auth
from parentmath.billing.service import create_checkout_session
from parentmath.config import get_settings, Settings
from parentmath.exceptions import STATUS_BY_KIND, ParentMathError, error_detail
from parentmath.middleware import limiter

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/checkout")
@limiter.limit("5/minute")
async def checkout(
    request: Request,
    user: dict = Depends(require_auth),
    settings: Settings = Depends(get_settings),
    store=Depends(get_entitlement_store),
):
    """Start a Pro subscription checkout. Frontend redirects to the returned url."""
    try:
        return await create_checkout_session(user["id"], user.get("email"), store, settings)
    except ParentMathError as e:
        raise HTTPException(status_code=STATUS_BY_KIND[e.kind], detail=error_detail(e.kind, e.message))
    except Exception:
        logger.exception("Checkout failed")
        raise HTTPException(status_code=500, detail="Failed to start checkout. Please try again.")
