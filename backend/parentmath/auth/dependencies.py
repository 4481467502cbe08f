from fastapi import Depends, HTTPException, Header
from typing import Optional
import logging
import httpx

from parentmath.config import get_settings, get_supabase_client, Settings
from parentmath.usage.store import InMemoryEntitlementStore, SupabaseEntitlementStore

logger = logging.getLogger(__name__)

_local_store: Optional[InMemoryEntitlementStore] = None


async def get_current_user(
    authorization: Optional[str] = Header(None),
    settings: Settings = Depends(get_settings),
) -> Optional[dict]:
    """Extract and verify Supabase JWT from Authorization header.
    Returns user dict (anonymous users included) or None."""
    if not authorization or not authorization.startswith("Bearer "):
        return None

    token = authorization.split(" ", 1)[1]
    if not settings.supabase_url:
        return None

    try:
        async with httpx.AsyncClient(timeout=5.0) as client:
            resp = await client.get(
                f"{settings.supabase_url}/auth/v1/user",
                headers={
                    "Authorization": f"Bearer {token}",
                    "apikey": settings.supabase_service_key,
                },
            )
            if resp.status_code == 200:
                return resp.json()
            elif resp.status_code == 401:
                return None  # Expired/invalid token
            else:
                logger.warning(f"Supabase auth returned {resp.status_code}: {resp.text[:200]}")
                return None
    except httpx.ConnectError:
        logger.error("Cannot connect to Supabase — project may be paused or URL is wrong")
        raise HTTPException(
            status_code=503,
            detail="Authentication service is temporarily unavailable. Please try again later."
        )
    except httpx.TimeoutException:
        logger.error("Supabase auth request timed out")
        raise HTTPException(
            status_code=503,
            detail="Authentication service timed out. Please try again."
        )


async def require_auth(
    user: Optional[dict] = Depends(get_current_user),
) -> dict:
    """Require a signed-in (or anonymous) user, raising 401 otherwise."""
    if user is None:
        raise HTTPException(status_code=401, detail="Please sign in to continue")
    return user


def get_entitlement_store(settings: Settings = Depends(get_settings)):
    """Supabase-backed store, or a process-local one in debug mode."""
    global _local_store
    sb = get_supabase_client()
    if sb:
        return SupabaseEntitlementStore(sb)
    if settings.debug:
        if _local_store is None:
            logger.warning("Using in-memory entitlement store (debug, no Supabase).")
            _local_store = InMemoryEntitlementStore()
        return _local_store
    raise HTTPException(status_code=503, detail="Database not configured")
