"""
Entitlement store backed by the Supabase `profiles` table.

Columns: id (auth uid), email, plan, free_uses_used, subscription_status,
stripe_customer_id, created_at, last_used_at.

Use consumption goes through the `consume_free_use(p_uid uuid)` Postgres
function so the increment is atomic at the database:

    update profiles
       set free_uses_used = free_uses_used + 1, last_used_at = now()
     where id = p_uid;
"""

import logging
from datetime import datetime, timezone
from typing import Optional, Protocol

from parentmath.auth.schemas import UsageProfile
from parentmath.exceptions import StoreError

logger = logging.getLogger(__name__)

PROFILE_COLUMNS = (
    "id, email, plan, free_uses_used, subscription_status, "
    "stripe_customer_id, created_at, last_used_at"
)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class EntitlementStore(Protocol):
    async def get_profile(self, uid: str) -> Optional[UsageProfile]: ...

    async def consume_use(self, uid: str) -> None: ...

    async def create_account_if_absent(self, uid: str, email: Optional[str]) -> None: ...

    async def set_stripe_customer_id(self, uid: str, customer_id: str) -> None: ...


class SupabaseEntitlementStore:
    def __init__(self, client):
        self.sb = client

    async def get_profile(self, uid: str) -> Optional[UsageProfile]:
        try:
            result = self.sb.table("profiles").select(PROFILE_COLUMNS).eq("id", uid).execute()
        except Exception as e:
            logger.warning(f"Could not fetch profile {uid}: {e}")
            raise StoreError() from e
        if result.data and len(result.data) > 0:
            return UsageProfile.from_row(result.data[0])
        return None

    async def consume_use(self, uid: str) -> None:
        try:
            self.sb.rpc("consume_free_use", {"p_uid": uid}).execute()
        except Exception as e:
            logger.warning(f"Could not consume a use for {uid}: {e}")
            raise StoreError("Could not update your usage. Please try again.") from e

    async def create_account_if_absent(self, uid: str, email: Optional[str]) -> None:
        now = _now().isoformat()
        try:
            existing = self.sb.table("profiles").select("id").eq("id", uid).execute()
            if existing.data and len(existing.data) > 0:
                self.sb.table("profiles").update({"last_used_at": now}).eq("id", uid).execute()
                return
            self.sb.table("profiles").insert({
                "id": uid, "email": email, "plan": "free", "free_uses_used": 0,
                "subscription_status": "inactive", "stripe_customer_id": None,
                "created_at": now, "last_used_at": now,
            }).execute()
            logger.info(f"Created profile for {uid}")
        except Exception as e:
            logger.warning(f"Could not ensure profile for {uid}: {e}")
            raise StoreError() from e

    async def set_stripe_customer_id(self, uid: str, customer_id: str) -> None:
        try:
            self.sb.table("profiles").update({"stripe_customer_id": customer_id}) \
                .eq("id", uid).is_("stripe_customer_id", "null").execute()
        except Exception as e:
            logger.warning(f"Could not save Stripe customer for {uid}: {e}")
            raise StoreError() from e


class InMemoryEntitlementStore:
    """Process-local store for tests and running without Supabase."""

    def __init__(self, profiles: Optional[list[UsageProfile]] = None):
        self.profiles: dict[str, UsageProfile] = {p.uid: p for p in profiles or []}
        self.consume_calls: list[str] = []

    async def get_profile(self, uid: str) -> Optional[UsageProfile]:
        return self.profiles.get(uid)

    async def consume_use(self, uid: str) -> None:
        profile = self.profiles.get(uid)
        if profile is None:
            raise StoreError()
        self.consume_calls.append(uid)
        self.profiles[uid] = profile.model_copy(update={
            "free_uses_used": profile.free_uses_used + 1,
            "last_used_at": _now(),
        })

    async def create_account_if_absent(self, uid: str, email: Optional[str]) -> None:
        profile = self.profiles.get(uid)
        if profile is None:
            self.profiles[uid] = UsageProfile(uid=uid, email=email, created_at=_now(), last_used_at=_now())
        else:
            self.profiles[uid] = profile.model_copy(update={"last_used_at": _now()})

    async def set_stripe_customer_id(self, uid: str, customer_id: str) -> None:
        profile = self.profiles.get(uid)
        if profile is None:
            raise StoreError()
        if profile.stripe_customer_id is None:
            self.profiles[uid] = profile.model_copy(update={"stripe_customer_id": customer_id})
