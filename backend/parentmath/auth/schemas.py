from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field


class UsageProfile(BaseModel):
    uid: str
    email: Optional[str] = None
    plan: Literal["free", "pro"] = "free"
    free_uses_used: int = Field(0, ge=0)
    subscription_status: str = "inactive"
    stripe_customer_id: Optional[str] = None
    created_at: Optional[datetime] = None
    last_used_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: dict) -> "UsageProfile":
        return cls(uid=row["id"], **{k: v for k, v in row.items() if k != "id"})


class AnonymousSession(BaseModel):
    uid: str
    access_token: str
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None
