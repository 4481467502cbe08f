"""
Anonymous session bootstrap.

    NO_SESSION → ANONYMOUS_SESSION
               ↘ FAILED  (no automatic retry)

Visitors get an anonymous Supabase user on first load so their free uses are
tracked from the first problem. start() is idempotent.
"""

import logging
from enum import Enum
from typing import Optional

import httpx

from parentmath.auth.schemas import AnonymousSession
from parentmath.config import Settings
from parentmath.exceptions import ConfigurationError, SessionError
from parentmath.usage.store import EntitlementStore

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    NO_SESSION = "no_session"
    ANONYMOUS_SESSION = "anonymous_session"
    FAILED = "failed"


class SessionBootstrap:
    def __init__(self, settings: Settings, store: EntitlementStore,
                 http: Optional[httpx.AsyncClient] = None):
        self.settings = settings
        self.store = store
        self.http = http
        self.state = SessionState.NO_SESSION
        self.session: Optional[AnonymousSession] = None
        self.error: Optional[SessionError] = None

    async def start(self) -> AnonymousSession:
        if self.state == SessionState.ANONYMOUS_SESSION:
            return self.session
        if self.state == SessionState.FAILED:
            raise self.error

        try:
            self.session = await self._sign_in_anonymously()
            await self.store.create_account_if_absent(self.session.uid, None)
        except ConfigurationError:
            raise
        except Exception as e:
            logger.error(f"Anonymous sign-in failed: {e}")
            self.error = e if isinstance(e, SessionError) else SessionError()
            self.state = SessionState.FAILED
            if self.error is e:
                raise
            raise self.error from e

        self.state = SessionState.ANONYMOUS_SESSION
        logger.info(f"Anonymous session started for {self.session.uid}")
        return self.session

    async def _sign_in_anonymously(self) -> AnonymousSession:
        s = self.settings
        if not s.supabase_url or not s.supabase_anon_key:
            raise ConfigurationError("Supabase auth not configured")

        url = f"{s.supabase_url}/auth/v1/signup"
        headers = {"apikey": s.supabase_anon_key, "Content-Type": "application/json"}
        if self.http is not None:
            resp = await self.http.post(url, json={}, headers=headers)
        else:
            async with httpx.AsyncClient(timeout=10.0) as client:
                resp = await client.post(url, json={}, headers=headers)

        if resp.status_code != 200:
            logger.warning(f"Supabase anonymous signup returned {resp.status_code}: {resp.text[:200]}")
            raise SessionError()

        data = resp.json()
        user = data.get("user") or {}
        if not user.get("id") or not data.get("access_token"):
            raise SessionError()
        return AnonymousSession(
            uid=user["id"],
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token"),
            expires_in=data.get("expires_in"),
        )
