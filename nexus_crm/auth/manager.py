"""Session manager - the engine's view of "who is signed in".

Answers the two questions the reconciler needs (is there a live session,
which tenant does the actor belong to) and announces session renewals
(sign-in, token refresh) to subscribers.
"""

from __future__ import annotations

import inspect
import logging
from typing import Any, Awaitable, Callable

from ..schemas.entities import Actor
from .client import AuthClient, AuthError
from .storage import SessionData, SessionStorage

logger = logging.getLogger(__name__)

RenewalListener = Callable[[str], "Awaitable[Any] | Any"]


class SessionManager:
    """Session lifecycle and profile lookups.

    Usage:
        manager = SessionManager()
        manager.on_session_renewed(lambda event: print(event))
        await manager.sign_in("me@example.com", "secret")
        manager.current_tenant()  # "org-1"
    """

    def __init__(self, storage: SessionStorage | None = None, auth_client: AuthClient | None = None):
        self.storage = storage or SessionStorage()
        self._auth_client = auth_client
        self._session: SessionData | None = self.storage.load()
        self._listeners: list[RenewalListener] = []

    @property
    def session(self) -> SessionData | None:
        return self._session

    def has_live_session(self) -> bool:
        return bool(self._session and self._session.access_token and not self._session.is_expired)

    def access_token(self) -> str | None:
        if not self.has_live_session():
            return None
        return self._session.access_token

    def current_tenant(self) -> str | None:
        return self._session.organization_id if self._session else None

    def current_actor(self) -> Actor | None:
        if not self._session:
            return None
        return Actor(
            id=self._session.user_id,
            name=self._session.user_name or self._session.email or "Operator",
            email=self._session.email,
            organization_id=self._session.organization_id,
            role=self._session.role,
        )

    def is_platform_admin(self, admin_emails: set[str]) -> bool:
        email = (self._session.email or "").strip().lower() if self._session else ""
        return bool(email) and email in admin_emails

    def on_session_renewed(self, listener: RenewalListener) -> None:
        self._listeners.append(listener)

    async def _notify(self, event: str) -> None:
        for listener in list(self._listeners):
            try:
                result = listener(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Session listener failed for %s", event)

    def _require_auth_client(self) -> AuthClient:
        if self._auth_client is None:
            raise AuthError("Auth provider not configured", error_code="not_configured")
        return self._auth_client

    async def sign_in(self, email: str, password: str) -> SessionData:
        session = await self._require_auth_client().sign_in_with_password(email, password)
        self._session = session
        self.storage.save(session)
        logger.info("Signed in as %s", session.email or session.user_id)
        await self._notify("signed_in")
        return session

    async def refresh(self) -> SessionData | None:
        """Refresh the access token. Returns None when refresh is not possible."""
        if not self._session or not self._session.refresh_token:
            return None
        try:
            session = await self._require_auth_client().refresh(self._session.refresh_token)
        except AuthError as e:
            logger.warning("Session refresh failed: %s", e)
            return None
        self._session = session
        self.storage.save(session)
        await self._notify("token_refreshed")
        return session

    async def ensure_fresh(self) -> bool:
        """Refresh an expired session if possible; True when a live session exists."""
        if self._session and self._session.is_expired:
            await self.refresh()
        return self.has_live_session()

    def sign_out(self) -> None:
        self._session = None
        self.storage.clear()
        logger.info("Signed out")
