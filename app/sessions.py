"""Server-side sessions carried by a signed cookie."""

import hashlib
import hmac
import logging
import secrets
import time
from typing import Any

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from app.models.auth import AuthUser

logger = logging.getLogger(__name__)

USER_KEY = "user"
OAUTH_STATES_KEY = "oauth_states"
CSRF_KEY = "csrf_token"


class Session:
    """Mutable per-browser session data.

    Only sessions marked as modified are written back to the store, so a
    request that merely reads the session can never overwrite changes made
    by a concurrent request.
    """

    def __init__(self, session_id: str, data: dict[str, Any] | None = None, is_new: bool = False):
        self.id = session_id
        self.data: dict[str, Any] = data or {}
        self.is_new = is_new
        self.modified = False
        self.destroyed = False

    def mark_modified(self) -> None:
        self.modified = True

    def set(self, key: str, value: Any) -> None:
        self.data[key] = value
        self.modified = True

    @property
    def user(self) -> AuthUser | None:
        raw = self.data.get(USER_KEY)
        return AuthUser.model_validate(raw) if raw else None

    @user.setter
    def user(self, value: AuthUser | None) -> None:
        if value is None:
            self.data.pop(USER_KEY, None)
        else:
            self.data[USER_KEY] = value.model_dump()
        self.modified = True

    @property
    def oauth_states(self) -> dict[str, str]:
        """Provider name to pending OAuth state token.

        Callers that change the mapping must call ``mark_modified``.
        """
        return self.data.setdefault(OAUTH_STATES_KEY, {})

    def clear(self) -> None:
        self.data.clear()
        self.modified = True


class MemorySessionStore:
    """Process-local session store with expiry."""

    def __init__(self, max_age_seconds: int):
        self.max_age_seconds = max_age_seconds
        self._sessions: dict[str, tuple[float, dict[str, Any]]] = {}

    async def load(self, session_id: str) -> dict[str, Any] | None:
        entry = self._sessions.get(session_id)
        if entry is None:
            return None
        expires_at, data = entry
        if time.time() >= expires_at:
            del self._sessions[session_id]
            return None
        # Hand out a copy so unsaved changes never leak into the store.
        return _copy_data(data)

    async def save(self, session_id: str, data: dict[str, Any]) -> None:
        self._sessions[session_id] = (time.time() + self.max_age_seconds, _copy_data(data))

    async def touch(self, session_id: str) -> None:
        """Extend a session's expiry without rewriting its data."""
        entry = self._sessions.get(session_id)
        if entry is not None:
            self._sessions[session_id] = (time.time() + self.max_age_seconds, entry[1])

    async def destroy(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)

    def __len__(self) -> int:
        return len(self._sessions)


def _copy_data(data: dict[str, Any]) -> dict[str, Any]:
    copied = dict(data)
    if isinstance(copied.get(OAUTH_STATES_KEY), dict):
        copied[OAUTH_STATES_KEY] = dict(copied[OAUTH_STATES_KEY])
    return copied


def sign_session_id(session_id: str, secret: str) -> str:
    signature = hmac.new(secret.encode(), session_id.encode(), hashlib.sha256).hexdigest()
    return f"{session_id}.{signature}"


def unsign_session_id(cookie_value: str | None, secret: str) -> str | None:
    """Return the session id if the cookie signature is valid."""
    if not cookie_value or "." not in cookie_value:
        return None
    session_id, _, _ = cookie_value.rpartition(".")
    if not session_id:
        return None
    if not hmac.compare_digest(sign_session_id(session_id, secret), cookie_value):
        return None
    return session_id


class SessionMiddleware(BaseHTTPMiddleware):
    """Loads the session before the handler and persists it afterwards."""

    def __init__(
        self,
        app,
        store: MemorySessionStore,
        secret: str,
        cookie_name: str,
        max_age_seconds: int,
        secure: bool = False,
    ):
        super().__init__(app)
        self.store = store
        self.secret = secret
        self.cookie_name = cookie_name
        self.max_age_seconds = max_age_seconds
        self.secure = secure

    async def dispatch(self, request: Request, call_next) -> Response:
        session_id = unsign_session_id(request.cookies.get(self.cookie_name), self.secret)
        data = await self.store.load(session_id) if session_id else None
        if data is None:
            session = Session(secrets.token_urlsafe(32), is_new=True)
        else:
            session = Session(session_id, data)

        request.state.session = session
        request.state.session_store = self.store

        response: Response = await call_next(request)

        if session.destroyed:
            response.delete_cookie(
                self.cookie_name,
                path="/",
                secure=self.secure,
                httponly=True,
                samesite="lax",
            )
            return response

        if not session.modified:
            if not session.is_new:
                await self.store.touch(session.id)
            return response

        await self.store.save(session.id, session.data)
        response.set_cookie(
            self.cookie_name,
            sign_session_id(session.id, self.secret),
            max_age=self.max_age_seconds,
            path="/",
            httponly=True,
            secure=self.secure,
            samesite="lax",
        )
        return response


def get_session(request: Request) -> Session:
    """Dependency for the current session."""
    return request.state.session


async def save_session(request: Request) -> None:
    """Persist the session immediately, before the response is produced."""
    session: Session = request.state.session
    await request.state.session_store.save(session.id, session.data)


async def destroy_session(request: Request) -> None:
    """Remove the session from the store and expire its cookie."""
    session: Session = request.state.session
    await request.state.session_store.destroy(session.id)
    session.clear()
    session.destroyed = True


async def regenerate_session(request: Request) -> None:
    """Move the session data to a fresh id, dropping the old one."""
    session: Session = request.state.session
    await request.state.session_store.destroy(session.id)
    session.id = secrets.token_urlsafe(32)
    session.mark_modified()
