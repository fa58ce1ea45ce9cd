"""OAuth sign-in and session endpoints."""

import hmac
import logging
import secrets

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request, status
from fastapi.responses import RedirectResponse

from app.models.auth import AuthStatusResponse, AuthUser, CsrfTokenResponse
from app.services.oauth_providers import OAuthExchangeError, OAuthProvider
from app.services.oauth_state import PendingOAuthStates
from app.sessions import (
    CSRF_KEY,
    Session,
    destroy_session,
    get_session,
    regenerate_session,
    save_session,
)
from app.utils.helpers import get_oauth_providers

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])

LANDING_PAGE = "/dashboard.html"


def login_error_url(provider: str) -> str:
    return f"/login.html?error={provider}"


def pending_states(session: Session) -> PendingOAuthStates:
    return PendingOAuthStates(session.oauth_states, on_change=session.mark_modified)


def get_current_user(session: Session = Depends(get_session)) -> AuthUser:
    """Resolve the signed-in user or reject the request."""
    user = session.user
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required.",
        )
    return user


def _get_provider(provider: str, providers: dict[str, OAuthProvider]) -> OAuthProvider:
    oauth = providers.get(provider)
    if oauth is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Unknown sign-in provider",
        )
    return oauth


@router.get("/auth/{provider}")
async def start_oauth(
    provider: str,
    request: Request,
    session: Session = Depends(get_session),
    providers: dict[str, OAuthProvider] = Depends(get_oauth_providers),
) -> RedirectResponse:
    """Redirect to the identity provider with a fresh state token."""
    oauth = _get_provider(provider, providers)
    if not oauth.is_configured:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"{provider.capitalize()} sign-in is not configured",
        )

    state = pending_states(session).issue(provider)
    await save_session(request)
    return RedirectResponse(oauth.authorization_url(state), status_code=status.HTTP_302_FOUND)


@router.get("/auth/{provider}/callback")
async def oauth_callback(
    provider: str,
    request: Request,
    state: str | None = Query(default=None),
    code: str | None = Query(default=None),
    error: str | None = Query(default=None),
    session: Session = Depends(get_session),
    providers: dict[str, OAuthProvider] = Depends(get_oauth_providers),
) -> RedirectResponse:
    """Validate the state token, then exchange the code and sign the user in."""
    oauth = _get_provider(provider, providers)
    failure = RedirectResponse(login_error_url(provider), status_code=status.HTTP_302_FOUND)

    # The state check runs before anything talks to the provider.
    state_valid = pending_states(session).consume(provider, state)
    await save_session(request)
    if not state_valid:
        return failure

    if error or not code:
        logger.warning(f"{provider} callback without authorization code (error={error!r})")
        return failure

    try:
        user = await oauth.exchange_code(code)
    except OAuthExchangeError as e:
        logger.error(f"{provider} sign-in failed: {e}")
        return failure

    # Fresh session id on sign-in.
    await regenerate_session(request)
    session.user = user
    logger.info(f"User {user.id} signed in with {provider}")
    return RedirectResponse(LANDING_PAGE, status_code=status.HTTP_302_FOUND)


@router.get("/api/auth/status", response_model=AuthStatusResponse, response_model_by_alias=True)
async def auth_status(session: Session = Depends(get_session)) -> AuthStatusResponse:
    """Report whether the session is signed in."""
    user = session.user
    return AuthStatusResponse(authenticated=user is not None, user=user)


@router.get("/api/auth/me", response_model=AuthUser, response_model_by_alias=True)
async def get_me(user: AuthUser = Depends(get_current_user)) -> AuthUser:
    """Get authenticated user profile."""
    return user


@router.get("/api/auth/csrf", response_model=CsrfTokenResponse, response_model_by_alias=True)
async def csrf_token(session: Session = Depends(get_session)) -> CsrfTokenResponse:
    """Issue the session's CSRF token for state-changing auth requests."""
    token = session.data.get(CSRF_KEY)
    if not token:
        token = secrets.token_urlsafe(32)
        session.set(CSRF_KEY, token)
    return CsrfTokenResponse(csrf_token=token)


@router.post("/api/auth/logout")
async def logout(
    request: Request,
    csrf_token: str | None = Header(default=None, alias="csrf-token"),
    session: Session = Depends(get_session),
) -> dict:
    """Sign out and drop the session."""
    expected = session.data.get(CSRF_KEY)
    if not expected or not csrf_token or not hmac.compare_digest(
        expected.encode(), csrf_token.encode()
    ):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid CSRF token.",
        )

    await destroy_session(request)
    return {"ok": True}
