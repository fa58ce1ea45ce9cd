"""Identity provider clients for Google and Facebook sign-in."""

import logging
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlencode

import httpx

from app.config import Settings, get_settings
from app.models.auth import AuthUser

logger = logging.getLogger(__name__)

OAUTH_TIMEOUT_SECONDS = 10.0


class OAuthExchangeError(Exception):
    """The authorization code could not be exchanged for a user profile."""


@dataclass(frozen=True)
class ProviderEndpoints:
    """Static OAuth endpoints for an identity provider."""
    name: str
    authorize_url: str
    token_url: str
    profile_url: str
    scopes: tuple[str, ...]
    profile_params: tuple[tuple[str, str], ...] = ()


GOOGLE = ProviderEndpoints(
    name="google",
    authorize_url="https://accounts.google.com/o/oauth2/v2/auth",
    token_url="https://oauth2.googleapis.com/token",
    profile_url="https://openidconnect.googleapis.com/v1/userinfo",
    scopes=("openid", "profile", "email"),
)

FACEBOOK = ProviderEndpoints(
    name="facebook",
    authorize_url="https://www.facebook.com/v19.0/dialog/oauth",
    token_url="https://graph.facebook.com/v19.0/oauth/access_token",
    profile_url="https://graph.facebook.com/v19.0/me",
    scopes=("email", "public_profile"),
    profile_params=(("fields", "id,name,email,picture.type(large)"),),
)

PROVIDER_ENDPOINTS = {p.name: p for p in (GOOGLE, FACEBOOK)}


class OAuthProvider:
    """Builds authorization redirects and exchanges codes for one provider."""

    def __init__(
        self,
        endpoints: ProviderEndpoints,
        client_id: str,
        client_secret: str,
        callback_url: str,
    ):
        self.endpoints = endpoints
        self.client_id = client_id
        self.client_secret = client_secret
        self.callback_url = callback_url

    @property
    def name(self) -> str:
        return self.endpoints.name

    @property
    def is_configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    def authorization_url(self, state: str) -> str:
        """URL the browser is redirected to, carrying the state token."""
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.callback_url,
            "response_type": "code",
            "scope": " ".join(self.endpoints.scopes),
            "state": state,
        }
        if self.name == "google":
            params["access_type"] = "online"
            params["prompt"] = "select_account"
        return f"{self.endpoints.authorize_url}?{urlencode(params)}"

    async def _fetch_access_token(self, client: httpx.AsyncClient, code: str) -> str:
        response = await client.post(
            self.endpoints.token_url,
            data={
                "code": code,
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "redirect_uri": self.callback_url,
                "grant_type": "authorization_code",
            },
            headers={"Accept": "application/json"},
        )
        response.raise_for_status()
        access_token = response.json().get("access_token")
        if not access_token:
            raise OAuthExchangeError(f"{self.name} token response had no access_token")
        return access_token

    async def _fetch_profile(self, client: httpx.AsyncClient, access_token: str) -> dict[str, Any]:
        response = await client.get(
            self.endpoints.profile_url,
            params=dict(self.endpoints.profile_params),
            headers={"Authorization": f"Bearer {access_token}"},
        )
        response.raise_for_status()
        return response.json()

    async def exchange_code(self, code: str) -> AuthUser:
        """Exchange an authorization code for the user's profile."""
        try:
            async with httpx.AsyncClient(timeout=OAUTH_TIMEOUT_SECONDS) as client:
                access_token = await self._fetch_access_token(client, code)
                profile = await self._fetch_profile(client, access_token)
        except (httpx.HTTPError, ValueError) as e:
            raise OAuthExchangeError(f"{self.name} code exchange failed: {type(e).__name__}") from e
        return self.normalize_profile(profile)

    def normalize_profile(self, profile: dict[str, Any]) -> AuthUser:
        """Map a provider profile to an AuthUser."""
        user_id = profile.get("sub") or profile.get("id")
        if not user_id:
            raise OAuthExchangeError(f"{self.name} profile had no user id")

        email = profile.get("email")
        photo = profile.get("picture")
        if isinstance(photo, dict):
            photo = (photo.get("data") or {}).get("url")

        return AuthUser(
            id=str(user_id),
            display_name=profile.get("name"),
            provider=self.name,
            emails=[email] if email else [],
            photos=[photo] if isinstance(photo, str) and photo else [],
        )


def build_providers(settings: Settings | None = None) -> dict[str, OAuthProvider]:
    """Create provider clients from settings."""
    settings = settings or get_settings()
    return {
        "google": OAuthProvider(
            GOOGLE,
            client_id=settings.google_client_id,
            client_secret=settings.google_client_secret,
            callback_url=settings.google_callback_url,
        ),
        "facebook": OAuthProvider(
            FACEBOOK,
            client_id=settings.facebook_app_id,
            client_secret=settings.facebook_app_secret,
            callback_url=settings.facebook_callback_url,
        ),
    }
