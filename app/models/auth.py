"""Authentication models."""

from pydantic import BaseModel, Field


class AuthUser(BaseModel):
    """Authenticated user identity."""
    id: str = Field(..., min_length=1, max_length=128)
    display_name: str | None = Field(default=None, serialization_alias="displayName")
    provider: str
    emails: list[str] = Field(default_factory=list)
    photos: list[str] = Field(default_factory=list)


class AuthStatusResponse(BaseModel):
    """Current authentication state of the session."""
    authenticated: bool
    user: AuthUser | None = None


class CsrfTokenResponse(BaseModel):
    """CSRF token for state-changing auth requests."""
    csrf_token: str = Field(..., serialization_alias="csrfToken")
