"""Configuration settings for CreatorFlow."""

from functools import lru_cache

from pydantic import AliasChoices, Field, model_validator
from pydantic_settings import BaseSettings

from app.errors import ConfigurationError

# Accepted OpenAI key settings, first non-empty wins.
OPENAI_KEY_FIELDS = ("open_api_key", "open_ai_key", "openai_api_key", "ai_api_key")

DEVELOPMENT_SESSION_SECRET = "development-session-secret"


def first_non_empty(values) -> str:
    """Return the first value that is not blank, stripped."""
    for value in values:
        value = (value or "").strip()
        if value:
            return value
    return ""


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    environment: str = "development"
    cors_origins: list[str] = ["http://localhost:3000"]

    # OpenAI settings
    open_api_key: str = ""
    open_ai_key: str = ""
    openai_api_key: str = ""
    ai_api_key: str = ""
    openai_base_url: str = "https://api.openai.com/v1"
    openai_model: str = "gpt-4o"

    # Perplexity settings
    perplexity_api_key: str = ""
    perplexity_base_url: str = "https://api.perplexity.ai"

    # Outbound HTTP settings
    http_timeout_ms: int = Field(default=8000, ge=1)
    http_max_retries: int = Field(default=3, ge=0)
    models_timeout_ms: int = Field(default=6000, ge=1)
    models_cache_ttl_seconds: int = Field(default=300, ge=0)

    # Session settings
    session_secret: str = ""
    session_cookie_name: str = "creatorflow.sid"
    session_max_age_seconds: int = 60 * 60 * 24 * 7
    session_cookie_secure: bool | None = None

    # OAuth settings
    google_client_id: str = ""
    google_client_secret: str = ""
    google_callback_url: str = "http://localhost:3000/auth/google/callback"
    facebook_app_id: str = Field(
        default="",
        validation_alias=AliasChoices("facebook_app_id", "facebook_client_id"),
    )
    facebook_app_secret: str = Field(
        default="",
        validation_alias=AliasChoices("facebook_app_secret", "facebook_client_secret"),
    )
    facebook_callback_url: str = "http://localhost:3000/auth/facebook/callback"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @model_validator(mode="after")
    def resolve_openai_api_key(self) -> "Settings":
        """Collapse the accepted key names into ``openai_api_key``.

        Applies to values from the environment and the ``.env`` file alike;
        an empty higher-precedence name does not shadow a later one.
        """
        self.openai_api_key = first_non_empty(getattr(self, name) for name in OPENAI_KEY_FIELDS)
        return self

    @property
    def is_production(self) -> bool:
        return self.environment.strip().lower() == "production"

    @property
    def cookie_secure(self) -> bool:
        if self.session_cookie_secure is None:
            return self.is_production
        return self.session_cookie_secure

    def resolve_session_secret(self) -> str:
        """Return the session secret, refusing to run without one in production."""
        secret = self.session_secret.strip()
        if secret:
            return secret
        if self.is_production:
            raise ConfigurationError(
                "SESSION_SECRET environment variable must be set in production"
            )
        return DEVELOPMENT_SESSION_SECRET


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
