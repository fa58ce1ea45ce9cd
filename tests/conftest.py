"""Pytest configuration and fixtures for CreatorFlow tests."""

import os
from typing import AsyncGenerator
import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

# Set test environment before importing app modules
os.environ["ENVIRONMENT"] = "test"
os.environ["SESSION_SECRET"] = "test-session-secret"
os.environ["OPEN_API_KEY"] = "test-openai-key"
os.environ["PERPLEXITY_API_KEY"] = "test-perplexity-key"
os.environ["HTTP_MAX_RETRIES"] = "1"
os.environ["GOOGLE_CLIENT_ID"] = "test-google-client-id"
os.environ["GOOGLE_CLIENT_SECRET"] = "test-google-client-secret"
os.environ["GOOGLE_CALLBACK_URL"] = "http://localhost:3000/auth/google/callback"
os.environ["FACEBOOK_APP_ID"] = "test-facebook-app-id"
os.environ["FACEBOOK_APP_SECRET"] = "test-facebook-app-secret"
os.environ["FACEBOOK_CALLBACK_URL"] = "http://localhost:3000/auth/facebook/callback"

from app.config import get_settings
from app.main import create_app
from app.models.auth import AuthUser
from app.services import http_client

OPENAI_BASE = "https://api.openai.com/v1"
PERPLEXITY_BASE = "https://api.perplexity.ai"
SESSION_COOKIE = "creatorflow.sid"


@pytest.fixture(autouse=True)
def reset_settings():
    """Rebuild settings from the environment for every test."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def no_backoff(monkeypatch):
    """Skip retry delays."""
    monkeypatch.setattr(http_client, "compute_backoff_ms", lambda attempt: 0)


@pytest.fixture
def app(no_backoff):
    """Fresh application with empty caches and sessions."""
    return create_app()


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Create async HTTP client for API testing."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    await app.state.openai_client.close()
    await app.state.perplexity_client.close()


def session_cookie_from(response) -> str:
    """Cookie header value for the session set by a response."""
    for header in response.headers.get_list("set-cookie"):
        name, _, rest = header.partition("=")
        if name.strip() == SESSION_COOKIE:
            return f"{SESSION_COOKIE}={rest.split(';', 1)[0]}"
    raise AssertionError("response did not set a session cookie")


@pytest.fixture
def test_user() -> AuthUser:
    return AuthUser(
        id="google-user-1",
        display_name="Test User",
        provider="google",
        emails=["user@example.com"],
        photos=["https://example.com/pic.png"],
    )


@pytest_asyncio.fixture
async def signed_in_cookie(client: AsyncClient, app, test_user: AuthUser, monkeypatch) -> str:
    """Session cookie for a user who completed Google sign-in."""
    google = app.state.oauth_providers["google"]

    async def fake_exchange(code: str) -> AuthUser:
        return test_user

    monkeypatch.setattr(google, "exchange_code", fake_exchange)

    start = await client.get("/auth/google")
    cookie = session_cookie_from(start)
    state = start.headers["location"].split("state=", 1)[1].split("&", 1)[0]

    callback = await client.get(
        "/auth/google/callback",
        params={"code": "auth-code", "state": state},
        headers={"cookie": cookie},
    )
    assert callback.headers["location"] == "/dashboard.html"
    return session_cookie_from(callback)


@pytest.fixture
def chat_completion():
    """Build a chat completions payload."""
    def _build(content):
        return {
            "id": "chatcmpl-1",
            "object": "chat.completion",
            "choices": [
                {"index": 0, "message": {"role": "assistant", "content": content}},
            ],
        }
    return _build


@pytest.fixture
def models_payload():
    """Mock OpenAI models list response."""
    return {
        "object": "list",
        "data": [
            {"id": "gpt-4o", "object": "model", "created": 1715367049, "owned_by": "system"},
            {"id": "gpt-4o-mini", "object": "model", "created": 1721172741, "owned_by": "system"},
            {"object": "model", "created": 1, "owned_by": "system"},
        ],
    }
