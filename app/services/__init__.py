"""Services for CreatorFlow."""

from app.services.http_client import fetch_with_retry
from app.services.model_cache import ModelListService
from app.services.oauth_providers import OAuthProvider, build_providers
from app.services.oauth_state import PendingOAuthStates
from app.services.openai_client import OpenAIClient
from app.services.perplexity import PerplexityClient

__all__ = [
    "fetch_with_retry",
    "ModelListService",
    "OAuthProvider",
    "build_providers",
    "PendingOAuthStates",
    "OpenAIClient",
    "PerplexityClient",
]
