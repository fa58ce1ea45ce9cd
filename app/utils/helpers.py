"""Dependency helpers for reaching app-scoped services."""

from fastapi import Request

from app.services.model_cache import ModelListService
from app.services.oauth_providers import OAuthProvider
from app.services.openai_client import OpenAIClient
from app.services.perplexity import PerplexityClient


def get_openai_client(request: Request) -> OpenAIClient:
    """Dependency for the shared OpenAI client."""
    return request.app.state.openai_client


def get_model_service(request: Request) -> ModelListService:
    """Dependency for the model list cache."""
    return request.app.state.model_service


def get_perplexity_client(request: Request) -> PerplexityClient:
    """Dependency for the shared Perplexity client."""
    return request.app.state.perplexity_client


def get_oauth_providers(request: Request) -> dict[str, OAuthProvider]:
    """Dependency for configured identity providers."""
    return request.app.state.oauth_providers
