"""Utility functions for CreatorFlow."""

from app.utils.helpers import (
    get_openai_client,
    get_model_service,
    get_perplexity_client,
    get_oauth_providers,
)

__all__ = [
    "get_openai_client",
    "get_model_service",
    "get_perplexity_client",
    "get_oauth_providers",
]
