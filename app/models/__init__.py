"""Pydantic models for CreatorFlow."""

from app.models.auth import (
    AuthUser,
    AuthStatusResponse,
    CsrfTokenResponse,
)
from app.models.content import (
    ContentTemplate,
    ContentTone,
    GenerateRequest,
    GenerateResponse,
    ContentAnalysisRequest,
    VoiceValidationRequest,
)
from app.models.integrations import (
    ModelInfo,
    Connector,
    ConnectorRequest,
    ResearchMode,
    ResearchRequest,
)

__all__ = [
    # Auth models
    "AuthUser",
    "AuthStatusResponse",
    "CsrfTokenResponse",
    # Content models
    "ContentTemplate",
    "ContentTone",
    "GenerateRequest",
    "GenerateResponse",
    "ContentAnalysisRequest",
    "VoiceValidationRequest",
    # Integration models
    "ModelInfo",
    "Connector",
    "ConnectorRequest",
    "ResearchMode",
    "ResearchRequest",
]
