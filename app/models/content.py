"""Request models for content generation endpoints."""

from enum import Enum
from pydantic import BaseModel, Field, field_validator

MAX_INPUT_LENGTH = 1200
MAX_PLATFORM_LENGTH = 40
MAX_ANALYSIS_LENGTH = 8000


class ContentTemplate(str, Enum):
    """Output shape for generated content."""
    POST = "post"
    SCRIPT = "script"
    CAPTION = "caption"


class ContentTone(str, Enum):
    """Tone applied to generated content."""
    DEFAULT = "default"
    CASUAL = "casual"
    PROFESSIONAL = "professional"
    EDGY = "edgy"


class GenerateRequest(BaseModel):
    """Payload for /api/generate."""
    template: str
    input: str
    platform: str | None = None
    tone: str | None = None
    voice_id: str | None = Field(default=None, alias="voiceId")

    model_config = {"populate_by_name": True}

    @field_validator("input")
    @classmethod
    def validate_input(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Input is required.")
        if len(v) > MAX_INPUT_LENGTH:
            raise ValueError(f"Input is too long (max {MAX_INPUT_LENGTH} characters).")
        return v

    @field_validator("template")
    @classmethod
    def validate_template(cls, v: str) -> str:
        if v not in {t.value for t in ContentTemplate}:
            raise ValueError("Invalid template.")
        return v

    @field_validator("tone")
    @classmethod
    def validate_tone(cls, v: str | None) -> str | None:
        if v and v not in {t.value for t in ContentTone}:
            raise ValueError("Invalid tone.")
        return v or None

    @field_validator("platform")
    @classmethod
    def validate_platform(cls, v: str | None) -> str | None:
        if v and len(v) > MAX_PLATFORM_LENGTH:
            raise ValueError("Platform value is too long.")
        return v or None


class GenerateResponse(BaseModel):
    """Generated content returned to the browser."""
    ok: bool = True
    template: str
    platform: str | None = None
    tone: str = ContentTone.DEFAULT.value
    content: str


class ContentAnalysisRequest(BaseModel):
    """Payload for /api/content/analysis."""
    content: str
    goal: str | None = Field(default=None, max_length=200)
    platform: str | None = Field(default=None, max_length=MAX_PLATFORM_LENGTH)

    @field_validator("content")
    @classmethod
    def validate_content(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Content is required.")
        if len(v) > MAX_ANALYSIS_LENGTH:
            raise ValueError(f"Content is too long (max {MAX_ANALYSIS_LENGTH} characters).")
        return v


class VoiceValidationRequest(BaseModel):
    """Payload for checking content against a voice's banned words."""
    content: str = Field(..., max_length=20000)
    voice_id: str = Field(..., alias="voiceId", min_length=1)

    model_config = {"populate_by_name": True}
