"""Models for provider integrations."""

from enum import Enum
from pydantic import BaseModel, Field, field_validator


class ModelInfo(BaseModel):
    """A model entry from the provider catalog."""
    id: str = Field(..., min_length=1)
    created: int | None = None
    owned_by: str | None = Field(default=None, serialization_alias="ownedBy")


class ConnectorRequest(BaseModel):
    """Payload for connector suggestions."""
    use_case: str = Field(..., alias="useCase", max_length=1000)

    model_config = {"populate_by_name": True}

    @field_validator("use_case")
    @classmethod
    def validate_use_case(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Use case is required.")
        return v.strip()


class Connector(BaseModel):
    """A suggested integration connector."""
    name: str
    description: str = ""
    setup: list[str] = Field(default_factory=list)
    automations: list[str] = Field(default_factory=list)


class ResearchMode(str, Enum):
    """Kind of research request."""
    DEEP = "deep"
    COMPETITIVE = "competitive"
    AUDIENCE = "audience"


class ResearchRequest(BaseModel):
    """Payload for /api/research."""
    mode: ResearchMode = ResearchMode.DEEP
    topic: str = Field(..., max_length=2000)
    purpose: str | None = Field(default=None, max_length=200)
    platform: str | None = Field(default=None, max_length=40)
    competitor: str | None = Field(default=None, max_length=200)
    niche: str | None = Field(default=None, max_length=200)
    search_domains: list[str] = Field(default_factory=list, alias="searchDomains", max_length=10)

    model_config = {"populate_by_name": True}

    @field_validator("topic")
    @classmethod
    def validate_topic(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Topic is required.")
        return v.strip()
