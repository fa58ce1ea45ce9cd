"""Provider integration endpoints."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import ValidationError

from app.errors import ErrorKind, ProviderRequestError
from app.models.auth import AuthUser
from app.models.integrations import Connector, ConnectorRequest
from app.routers.auth import get_current_user
from app.services.model_cache import ModelListService
from app.services.openai_client import OpenAIClient
from app.services.prompts import CONNECTOR_SYSTEM_PROMPT, build_connector_prompt, parse_json_reply
from app.utils.helpers import get_model_service, get_openai_client

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/integrations", tags=["integrations"])


def _require_openai(openai: OpenAIClient) -> None:
    if not openai.is_configured:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="OpenAI integration is not configured.",
        )


@router.get("/openai/models")
async def list_openai_models(
    limit: int = Query(default=50, ge=1, le=200),
    refresh: bool = Query(default=False),
    openai: OpenAIClient = Depends(get_openai_client),
    service: ModelListService = Depends(get_model_service),
) -> dict:
    """List available OpenAI models, served from cache when fresh."""
    _require_openai(openai)
    try:
        models = await service.list_models(limit=limit, force_refresh=refresh)
    except ProviderRequestError as e:
        logger.error(f"/api/integrations/openai/models failed: {e.message}")
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Failed to fetch OpenAI models.",
        )

    return {
        "ok": True,
        "models": [m.model_dump(by_alias=True) for m in models],
        "cache": service.get_cache_info(),
    }


@router.delete("/openai/models/cache")
async def clear_openai_models_cache(
    user: AuthUser = Depends(get_current_user),
    service: ModelListService = Depends(get_model_service),
) -> dict:
    """Drop the cached model list."""
    service.clear_cache()
    logger.info(f"Model cache cleared by {user.id}")
    return {"ok": True, "cache": service.get_cache_info()}


@router.post("/openai/test")
async def test_openai_integration(
    user: AuthUser = Depends(get_current_user),
    openai: OpenAIClient = Depends(get_openai_client),
    service: ModelListService = Depends(get_model_service),
) -> dict:
    """Check that the configured key can reach OpenAI."""
    _require_openai(openai)
    try:
        models = await service.list_models(force_refresh=True)
    except ProviderRequestError as e:
        logger.warning(f"OpenAI integration check failed: {e.message}")
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="OpenAI integration check failed.",
        )
    return {"ok": True, "modelCount": len(models)}


@router.post("/openai/connectors")
async def suggest_connectors(
    payload: ConnectorRequest,
    user: AuthUser = Depends(get_current_user),
    openai: OpenAIClient = Depends(get_openai_client),
) -> dict:
    """Suggest connectors and automations for a use case."""
    _require_openai(openai)
    try:
        reply = await openai.generate_content(
            build_connector_prompt(payload.use_case),
            system_prompt=CONNECTOR_SYSTEM_PROMPT,
            temperature=0.4,
            response_format="json_object",
        )
    except ProviderRequestError as e:
        if e.kind == ErrorKind.VALIDATION:
            raise
        logger.error(f"/api/integrations/openai/connectors failed: {e!r}")
        raise HTTPException(
            status_code=e.http_status,
            detail="Failed to suggest connectors. Please try again.",
        )

    try:
        plan = parse_json_reply(reply)
        connectors = [Connector.model_validate(c) for c in plan.get("connectors", [])]
    except (ValueError, AttributeError, ValidationError):
        logger.error("Connector suggestion reply could not be parsed")
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="The AI provider returned an unreadable connector plan.",
        )

    return {
        "ok": True,
        "summary": plan.get("summary", "") if isinstance(plan.get("summary"), str) else "",
        "connectors": [c.model_dump() for c in connectors],
    }


@router.post("/{integration}/test")
async def test_integration(
    integration: str,
    user: AuthUser = Depends(get_current_user),
) -> dict:
    """Integrations other than OpenAI have no health check."""
    raise HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"Unknown integration: {integration}",
    )
