"""Research endpoints backed by Perplexity."""

import logging

from fastapi import APIRouter, Depends, HTTPException

from app.errors import ErrorKind, ProviderRequestError
from app.models.integrations import ResearchMode, ResearchRequest
from app.services.perplexity import PerplexityClient, build_research_prompt
from app.utils.helpers import get_perplexity_client

logger = logging.getLogger(__name__)

router = APIRouter(tags=["research"])


@router.post("/research")
async def research(
    payload: ResearchRequest,
    perplexity: PerplexityClient = Depends(get_perplexity_client),
) -> dict:
    """Run a research request in the chosen mode."""
    try:
        if payload.mode == ResearchMode.COMPETITIVE:
            content = await perplexity.analyze_competitive_content(
                payload.topic,
                competitor=payload.competitor,
                platform=payload.platform,
            )
        elif payload.mode == ResearchMode.AUDIENCE:
            content = await perplexity.get_audience_insights(
                payload.topic,
                platform=payload.platform,
                niche=payload.niche,
            )
        else:
            content = await perplexity.perform_deep_research(
                build_research_prompt(
                    payload.topic,
                    payload.purpose or "general research",
                    payload.platform,
                ),
                search_domains=payload.search_domains,
            )
    except ProviderRequestError as e:
        if e.kind in (ErrorKind.CONFIGURATION, ErrorKind.VALIDATION):
            raise
        logger.error(f"/api/research failed: {e!r}")
        raise HTTPException(
            status_code=e.http_status,
            detail="Research request failed. Please try again.",
        )

    return {"ok": True, "mode": payload.mode.value, "content": content}
