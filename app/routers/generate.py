"""Content generation endpoints."""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import StreamingResponse

from app.errors import ErrorKind, ProviderRequestError
from app.models.content import (
    ContentAnalysisRequest,
    GenerateRequest,
    GenerateResponse,
    VoiceValidationRequest,
)
from app.services.openai_client import OpenAIClient
from app.services.prompts import (
    ANALYSIS_SYSTEM_PROMPT,
    build_analysis_prompt,
    build_generate_prompt,
    parse_json_reply,
)
from app.services.voices import VOICE_PERSONAS, get_available_voices, validate_content_for_voice
from app.utils.helpers import get_openai_client

logger = logging.getLogger(__name__)

router = APIRouter(tags=["generate"])

GENERATE_MAX_TOKENS = 600
GENERATE_FAILED = "Failed to generate content. Please try again."


def _generation_error(route: str, error: ProviderRequestError) -> Exception:
    """Exception to surface for a failed provider call."""
    if error.kind in (ErrorKind.CONFIGURATION, ErrorKind.VALIDATION):
        return error
    logger.error(f"{route} failed: {error!r}")
    return HTTPException(status_code=error.http_status, detail=GENERATE_FAILED)


def _check_voice(voice_id: str | None) -> None:
    if voice_id and voice_id not in VOICE_PERSONAS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid voice.",
        )


@router.post("/generate", response_model=GenerateResponse)
async def generate(
    payload: GenerateRequest,
    openai: OpenAIClient = Depends(get_openai_client),
) -> GenerateResponse:
    """Generate a post, script or caption from the user's notes."""
    _check_voice(payload.voice_id)
    prompt = build_generate_prompt(payload.template, payload.input, payload.platform, payload.tone)
    try:
        content = await openai.generate_content(
            prompt,
            voice_id=payload.voice_id,
            max_tokens=GENERATE_MAX_TOKENS,
        )
    except ProviderRequestError as e:
        raise _generation_error("/api/generate", e)

    return GenerateResponse(
        template=payload.template,
        platform=payload.platform,
        tone=payload.tone or "default",
        content=content,
    )


@router.post("/generate/stream")
async def generate_stream(
    payload: GenerateRequest,
    openai: OpenAIClient = Depends(get_openai_client),
) -> StreamingResponse:
    """Stream generated text as it is produced."""
    _check_voice(payload.voice_id)
    prompt = build_generate_prompt(payload.template, payload.input, payload.platform, payload.tone)
    fragments = openai.stream_content(
        prompt,
        voice_id=payload.voice_id,
        max_tokens=GENERATE_MAX_TOKENS,
    )

    # Pull the first fragment so upstream failures still get a proper status.
    try:
        first = await anext(fragments)
    except StopAsyncIteration:
        first = ""
    except ProviderRequestError as e:
        await fragments.aclose()
        raise _generation_error("/api/generate/stream", e)

    async def body():
        try:
            if first:
                yield first
            async for fragment in fragments:
                yield fragment
        except ProviderRequestError as e:
            logger.error(f"/api/generate/stream interrupted: {e!r}")
        finally:
            await fragments.aclose()

    return StreamingResponse(body(), media_type="text/plain; charset=utf-8")


@router.post("/content/analysis")
async def analyze_content(
    payload: ContentAnalysisRequest,
    openai: OpenAIClient = Depends(get_openai_client),
) -> dict:
    """Score content and suggest improvements."""
    try:
        reply = await openai.generate_content(
            build_analysis_prompt(payload.content, payload.goal, payload.platform),
            system_prompt=ANALYSIS_SYSTEM_PROMPT,
            temperature=0.3,
            response_format="json_object",
        )
    except ProviderRequestError as e:
        raise _generation_error("/api/content/analysis", e)

    try:
        analysis = parse_json_reply(reply)
    except ValueError:
        logger.error("/api/content/analysis received a reply that was not JSON")
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="The AI provider returned an unreadable analysis.",
        )
    if not isinstance(analysis, dict):
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="The AI provider returned an unreadable analysis.",
        )

    return {"ok": True, "analysis": analysis}


@router.get("/voices")
async def list_voices() -> dict:
    """List available voice personas."""
    return {"ok": True, "voices": get_available_voices()}


@router.post("/voices/validate")
async def validate_voice(payload: VoiceValidationRequest) -> dict:
    """Check content against a voice's prohibited words."""
    _check_voice(payload.voice_id)
    return {
        "ok": True,
        "prohibitedWords": validate_content_for_voice(payload.content, payload.voice_id),
    }
