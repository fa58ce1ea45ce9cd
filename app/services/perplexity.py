"""Perplexity client for research requests."""

import logging
from typing import Any

import httpx

from app.config import get_settings
from app.errors import ErrorKind, ProviderRequestError, truncate_body
from app.services.http_client import fetch_with_retry, read_json_response

logger = logging.getLogger(__name__)

PERPLEXITY_MODEL = "sonar-pro"
RESEARCH_SYSTEM_PROMPT = (
    "You are an expert research assistant. Provide comprehensive, well-sourced "
    "answers with citations."
)


def build_research_prompt(
    topic: str,
    purpose: str = "general research",
    platform: str | None = None,
) -> str:
    """Prompt for a general research request."""
    lines = [f"Conduct deep research on: {topic}", "", f"Purpose: {purpose}"]
    if platform:
        lines.append(f"Platform context: for {platform}")
    lines += [
        "",
        "Provide:",
        "1. Key findings with sources",
        "2. Latest trends and insights",
        "3. Expert perspectives",
        "4. Data and statistics (with citations)",
        "5. Actionable recommendations",
        "",
        "Format with clear sections and cite all sources.",
    ]
    return "\n".join(lines)


class PerplexityClient:
    """Client for the Perplexity chat completions API."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout_ms: int | None = None,
        retries: int | None = None,
    ):
        settings = get_settings()
        self.api_key = settings.perplexity_api_key if api_key is None else api_key
        self.base_url = (base_url or settings.perplexity_base_url).rstrip("/")
        self.timeout_ms = timeout_ms or settings.http_timeout_ms
        self.retries = settings.http_max_retries if retries is None else retries
        self._client: httpx.AsyncClient | None = None

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key and self.api_key.strip())

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=None,
                headers={"Authorization": f"Bearer {self.api_key}"},
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def perform_deep_research(
        self,
        query: str,
        *,
        temperature: float = 0.3,
        max_tokens: int = 2000,
        search_domains: list[str] | None = None,
    ) -> str:
        """Run a research query and return the answer text."""
        if not self.is_configured:
            raise ProviderRequestError(
                "Perplexity API key not configured on server.",
                kind=ErrorKind.CONFIGURATION,
            )
        if not isinstance(query, str) or not query.strip():
            raise ProviderRequestError(
                "Research query is required.",
                kind=ErrorKind.VALIDATION,
            )

        payload: dict[str, Any] = {
            "model": PERPLEXITY_MODEL,
            "messages": [
                {"role": "system", "content": RESEARCH_SYSTEM_PROMPT},
                {"role": "user", "content": query.strip()},
            ],
            "temperature": temperature,
            "max_tokens": max_tokens,
            "top_p": 0.9,
            "return_citations": True,
        }
        if search_domains:
            payload["search_domain_filter"] = list(search_domains)

        client = await self._get_client()
        try:
            response = await fetch_with_retry(
                client,
                "POST",
                "/chat/completions",
                json=payload,
                timeout_ms=self.timeout_ms,
                retries=self.retries,
            )
        except httpx.HTTPError as e:
            raise ProviderRequestError(
                f"Perplexity API request failed: {type(e).__name__}",
                kind=ErrorKind.TRANSIENT_UPSTREAM,
            ) from e

        if not response.is_success:
            logger.error(
                f"Perplexity returned {response.status_code}: {truncate_body(response.text)}"
            )
            raise ProviderRequestError(
                f"Perplexity API error ({response.status_code}): {response.text[:200]}",
                kind=ErrorKind.UPSTREAM,
                status=response.status_code,
                body=response.text,
            )

        data = read_json_response(response)
        try:
            content = data["choices"][0]["message"]["content"]
        except (TypeError, KeyError, IndexError):
            content = None
        if not isinstance(content, str) or not content:
            raise ProviderRequestError(
                "Unexpected Perplexity API response structure.",
                kind=ErrorKind.MALFORMED_RESPONSE,
                status=response.status_code,
            )
        return content

    async def analyze_competitive_content(
        self,
        content_topic: str,
        competitor: str | None = None,
        platform: str | None = None,
    ) -> str:
        """Research how other creators approach a topic."""
        competitor_text = f"especially by {competitor}" if competitor else "in this space"
        platform_text = f" on {platform}" if platform else ""
        prompt = (
            f'Research how content creators are currently approaching: "{content_topic}" '
            f"{competitor_text}{platform_text}.\n\n"
            "Include:\n"
            "- Top-performing content formats and hooks\n"
            "- Engagement patterns and audience response\n"
            "- Messaging strategies\n"
            "- Emerging trends\n"
            "- Content gaps and opportunities\n\n"
            "Provide citations for all data and examples."
        )
        return await self.perform_deep_research(prompt, temperature=0.4, max_tokens=2500)

    async def get_audience_insights(
        self,
        audience: str,
        platform: str | None = None,
        niche: str | None = None,
    ) -> str:
        """Research a target audience."""
        platform_text = f" on {platform}" if platform else ""
        niche_text = f" in the {niche} space" if niche else ""
        prompt = (
            f"Research the {audience} audience{platform_text}{niche_text}.\n\n"
            "Provide insights on:\n"
            "- Demographics and psychographics\n"
            "- Content preferences and consumption habits\n"
            "- Pain points and motivations\n"
            "- Language and communication style\n"
            "- Trending topics and interests\n"
            "- Engagement patterns\n\n"
            "Include current data and expert perspectives with citations."
        )
        return await self.perform_deep_research(prompt, temperature=0.35, max_tokens=2500)
