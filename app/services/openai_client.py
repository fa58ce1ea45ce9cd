"""OpenAI client with a chat-completions to responses API fallback."""

import json
import logging
import re
from collections.abc import AsyncIterator
from typing import Any

import httpx

from app.config import get_settings
from app.errors import ErrorKind, ProviderRequestError, truncate_body
from app.services.http_client import fetch_with_retry, read_json_response
from app.services.voices import VOICE_PERSONAS

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4o"
DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_TOKENS = 2000
DEFAULT_SYSTEM_PROMPT = "You are a helpful assistant."

FALLBACK_STATUSES = frozenset({404, 405})
RESPONSES_API_HINT = re.compile(
    r"responses\s+api"
    r"|use\s+the\s+responses"
    r"|/v1/responses"
    r"|only\s+supported\s+in\s+v1/responses"
    r"|not\s+supported\s+in\s+the\s+(v1/)?chat(/|\s+)completions",
    re.IGNORECASE,
)


def should_fall_back(status: int | None, body: str | None) -> bool:
    """Whether a failed chat-completions call should be retried on /responses."""
    if status in FALLBACK_STATUSES:
        return True
    if status == 400 and body:
        return RESPONSES_API_HINT.search(body) is not None
    return False


def _segment_text(segment: Any) -> str:
    if isinstance(segment, str):
        return segment
    if not isinstance(segment, dict):
        return ""
    text = segment.get("text")
    if isinstance(text, str):
        return text
    if isinstance(text, dict) and isinstance(text.get("value"), str):
        return text["value"]
    value = segment.get("value")
    if isinstance(value, str):
        return value
    return ""


def extract_chat_text(payload: Any) -> str:
    """Pull the assistant text out of a chat-completions payload."""
    if not isinstance(payload, dict):
        return ""
    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices:
        return ""
    first = choices[0] if isinstance(choices[0], dict) else {}
    message = first.get("message") or {}
    content = message.get("content") if isinstance(message, dict) else None

    if isinstance(content, str):
        return content.strip()
    if isinstance(content, list):
        return "".join(_segment_text(part) for part in content).strip()
    return ""


def extract_responses_text(payload: Any) -> str:
    """Pull text out of a responses API payload.

    Prefers the consolidated ``output_text`` field and otherwise walks the
    ``output`` blocks in order.
    """
    if not isinstance(payload, dict):
        return ""

    output_text = payload.get("output_text")
    if isinstance(output_text, str) and output_text.strip():
        return output_text.strip()
    if isinstance(output_text, list):
        joined = "\n".join(
            part.strip() for part in output_text if isinstance(part, str) and part.strip()
        )
        if joined:
            return joined

    parts: list[str] = []
    output = payload.get("output")
    if isinstance(output, list):
        for block in output:
            if not isinstance(block, dict):
                continue
            content = block.get("content")
            segments = content if isinstance(content, list) else [block]
            for segment in segments:
                text = _segment_text(segment).strip()
                if text:
                    parts.append(text)
    return "\n".join(parts)


def _stream_fragment(chunk: Any) -> str:
    """Text delta carried by one streamed chat-completions chunk."""
    if not isinstance(chunk, dict):
        return ""
    choices = chunk.get("choices")
    first = choices[0] if isinstance(choices, list) and choices else None
    if not isinstance(first, dict):
        return ""
    delta = first.get("delta")
    if not isinstance(delta, dict):
        return ""
    content = delta.get("content")
    return content if isinstance(content, str) else ""


API_KEY_PATTERN = re.compile(r"sk-[A-Za-z0-9_\-*]+")


def upstream_error_detail(body: str | None, api_key: str = "") -> str:
    """Upstream ``error.message`` with API keys masked, shortened for logs."""
    if not body:
        return ""
    try:
        payload = json.loads(body)
    except ValueError:
        payload = None
    detail = ""
    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict) and isinstance(error.get("message"), str):
            detail = error["message"]
        elif isinstance(error, str):
            detail = error
    if not detail:
        return ""
    if api_key:
        detail = detail.replace(api_key, "sk-***")
    return truncate_body(API_KEY_PATTERN.sub("sk-***", detail).strip())


def _error_from_response(prefix: str, response: httpx.Response) -> ProviderRequestError:
    kind = ErrorKind.UPSTREAM
    if should_fall_back(response.status_code, response.text):
        kind = ErrorKind.ENDPOINT_SHAPE_MISMATCH
    elif response.status_code in (408, 429) or response.status_code >= 500:
        kind = ErrorKind.TRANSIENT_UPSTREAM
    return ProviderRequestError(
        f"{prefix}: {response.status_code}",
        kind=kind,
        status=response.status_code,
        body=response.text,
    )


class OpenAIClient:
    """Client for the OpenAI HTTP API.

    Text generation goes through /chat/completions first and transparently
    falls back to /responses when the model or account only supports the
    newer endpoint.
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        model: str | None = None,
        timeout_ms: int | None = None,
        retries: int | None = None,
        models_timeout_ms: int | None = None,
    ):
        settings = get_settings()
        self.api_key = settings.openai_api_key if api_key is None else api_key
        self.base_url = (base_url or settings.openai_base_url).rstrip("/")
        self.model = model or settings.openai_model or DEFAULT_MODEL
        self.timeout_ms = timeout_ms or settings.http_timeout_ms
        self.retries = settings.http_max_retries if retries is None else retries
        self.models_timeout_ms = models_timeout_ms or settings.models_timeout_ms
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

    def _ensure_configured(self) -> None:
        if not self.is_configured:
            raise ProviderRequestError(
                "OpenAI API key not configured on server.",
                kind=ErrorKind.CONFIGURATION,
            )

    @staticmethod
    def _resolve_system_prompt(system_prompt: str | None, voice_id: str | None) -> str:
        if system_prompt:
            return system_prompt
        if voice_id and voice_id in VOICE_PERSONAS:
            return VOICE_PERSONAS[voice_id].system_prompt
        return DEFAULT_SYSTEM_PROMPT

    async def generate_content(
        self,
        prompt: str,
        *,
        system_prompt: str | None = None,
        voice_id: str | None = None,
        model: str | None = None,
        temperature: float = DEFAULT_TEMPERATURE,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        response_format: str = "text",
        timeout_ms: int | None = None,
    ) -> str:
        """Generate text for a prompt.

        Raises ProviderRequestError when neither endpoint yields content.
        """
        self._ensure_configured()
        if not isinstance(prompt, str) or not prompt.strip():
            raise ProviderRequestError(
                "Prompt is required and must be a string.",
                kind=ErrorKind.VALIDATION,
            )

        instructions = self._resolve_system_prompt(system_prompt, voice_id)
        model = model or self.model
        wants_json = response_format == "json_object"
        timeout_ms = timeout_ms or self.timeout_ms

        chat_payload: dict[str, Any] = {
            "model": model,
            "messages": [
                {"role": "system", "content": instructions},
                {"role": "user", "content": prompt},
            ],
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if wants_json:
            chat_payload["response_format"] = {"type": "json_object"}

        client = await self._get_client()
        try:
            response = await fetch_with_retry(
                client,
                "POST",
                "/chat/completions",
                json=chat_payload,
                timeout_ms=timeout_ms,
                retries=self.retries,
            )
        except httpx.HTTPError as e:
            raise ProviderRequestError(
                f"OpenAI chat completions request failed: {type(e).__name__}",
                kind=ErrorKind.TRANSIENT_UPSTREAM,
            ) from e

        if response.is_success:
            payload = read_json_response(response)
            if payload is None:
                raise ProviderRequestError(
                    "OpenAI returned a malformed chat completions response.",
                    kind=ErrorKind.MALFORMED_RESPONSE,
                    status=response.status_code,
                    body=response.text,
                )
            content = extract_chat_text(payload)
            if not content:
                raise ProviderRequestError(
                    "No content generated by OpenAI.",
                    kind=ErrorKind.EMPTY_CONTENT,
                    status=response.status_code,
                )
            return content

        error = _error_from_response("OpenAI chat completions call failed", response)
        if error.kind != ErrorKind.ENDPOINT_SHAPE_MISMATCH:
            logger.error(
                f"OpenAI chat completions failed with {response.status_code}: "
                f"{truncate_body(response.text)}"
            )
            raise error

        logger.warning(
            f"OpenAI chat completions returned {response.status_code}; "
            "falling back to the responses API"
        )
        return await self._generate_via_responses(
            model=model,
            instructions=instructions,
            prompt=prompt,
            temperature=temperature,
            max_tokens=max_tokens,
            wants_json=wants_json,
            timeout_ms=timeout_ms,
        )

    async def _generate_via_responses(
        self,
        *,
        model: str,
        instructions: str,
        prompt: str,
        temperature: float,
        max_tokens: int,
        wants_json: bool,
        timeout_ms: int,
    ) -> str:
        payload: dict[str, Any] = {
            "model": model,
            "input": [
                {
                    "role": "system",
                    "content": [{"type": "input_text", "text": instructions}],
                },
                {
                    "role": "user",
                    "content": [{"type": "input_text", "text": prompt}],
                },
            ],
            "temperature": temperature,
            "max_output_tokens": max_tokens,
        }
        if wants_json:
            payload["text"] = {"format": {"type": "json_object"}}

        client = await self._get_client()
        try:
            response = await fetch_with_retry(
                client,
                "POST",
                "/responses",
                json=payload,
                timeout_ms=timeout_ms,
                retries=self.retries,
            )
        except httpx.HTTPError as e:
            raise ProviderRequestError(
                f"OpenAI responses call failed: {type(e).__name__}",
                kind=ErrorKind.TRANSIENT_UPSTREAM,
            ) from e

        if not response.is_success:
            logger.error(
                f"OpenAI responses fallback failed with {response.status_code}: "
                f"{truncate_body(response.text)}"
            )
            error = _error_from_response("OpenAI responses call failed", response)
            if error.kind == ErrorKind.ENDPOINT_SHAPE_MISMATCH:
                error.kind = ErrorKind.UPSTREAM
            raise error

        data = read_json_response(response)
        if data is None:
            raise ProviderRequestError(
                "OpenAI returned a malformed responses payload.",
                kind=ErrorKind.MALFORMED_RESPONSE,
                status=response.status_code,
                body=response.text,
            )
        content = extract_responses_text(data)
        if not content:
            raise ProviderRequestError(
                "No content generated by OpenAI responses API.",
                kind=ErrorKind.EMPTY_CONTENT,
                status=response.status_code,
            )
        return content

    async def stream_content(
        self,
        prompt: str,
        *,
        system_prompt: str | None = None,
        voice_id: str | None = None,
        model: str | None = None,
        temperature: float = DEFAULT_TEMPERATURE,
        max_tokens: int = DEFAULT_MAX_TOKENS,
    ) -> AsyncIterator[str]:
        """Yield text fragments from a streamed chat completion.

        Stopping iteration early closes the upstream stream.
        """
        self._ensure_configured()
        if not isinstance(prompt, str) or not prompt.strip():
            raise ProviderRequestError(
                "Prompt is required and must be a string.",
                kind=ErrorKind.VALIDATION,
            )

        payload = {
            "model": model or self.model,
            "messages": [
                {"role": "system", "content": self._resolve_system_prompt(system_prompt, voice_id)},
                {"role": "user", "content": prompt},
            ],
            "temperature": temperature,
            "max_tokens": max_tokens,
            "stream": True,
        }

        client = await self._get_client()
        try:
            response = await fetch_with_retry(
                client,
                "POST",
                "/chat/completions",
                json=payload,
                timeout_ms=self.timeout_ms,
                retries=self.retries,
                stream=True,
            )
        except httpx.HTTPError as e:
            raise ProviderRequestError(
                f"OpenAI streaming request failed: {type(e).__name__}",
                kind=ErrorKind.TRANSIENT_UPSTREAM,
            ) from e
        try:
            if not response.is_success:
                await response.aread()
                raise _error_from_response("OpenAI streaming call failed", response)

            async for line in response.aiter_lines():
                if not line.startswith("data:"):
                    continue
                data = line[len("data:"):].strip()
                if data == "[DONE]":
                    break
                try:
                    chunk = json.loads(data)
                except ValueError:
                    logger.debug("Skipping malformed stream chunk")
                    continue
                fragment = _stream_fragment(chunk)
                if fragment:
                    yield fragment
        finally:
            await response.aclose()

    async def fetch_model_entries(self, limit: int = 50) -> list[dict[str, Any]]:
        """Fetch the raw model catalog entries."""
        self._ensure_configured()
        client = await self._get_client()
        try:
            response = await fetch_with_retry(
                client,
                "GET",
                "/models",
                params={"limit": limit},
                timeout_ms=self.models_timeout_ms,
                retries=self.retries,
            )
        except httpx.HTTPError as e:
            raise ProviderRequestError(
                f"OpenAI models request failed: {type(e).__name__}",
                kind=ErrorKind.TRANSIENT_UPSTREAM,
            ) from e

        if not response.is_success:
            error = _error_from_response("OpenAI request failed", response)
            detail = upstream_error_detail(response.text, self.api_key)
            if detail:
                error.message = f"{error.message} ({detail})"
                error.args = (error.message,)
            raise error

        data = read_json_response(response)
        if not isinstance(data, dict) or not isinstance(data.get("data"), list):
            raise ProviderRequestError(
                "OpenAI returned a malformed models response.",
                kind=ErrorKind.MALFORMED_RESPONSE,
                status=response.status_code,
                body=response.text,
            )
        return data["data"]
