"""Outbound HTTP helpers with per-attempt deadlines and bounded retries."""

import asyncio
import json
import logging
import random
from typing import Any

import httpx

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_MS = 8000
DEFAULT_MAX_RETRIES = 3
BASE_BACKOFF_MS = 250
MAX_BACKOFF_MS = 2000
MAX_JITTER_MS = 120

RETRYABLE_STATUSES = frozenset({408, 425, 429, 500, 502, 503, 504})


class AttemptTimeout(httpx.TimeoutException):
    """An attempt ran past its deadline."""


def is_retryable_status(status_code: int) -> bool:
    return status_code in RETRYABLE_STATUSES


def normalize_retry_count(retries: Any, default: int = DEFAULT_MAX_RETRIES) -> int:
    """Clamp a retry count to a non-negative integer."""
    if isinstance(retries, bool) or not isinstance(retries, (int, float)):
        return default
    if retries != retries or retries in (float("inf"), float("-inf")):
        return default
    return max(0, int(retries))


def compute_backoff_ms(attempt: int) -> int:
    """Exponential backoff with jitter for the given zero-based attempt."""
    exponential = min(MAX_BACKOFF_MS, BASE_BACKOFF_MS * 2 ** attempt)
    return exponential + random.randrange(MAX_JITTER_MS)


async def pause(ms: int) -> None:
    await asyncio.sleep(ms / 1000)


async def _send_once(
    client: httpx.AsyncClient,
    request: httpx.Request,
    stream: bool,
) -> httpx.Response:
    response = await client.send(request, stream=True)
    if stream or is_retryable_status(response.status_code):
        return response
    try:
        await response.aread()
    finally:
        await response.aclose()
    return response


async def fetch_with_retry(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    timeout_ms: int = DEFAULT_TIMEOUT_MS,
    retries: int = DEFAULT_MAX_RETRIES,
    stream: bool = False,
    **request_kwargs: Any,
) -> httpx.Response:
    """Send a request, retrying transient failures with backoff.

    Each attempt is bounded by ``timeout_ms``. Transport errors, attempt
    timeouts and responses in ``RETRYABLE_STATUSES`` are retried up to
    ``retries`` times; anything else is returned on the first attempt that
    produces it. When retries run out the last response is returned or the
    last exception re-raised.

    Cancelling the calling task aborts the in-flight attempt and is never
    retried.

    With ``stream=True`` the returned response body is left unread and the
    caller owns closing it.
    """
    max_retries = normalize_retry_count(retries)
    timeout_seconds = max(timeout_ms, 1) / 1000

    for attempt in range(max_retries + 1):
        is_last = attempt == max_retries
        request = client.build_request(method, url, **request_kwargs)

        try:
            response = await asyncio.wait_for(
                _send_once(client, request, stream),
                timeout=timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            if is_last:
                raise AttemptTimeout(
                    f"Request timed out after {timeout_ms}ms",
                    request=request,
                ) from e
            logger.info(f"{method} {request.url.host} timed out (attempt {attempt + 1})")
        except httpx.TransportError as e:
            if is_last:
                raise
            logger.info(
                f"{method} {request.url.host} transport error (attempt {attempt + 1}): "
                f"{type(e).__name__}"
            )
        else:
            if not is_retryable_status(response.status_code) or is_last:
                if not stream and not response.is_closed:
                    await response.aread()
                    await response.aclose()
                return response
            # Release the connection before the next attempt.
            await response.aclose()
            logger.info(
                f"{method} {request.url.host} returned {response.status_code} "
                f"(attempt {attempt + 1}), retrying"
            )

        await pause(compute_backoff_ms(attempt))

    raise RuntimeError("Exhausted retry attempts")


def read_json_response(response: httpx.Response | None) -> Any:
    """Parse a response body as JSON, returning None when empty or malformed."""
    if response is None:
        return None
    text = response.text
    if not text:
        return None
    try:
        return json.loads(text)
    except ValueError:
        return None
