"""Time-bounded cache over the provider's model catalog."""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any

from app.errors import ErrorKind, ProviderRequestError
from app.models.integrations import ModelInfo

logger = logging.getLogger(__name__)

DEFAULT_CACHE_TTL_SECONDS = 300
DEFAULT_LIMIT = 50

FetchModels = Callable[[int], Awaitable[list[dict[str, Any]]]]


def normalize_model(entry: Any) -> ModelInfo | None:
    """Map a raw catalog entry, or return None if it has no usable id."""
    if not isinstance(entry, dict):
        return None
    model_id = entry.get("id")
    if not isinstance(model_id, str) or not model_id:
        return None

    created = entry.get("created")
    if isinstance(created, bool) or not isinstance(created, int):
        created = None

    owned_by = entry.get("owned_by", entry.get("ownedBy"))
    if not isinstance(owned_by, str):
        owned_by = None

    return ModelInfo(id=model_id, created=created, owned_by=owned_by)


class ModelListService:
    """Caches the model list for ``ttl_seconds``.

    Concurrent misses share one upstream fetch. A failed refresh drops the
    cached list instead of serving stale data.
    """

    def __init__(
        self,
        fetch_models: FetchModels,
        ttl_seconds: float = DEFAULT_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self._fetch_models = fetch_models
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._models: list[ModelInfo] | None = None
        self._expires_at = 0.0
        self._lock = asyncio.Lock()

    def _is_fresh(self) -> bool:
        return self._models is not None and self._clock() < self._expires_at

    async def list_models(
        self,
        limit: int = DEFAULT_LIMIT,
        force_refresh: bool = False,
    ) -> list[ModelInfo]:
        """Return the cached model list, refreshing it when expired or forced."""
        if not force_refresh and self._is_fresh():
            return self._models

        async with self._lock:
            # Another caller may have refreshed while we waited.
            if not force_refresh and self._is_fresh():
                return self._models

            try:
                entries = await self._fetch_models(limit)
            except Exception as e:
                self.clear_cache()
                message = getattr(e, "message", None) or str(e)
                logger.error(f"Model list refresh failed: {message}")
                raise ProviderRequestError(
                    f"Failed to fetch OpenAI models: {message}"
                    if message
                    else "Failed to fetch OpenAI models.",
                    kind=ErrorKind.UPSTREAM,
                    status=getattr(e, "status", None),
                ) from e

            models = []
            for entry in entries or []:
                model = normalize_model(entry)
                if model:
                    models.append(model)

            self._models = models
            self._expires_at = self._clock() + self.ttl_seconds
            logger.info(f"Cached {len(models)} models for {self.ttl_seconds}s")
            return models

    def get_cache_info(self) -> dict[str, Any]:
        """Describe the current cache entry."""
        return {
            "size": len(self._models) if self._models is not None else 0,
            "expiresAt": self._expires_at if self._expires_at > 0 else None,
        }

    def clear_cache(self) -> None:
        """Drop the cached list immediately."""
        self._models = None
        self._expires_at = 0.0
