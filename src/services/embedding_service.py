"""
Query embedding for vector search.

Embedding bookmark summaries happens at ingestion time, outside this service. Search
only needs to embed the query, through an OpenAI-compatible `/embeddings` endpoint
with a Redis cache in front of it.
"""
import logging
from typing import Protocol

import httpx

from core.config import Settings
from core.embedding_cache import EmbeddingCache
from services.exceptions import EmbeddingError

logger = logging.getLogger(__name__)


class EmbeddingProvider(Protocol):
    """Anything that can turn a query string into a vector."""

    model: str

    async def embed(self, text: str) -> list[float]:
        """Embed text. Raises EmbeddingError on failure."""
        ...


class HttpEmbeddingProvider:
    """Embedding provider backed by an OpenAI-compatible HTTP API."""

    def __init__(
        self,
        api_url: str,
        api_key: str | None,
        model: str,
        timeout: float = 3.0,
    ) -> None:
        self.api_url = api_url
        self.model = model
        self._api_key = api_key
        self._timeout = timeout

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    async def embed(self, text: str) -> list[float]:
        """
        Request an embedding for text.

        Raises:
            EmbeddingError: On timeout, connection failure, non-2xx status, or a
                response without an embedding.
        """
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(
                    self.api_url,
                    json={"model": self.model, "input": text},
                    headers=self._headers(),
                )
        except httpx.TimeoutException as e:
            raise EmbeddingError(f"Embedding request timed out after {self._timeout}s") from e
        except httpx.RequestError as e:
            raise EmbeddingError(f"Embedding request failed: {e}") from e

        if not response.is_success:
            raise EmbeddingError(f"Embedding provider returned HTTP {response.status_code}")

        try:
            embedding = response.json()["data"][0]["embedding"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise EmbeddingError("Embedding provider returned an unexpected payload") from e
        if not isinstance(embedding, list) or not embedding:
            raise EmbeddingError("Embedding provider returned an empty embedding")
        return [float(x) for x in embedding]


class CachedEmbeddingProvider:
    """Wraps a provider with a Redis cache. Cache failures fall through to the provider."""

    def __init__(self, provider: EmbeddingProvider, cache: EmbeddingCache) -> None:
        self._provider = provider
        self._cache = cache
        self.model = provider.model

    async def embed(self, text: str) -> list[float]:
        """Return a cached embedding or embed and cache it."""
        cached = await self._cache.get(text, self.model)
        if cached is not None:
            return cached
        embedding = await self._provider.embed(text)
        await self._cache.set(text, self.model, embedding)
        return embedding


def build_embedding_provider(
    settings: Settings,
    cache: EmbeddingCache | None = None,
) -> EmbeddingProvider | None:
    """Create the configured provider, or None when no embedding API is configured."""
    if not settings.embeddings_enabled:
        logger.info("Embedding provider not configured; vector search disabled")
        return None
    provider: EmbeddingProvider = HttpEmbeddingProvider(
        api_url=settings.embedding_api_url,
        api_key=settings.embedding_api_key,
        model=settings.embedding_model,
        timeout=settings.embedding_timeout_seconds,
    )
    if cache is not None:
        provider = CachedEmbeddingProvider(provider, cache)
    return provider


# Global embedding provider (set during app startup; None disables vector search)
_embedding_provider: EmbeddingProvider | None = None


def get_embedding_provider() -> EmbeddingProvider | None:
    """Get the global embedding provider."""
    return _embedding_provider


def set_embedding_provider(provider: EmbeddingProvider | None) -> None:
    """Set the global embedding provider."""
    global _embedding_provider  # noqa: PLW0603
    _embedding_provider = provider
