"""Query embedding caching to avoid repeated provider calls."""
import hashlib
import json
import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from core.redis import RedisClient

logger = logging.getLogger(__name__)

CACHE_SCHEMA_VERSION = 1


class EmbeddingCache:
    """
    Cache for query embeddings.

    Keys hash the lowercased, trimmed text together with the model name, so the same
    query in different casing shares an entry and switching models never returns a
    vector from the old model.
    """

    CACHE_TTL = 7 * 24 * 3600  # 7 days

    def __init__(self, redis_client: "RedisClient") -> None:
        """Initialize embedding cache with Redis client."""
        self._redis = redis_client

    def build_key(self, text: str, model: str) -> str:
        """Generate cache key for a text/model pair."""
        digest = hashlib.sha256(text.strip().lower().encode("utf-8")).hexdigest()
        return f"embedding:v{CACHE_SCHEMA_VERSION}:{model}:{digest}"

    async def get(self, text: str, model: str) -> list[float] | None:
        """
        Get a cached embedding.

        Returns:
            The embedding if found in cache, None on cache miss or undecodable entry.
        """
        data = await self._redis.get(self.build_key(text, model))
        if not data:
            return None
        try:
            embedding = json.loads(data)
        except ValueError:
            logger.warning("embedding_cache_corrupt_entry", extra={"model": model})
            return None
        if not isinstance(embedding, list):
            return None
        logger.debug("embedding_cache_hit", extra={"model": model})
        return [float(x) for x in embedding]

    async def set(self, text: str, model: str, embedding: list[float]) -> None:
        """Cache an embedding."""
        await self._redis.setex(
            self.build_key(text, model),
            self.CACHE_TTL,
            json.dumps(embedding),
        )
