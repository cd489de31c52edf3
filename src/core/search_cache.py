"""Search result caching with owner-scoped invalidation."""
import hashlib
import json
import logging
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from schemas.search import SearchResponse

if TYPE_CHECKING:
    from core.redis import RedisClient

logger = logging.getLogger(__name__)

# Cache schema version - included in all cache keys (e.g., "search:v1:...")
#
# Bump this version when SearchResponse/SearchResultItem fields change or the
# ranking weights change. Old entries are then never found and expire via TTL.
CACHE_SCHEMA_VERSION = 1


class SearchCache:
    """
    Cache for search responses, keyed by owner and canonical request fields.

    Each owner has a generation counter embedded in every key. Invalidating an owner
    increments the counter, which makes all of their previously written entries
    unreachable in one operation; the orphans expire via TTL. Callers read the
    generation before computing a result and write under that same generation, so a
    result computed while a mutation commits lands under the old generation and is
    never served.

    Redis failures never surface: reads become misses and writes become no-ops.
    """

    GENERATION_TTL = 86400  # 1 day; must exceed the entry TTLs

    def __init__(
        self,
        redis_client: "RedisClient",
        ttl_seconds: int = 300,
        empty_ttl_seconds: int = 60,
        enabled: bool = True,
    ) -> None:
        """Initialize search cache with Redis client and TTLs."""
        self._redis = redis_client
        self._ttl = ttl_seconds
        self._empty_ttl = empty_ttl_seconds
        self._enabled = enabled

    @property
    def enabled(self) -> bool:
        """Whether the cache can currently be used."""
        return self._enabled and self._redis.is_connected

    def _generation_key(self, user_id: str) -> str:
        """Generate key for the owner's generation counter."""
        return f"search:v{CACHE_SCHEMA_VERSION}:{user_id}:gen"

    def build_key(self, user_id: str, generation: int, fields: dict[str, Any]) -> str:
        """
        Generate cache key for a search.

        Args:
            user_id: Owner of the search.
            generation: Owner's generation counter, read before the search ran.
            fields: Canonical request fields (query, tags, types, special, cursor,
                matching distance, limit). Key order does not matter.
        """
        canonical = json.dumps(fields, sort_keys=True, separators=(",", ":"), default=str)
        digest = hashlib.sha256(canonical.encode("utf-8")).hexdigest()
        return f"search:v{CACHE_SCHEMA_VERSION}:{user_id}:{generation}:{digest}"

    async def get_generation(self, user_id: str) -> int | None:
        """
        Read the owner's current generation.

        Returns:
            The generation (0 if never invalidated), or None when the cache is disabled
            or Redis is unavailable. None means: do not read or write entries.
        """
        if not self.enabled:
            return None
        return await self._redis.get_counter(self._generation_key(user_id))

    async def get(
        self,
        user_id: str,
        generation: int,
        fields: dict[str, Any],
    ) -> SearchResponse | None:
        """
        Get a cached search response.

        Returns:
            SearchResponse if found in cache, None on cache miss or undecodable entry.
        """
        if not self.enabled:
            return None
        key = self.build_key(user_id, generation, fields)
        data = await self._redis.get(key)
        if not data:
            logger.debug("search_cache_miss", extra={"user_id": user_id})
            return None
        try:
            response = SearchResponse.model_validate_json(data)
        except ValidationError:
            logger.warning("search_cache_corrupt_entry", extra={"user_id": user_id, "key": key})
            return None
        logger.debug("search_cache_hit", extra={"user_id": user_id})
        return response

    async def set(
        self,
        user_id: str,
        generation: int,
        fields: dict[str, Any],
        response: SearchResponse,
    ) -> None:
        """Cache a search response. Empty results use the shorter TTL."""
        if not self.enabled:
            return
        ttl = self._ttl if response.bookmarks else self._empty_ttl
        await self._redis.setex(
            self.build_key(user_id, generation, fields),
            ttl,
            response.model_dump_json(by_alias=True),
        )
        logger.debug("search_cache_set", extra={"user_id": user_id, "ttl": ttl})

    async def invalidate_user(self, user_id: str) -> None:
        """
        Invalidate every cached search of an owner.

        Should be called after any committed change that can affect the owner's
        results: bookmark created, updated, deleted, tags changed, status changed.
        """
        if not self._redis.is_connected:
            return
        generation = await self._redis.incr_with_expiry(
            self._generation_key(user_id), self.GENERATION_TTL,
        )
        logger.info(
            "search_cache_invalidate",
            extra={"user_id": user_id, "generation": generation},
        )

    async def on_bookmark_created(self, user_id: str) -> None:
        """A new bookmark can match any search of the owner."""
        await self.invalidate_user(user_id)

    async def on_bookmark_updated(self, user_id: str) -> None:
        """Title, summary, URL or flags changed."""
        await self.invalidate_user(user_id)

    async def on_bookmark_deleted(self, user_id: str) -> None:
        await self.invalidate_user(user_id)

    async def on_bookmark_tags_updated(self, user_id: str) -> None:
        await self.invalidate_user(user_id)

    async def on_bookmark_status_changed(self, user_id: str) -> None:
        """Status decides READY eligibility in every strategy."""
        await self.invalidate_user(user_id)


# Global search cache instance (set during app startup)
_search_cache: SearchCache | None = None


def get_search_cache() -> SearchCache | None:
    """Get the global search cache instance."""
    return _search_cache


def set_search_cache(cache: SearchCache | None) -> None:
    """Set the global search cache instance."""
    global _search_cache  # noqa: PLW0603
    _search_cache = cache
