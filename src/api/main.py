"""FastAPI application entry point."""
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.routers import bookmarks, health, search
from core.config import get_settings
from core.embedding_cache import EmbeddingCache
from core.redis import RedisClient, set_redis_client
from core.search_cache import SearchCache, set_search_cache
from services.embedding_service import build_embedding_provider, set_embedding_provider


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None]:
    """Manage application lifespan - startup and shutdown."""
    app_settings = get_settings()

    # Startup: Connect to Redis
    redis_client = RedisClient(
        url=app_settings.redis_url,
        enabled=app_settings.redis_enabled,
        pool_size=app_settings.redis_pool_size,
    )
    await redis_client.connect()
    set_redis_client(redis_client)

    # Startup: Initialize search result cache
    search_cache = SearchCache(
        redis_client,
        ttl_seconds=app_settings.search_cache_ttl_seconds,
        empty_ttl_seconds=app_settings.search_cache_empty_ttl_seconds,
        enabled=app_settings.search_cache_enabled,
    )
    set_search_cache(search_cache)

    # Startup: Initialize query embedding provider (None disables vector search)
    set_embedding_provider(
        build_embedding_provider(app_settings, EmbeddingCache(redis_client)),
    )

    yield

    # Shutdown: Clean up caches and Redis
    set_embedding_provider(None)
    set_search_cache(None)
    await redis_client.close()
    set_redis_client(None)


app_settings = get_settings()

app = FastAPI(
    title="Bookmark Search API",
    description="Search and ranking for a personal bookmark manager.",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=app_settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
# Search first so /bookmarks/search is never captured by /bookmarks/{bookmark_id}
app.include_router(search.router)
app.include_router(bookmarks.router)
