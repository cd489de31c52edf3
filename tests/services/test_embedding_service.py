"""Tests for the query embedding provider and its cache."""
import json
from collections.abc import Generator

import httpx
import pytest
import respx
from httpx import Response
from redis.asyncio import Redis

from core.config import Settings
from core.embedding_cache import EmbeddingCache
from core.redis import RedisClient
from services.embedding_service import (
    CachedEmbeddingProvider,
    HttpEmbeddingProvider,
    build_embedding_provider,
)
from services.exceptions import EmbeddingError

API_URL = "http://embeddings.test/v1/embeddings"


@pytest.fixture
def mock_api() -> Generator[respx.MockRouter]:
    """Context manager for mocking embedding API responses."""
    with respx.mock(assert_all_called=False) as respx_mock:
        yield respx_mock


@pytest.fixture
def provider() -> HttpEmbeddingProvider:
    return HttpEmbeddingProvider(API_URL, "sk-test", "text-embedding-3-small", timeout=1.0)


# =============================================================================
# HttpEmbeddingProvider
# =============================================================================


async def test__embed__posts_model_and_input(
    mock_api: respx.MockRouter, provider: HttpEmbeddingProvider,
) -> None:
    route = mock_api.post(API_URL).mock(
        return_value=Response(200, json={"data": [{"embedding": [0.1, 0.2, 0.3]}]}),
    )

    embedding = await provider.embed("machine learning")

    assert embedding == [0.1, 0.2, 0.3]
    request = route.calls[0].request
    assert json.loads(request.content) == {
        "model": "text-embedding-3-small",
        "input": "machine learning",
    }
    assert request.headers["authorization"] == "Bearer sk-test"


async def test__embed__no_api_key_no_authorization_header(mock_api: respx.MockRouter) -> None:
    route = mock_api.post(API_URL).mock(
        return_value=Response(200, json={"data": [{"embedding": [1.0]}]}),
    )
    provider = HttpEmbeddingProvider(API_URL, None, "local-model")

    await provider.embed("q")

    assert "authorization" not in route.calls[0].request.headers


async def test__embed__http_error_status(
    mock_api: respx.MockRouter, provider: HttpEmbeddingProvider,
) -> None:
    mock_api.post(API_URL).mock(return_value=Response(500, json={"error": "boom"}))

    with pytest.raises(EmbeddingError, match="HTTP 500"):
        await provider.embed("q")


@pytest.mark.parametrize(
    "payload",
    [{}, {"data": []}, {"data": [{"embedding": []}]}, {"data": [{"vector": [1.0]}]}],
)
async def test__embed__unexpected_payload(
    mock_api: respx.MockRouter, provider: HttpEmbeddingProvider, payload: dict,
) -> None:
    mock_api.post(API_URL).mock(return_value=Response(200, json=payload))

    with pytest.raises(EmbeddingError):
        await provider.embed("q")


async def test__embed__timeout(
    mock_api: respx.MockRouter, provider: HttpEmbeddingProvider,
) -> None:
    mock_api.post(API_URL).mock(side_effect=httpx.ReadTimeout("slow"))

    with pytest.raises(EmbeddingError, match="timed out"):
        await provider.embed("q")


async def test__embed__connection_error(
    mock_api: respx.MockRouter, provider: HttpEmbeddingProvider,
) -> None:
    mock_api.post(API_URL).mock(side_effect=httpx.ConnectError("refused"))

    with pytest.raises(EmbeddingError, match="failed"):
        await provider.embed("q")


# =============================================================================
# EmbeddingCache / CachedEmbeddingProvider
# =============================================================================


async def test__embedding_cache__key_normalizes_text_and_includes_model(
    redis_client: RedisClient,
) -> None:
    cache = EmbeddingCache(redis_client)

    assert cache.build_key("  Python ", "m1") == cache.build_key("python", "m1")
    assert cache.build_key("python", "m1") != cache.build_key("python", "m2")


async def test__cached_provider__second_call_served_from_cache(
    mock_api: respx.MockRouter,
    provider: HttpEmbeddingProvider,
    redis_client: RedisClient,
    redis_backend: Redis,
) -> None:
    route = mock_api.post(API_URL).mock(
        return_value=Response(200, json={"data": [{"embedding": [0.5, 0.5]}]}),
    )
    cached = CachedEmbeddingProvider(provider, EmbeddingCache(redis_client))

    first = await cached.embed("Vector Search")
    second = await cached.embed("vector search ")

    assert first == second == [0.5, 0.5]
    assert route.call_count == 1
    key = EmbeddingCache(redis_client).build_key("vector search", provider.model)
    assert 0 < await redis_backend.ttl(key) <= EmbeddingCache.CACHE_TTL


async def test__cached_provider__provider_errors_are_not_cached(
    mock_api: respx.MockRouter,
    provider: HttpEmbeddingProvider,
    redis_client: RedisClient,
    redis_backend: Redis,
) -> None:
    mock_api.post(API_URL).mock(return_value=Response(503))
    cached = CachedEmbeddingProvider(provider, EmbeddingCache(redis_client))

    with pytest.raises(EmbeddingError):
        await cached.embed("q")
    assert await redis_backend.dbsize() == 0


async def test__cached_provider__works_without_redis(
    mock_api: respx.MockRouter, provider: HttpEmbeddingProvider,
) -> None:
    mock_api.post(API_URL).mock(
        return_value=Response(200, json={"data": [{"embedding": [1.0, 0.0]}]}),
    )
    client = RedisClient("redis://localhost:6379", enabled=False)
    cached = CachedEmbeddingProvider(provider, EmbeddingCache(client))

    assert await cached.embed("q") == [1.0, 0.0]


# =============================================================================
# build_embedding_provider
# =============================================================================


def test__build_embedding_provider__none_without_url(settings: Settings) -> None:
    assert build_embedding_provider(settings) is None


async def test__build_embedding_provider__wraps_with_cache(
    settings: Settings, redis_client: RedisClient,
) -> None:
    configured = settings.model_copy(update={"embedding_api_url": API_URL})

    provider = build_embedding_provider(configured, EmbeddingCache(redis_client))

    assert isinstance(provider, CachedEmbeddingProvider)
    assert provider.model == "text-embedding-3-small"
