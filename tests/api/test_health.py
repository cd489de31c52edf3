"""Tests for the health endpoint."""
from httpx import AsyncClient

from core.redis import RedisClient, set_redis_client


async def test__health__redis_disabled(client: AsyncClient) -> None:
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "database": "healthy", "redis": "disabled"}


async def test__health__redis_connected(client: AsyncClient, redis_client: RedisClient) -> None:
    set_redis_client(redis_client)
    try:
        response = await client.get("/health")
    finally:
        set_redis_client(None)

    assert response.json()["redis"] == "healthy"
    assert response.json()["status"] == "healthy"
