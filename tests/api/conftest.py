"""Fixtures for API tests."""
from collections.abc import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.config import Settings
from core.search_cache import SearchCache, set_search_cache

USER_HEADERS = {"X-User-Id": "user-1"}


@pytest.fixture
async def client(
    session_factory: async_sessionmaker,
    settings: Settings,
    search_cache: SearchCache,
) -> AsyncGenerator[AsyncClient]:
    """Create a test client bound to the test database and in-memory cache."""
    from api.dependencies import get_async_session, get_search_service
    from api.main import app
    from services.search_service import SearchService

    async def override_get_async_session() -> AsyncGenerator[AsyncSession]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    def override_get_search_service() -> SearchService:
        return SearchService(session_factory, settings, cache=search_cache)

    app.dependency_overrides[get_async_session] = override_get_async_session
    app.dependency_overrides[get_search_service] = override_get_search_service
    set_search_cache(search_cache)

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        headers=USER_HEADERS,
    ) as test_client:
        yield test_client

    set_search_cache(None)
    app.dependency_overrides.clear()
