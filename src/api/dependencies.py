"""FastAPI dependencies for injection."""
from fastapi import Header, HTTPException

from core.config import get_settings
from core.search_cache import get_search_cache
from db.session import get_async_session, get_session_factory
from services.embedding_service import get_embedding_provider
from services.search_service import SearchService

MAX_USER_ID_LENGTH = 255


async def get_current_user_id(
    x_user_id: str | None = Header(default=None, alias="X-User-Id"),
) -> str:
    """
    Resolve the owner of the request.

    Authentication happens upstream; the auth layer forwards the authenticated owner's
    opaque id in the X-User-Id header.
    """
    user_id = (x_user_id or "").strip()
    if not user_id or len(user_id) > MAX_USER_ID_LENGTH:
        raise HTTPException(status_code=401, detail="Missing or invalid X-User-Id header")
    return user_id


def get_search_service() -> SearchService:
    """Build the search facade from the globals set up at application startup."""
    return SearchService(
        session_factory=get_session_factory(),
        settings=get_settings(),
        cache=get_search_cache(),
        embedding_provider=get_embedding_provider(),
    )


__all__ = [
    "get_async_session",
    "get_current_user_id",
    "get_search_service",
    "get_settings",
]
