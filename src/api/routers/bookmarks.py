"""
Bookmark mutation endpoints.

Every mutation that can change search results commits first and then invalidates the
owner's search cache. Recording an open does not invalidate.
"""
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_async_session, get_current_user_id
from core.search_cache import get_search_cache
from schemas.bookmark import (
    BookmarkCreate,
    BookmarkOpenResponse,
    BookmarkResponse,
    BookmarkUpdate,
)
from services import bookmark_service
from services.exceptions import BookmarkNotFoundError

router = APIRouter(prefix="/bookmarks", tags=["bookmarks"])


@router.post("/", response_model=BookmarkResponse, status_code=201)
async def create_bookmark(
    data: BookmarkCreate,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_async_session),
) -> BookmarkResponse:
    """Create a new bookmark."""
    bookmark = await bookmark_service.create_bookmark(db, user_id, data)
    response = BookmarkResponse.model_validate(bookmark)
    await db.commit()

    cache = get_search_cache()
    if cache:
        await cache.on_bookmark_created(user_id)
    return response


@router.patch("/{bookmark_id}", response_model=BookmarkResponse)
async def update_bookmark(
    bookmark_id: UUID,
    data: BookmarkUpdate,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_async_session),
) -> BookmarkResponse:
    """Update a bookmark's metadata, flags, status or tags."""
    try:
        bookmark = await bookmark_service.update_bookmark(db, user_id, bookmark_id, data)
    except BookmarkNotFoundError:
        raise HTTPException(status_code=404, detail="Bookmark not found")
    response = BookmarkResponse.model_validate(bookmark)
    await db.commit()

    cache = get_search_cache()
    if cache:
        if "status" in data.model_fields_set:
            await cache.on_bookmark_status_changed(user_id)
        elif "tags" in data.model_fields_set:
            await cache.on_bookmark_tags_updated(user_id)
        else:
            await cache.on_bookmark_updated(user_id)
    return response


@router.delete("/{bookmark_id}", status_code=204)
async def delete_bookmark(
    bookmark_id: UUID,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_async_session),
) -> None:
    """Permanently delete a bookmark."""
    try:
        await bookmark_service.delete_bookmark(db, user_id, bookmark_id)
    except BookmarkNotFoundError:
        raise HTTPException(status_code=404, detail="Bookmark not found")
    await db.commit()

    cache = get_search_cache()
    if cache:
        await cache.on_bookmark_deleted(user_id)


@router.post("/{bookmark_id}/open", response_model=BookmarkOpenResponse, status_code=201)
async def record_bookmark_open(
    bookmark_id: UUID,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_async_session),
) -> BookmarkOpenResponse:
    """Record that the user opened a bookmark (feeds the engagement boost)."""
    try:
        event = await bookmark_service.record_open(db, user_id, bookmark_id)
    except BookmarkNotFoundError:
        raise HTTPException(status_code=404, detail="Bookmark not found")
    response = BookmarkOpenResponse.model_validate(event)
    await db.commit()
    return response
