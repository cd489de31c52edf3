"""
Service layer for bookmark mutations.

These operations stand in for the bookmark management subsystem that owns writes.
They only flush; the caller commits and then invalidates the owner's search cache,
so a search can never cache a result that the uncommitted write would change.
"""
import logging
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from models.bookmark import Bookmark
from models.bookmark_open import BookmarkOpen
from models.tag import Tag
from schemas.bookmark import BookmarkCreate, BookmarkUpdate
from services.exceptions import BookmarkNotFoundError

logger = logging.getLogger(__name__)


async def get_or_create_tags(
    db: AsyncSession,
    user_id: str,
    tag_names: list[str],
) -> list[Tag]:
    """
    Get existing tags or create new ones.

    Args:
        db: Database session.
        user_id: Owner of the tags.
        tag_names: Normalized tag names (exact, case preserved).

    Returns:
        List of Tag objects in the order of tag_names.
    """
    if not tag_names:
        return []

    result = await db.execute(
        select(Tag).where(Tag.user_id == user_id, Tag.name.in_(tag_names)),
    )
    existing_tags = {tag.name: tag for tag in result.scalars()}

    tags = []
    for name in tag_names:
        if name in existing_tags:
            tags.append(existing_tags[name])
        else:
            new_tag = Tag(user_id=user_id, name=name)
            db.add(new_tag)
            existing_tags[name] = new_tag
            tags.append(new_tag)
    return tags


async def get_bookmark(
    db: AsyncSession,
    user_id: str,
    bookmark_id: UUID,
) -> Bookmark:
    """
    Get a bookmark by ID with its tags loaded, scoped to the owner.

    Raises:
        BookmarkNotFoundError: If the bookmark does not exist or belongs to another user.
    """
    result = await db.execute(
        select(Bookmark)
        .options(selectinload(Bookmark.tag_objects))
        .where(Bookmark.id == bookmark_id, Bookmark.user_id == user_id),
    )
    bookmark = result.scalar_one_or_none()
    if bookmark is None:
        raise BookmarkNotFoundError(bookmark_id)
    return bookmark


async def create_bookmark(
    db: AsyncSession,
    user_id: str,
    data: BookmarkCreate,
) -> Bookmark:
    """
    Create a new bookmark for a user.

    Note: Does not commit. Caller handles commit, then cache invalidation.
    """
    tag_objects = await get_or_create_tags(db, user_id, data.tags)
    bookmark = Bookmark(
        user_id=user_id,
        url=str(data.url),
        title=data.title,
        summary=data.summary,
        summary_embedding=data.summary_embedding,
        type=data.type,
        status=data.status,
        preview=data.preview,
        og_image_url=data.og_image_url,
        og_description=data.og_description,
        favicon_url=data.favicon_url,
        starred=data.starred,
        read=data.read,
        tag_objects=tag_objects,
    )
    db.add(bookmark)
    await db.flush()
    logger.info(
        "bookmark_created",
        extra={"user_id": user_id, "bookmark_id": str(bookmark.id), "status": bookmark.status},
    )
    return bookmark


async def update_bookmark(
    db: AsyncSession,
    user_id: str,
    bookmark_id: UUID,
    data: BookmarkUpdate,
) -> Bookmark:
    """
    Update a bookmark. Only fields set on `data` are applied.

    Raises:
        BookmarkNotFoundError: If the bookmark does not exist or belongs to another user.

    Note: Does not commit. Caller handles commit, then cache invalidation.
    """
    bookmark = await get_bookmark(db, user_id, bookmark_id)

    update_data = data.model_dump(exclude_unset=True)
    new_tags = update_data.pop("tags", None)
    for field, value in update_data.items():
        setattr(bookmark, field, value)
    if new_tags is not None:
        bookmark.tag_objects = await get_or_create_tags(db, user_id, new_tags)

    await db.flush()
    return bookmark


async def delete_bookmark(
    db: AsyncSession,
    user_id: str,
    bookmark_id: UUID,
) -> None:
    """
    Permanently delete a bookmark and its engagement events.

    Raises:
        BookmarkNotFoundError: If the bookmark does not exist or belongs to another user.

    Note: Does not commit. Caller handles commit, then cache invalidation.
    """
    bookmark = await get_bookmark(db, user_id, bookmark_id)
    await db.execute(delete(BookmarkOpen).where(BookmarkOpen.bookmark_id == bookmark.id))
    await db.delete(bookmark)
    await db.flush()


async def record_open(
    db: AsyncSession,
    user_id: str,
    bookmark_id: UUID,
) -> BookmarkOpen:
    """
    Append an engagement event for a bookmark.

    Opens only affect the engagement boost, so callers do not invalidate the search
    cache for them; cached pages pick up new counts when they expire.

    Raises:
        BookmarkNotFoundError: If the bookmark does not exist or belongs to another user.
    """
    result = await db.execute(
        select(Bookmark.id).where(Bookmark.id == bookmark_id, Bookmark.user_id == user_id),
    )
    if result.scalar_one_or_none() is None:
        raise BookmarkNotFoundError(bookmark_id)

    event = BookmarkOpen(user_id=user_id, bookmark_id=bookmark_id)
    db.add(event)
    await db.flush()
    return event
