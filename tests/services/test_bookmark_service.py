"""Tests for the bookmark mutation service."""
import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from uuid6 import uuid7

from models.bookmark import BookmarkStatus
from models.bookmark_open import BookmarkOpen
from models.tag import Tag
from schemas.bookmark import BookmarkCreate, BookmarkUpdate
from services import bookmark_service
from services.exceptions import BookmarkNotFoundError
from tests.conftest import CreateBookmark


async def test__create_bookmark__creates_tags_case_preserved(db_session: AsyncSession) -> None:
    bookmark = await bookmark_service.create_bookmark(
        db_session,
        "user-1",
        BookmarkCreate(url="https://example.com", tags=["Python", " python ", "Python"]),
    )
    await db_session.commit()

    assert sorted(t.name for t in bookmark.tag_objects) == ["Python", "python"]
    assert bookmark.status == BookmarkStatus.PENDING
    result = await db_session.execute(select(func.count(Tag.id)))
    assert result.scalar() == 2


async def test__create_bookmark__reuses_existing_tags(
    db_session: AsyncSession, create_bookmark: CreateBookmark,
) -> None:
    await create_bookmark(tags=["web"])

    await bookmark_service.create_bookmark(
        db_session, "user-1", BookmarkCreate(url="https://example.com", tags=["web"]),
    )
    await db_session.commit()

    result = await db_session.execute(select(func.count(Tag.id)).where(Tag.user_id == "user-1"))
    assert result.scalar() == 1


async def test__update_bookmark__applies_only_set_fields(
    db_session: AsyncSession, create_bookmark: CreateBookmark,
) -> None:
    created = await create_bookmark(title="Old", summary="Keep me", tags=["a"])

    updated = await bookmark_service.update_bookmark(
        db_session, "user-1", created.id, BookmarkUpdate(title="New", tags=["b", "c"]),
    )

    assert updated.title == "New"
    assert updated.summary == "Keep me"
    assert sorted(t.name for t in updated.tag_objects) == ["b", "c"]


async def test__update_bookmark__other_owner_not_found(
    db_session: AsyncSession, create_bookmark: CreateBookmark,
) -> None:
    created = await create_bookmark(user_id="user-2")

    with pytest.raises(BookmarkNotFoundError):
        await bookmark_service.update_bookmark(
            db_session, "user-1", created.id, BookmarkUpdate(title="x"),
        )


async def test__delete_bookmark__removes_engagement_events(
    db_session: AsyncSession, create_bookmark: CreateBookmark,
) -> None:
    created = await create_bookmark(opens=2, tags=["a"])

    await bookmark_service.delete_bookmark(db_session, "user-1", created.id)
    await db_session.commit()

    opens = await db_session.execute(select(func.count(BookmarkOpen.id)))
    assert opens.scalar() == 0
    with pytest.raises(BookmarkNotFoundError):
        await bookmark_service.get_bookmark(db_session, "user-1", created.id)


async def test__delete_bookmark__missing(db_session: AsyncSession) -> None:
    with pytest.raises(BookmarkNotFoundError):
        await bookmark_service.delete_bookmark(db_session, "user-1", uuid7())


async def test__record_open__appends_event(
    db_session: AsyncSession, create_bookmark: CreateBookmark,
) -> None:
    created = await create_bookmark()

    await bookmark_service.record_open(db_session, "user-1", created.id)
    await bookmark_service.record_open(db_session, "user-1", created.id)
    await db_session.commit()

    result = await db_session.execute(
        select(func.count(BookmarkOpen.id)).where(BookmarkOpen.bookmark_id == created.id),
    )
    assert result.scalar() == 2


async def test__record_open__other_owner_not_found(
    db_session: AsyncSession, create_bookmark: CreateBookmark,
) -> None:
    created = await create_bookmark(user_id="user-2")

    with pytest.raises(BookmarkNotFoundError):
        await bookmark_service.record_open(db_session, "user-1", created.id)
