"""Bookmark model for storing user bookmarks."""
from enum import StrEnum
from typing import TYPE_CHECKING

from pgvector.sqlalchemy import Vector
from sqlalchemy import Boolean, Enum, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from models.base import Base, TimestampMixin, UUIDv7Mixin
from models.tag import bookmark_tags

if TYPE_CHECKING:
    from models.bookmark_open import BookmarkOpen
    from models.tag import Tag


class BookmarkType(StrEnum):
    """Kind of content a bookmark points at, assigned during ingestion."""

    PAGE = "PAGE"
    ARTICLE = "ARTICLE"
    VIDEO = "VIDEO"
    YOUTUBE = "YOUTUBE"
    PRODUCT = "PRODUCT"
    IMAGE = "IMAGE"
    PDF = "PDF"
    TWEET = "TWEET"


# Only these types carry a meaningful read/unread state
READABLE_TYPES = (BookmarkType.ARTICLE, BookmarkType.YOUTUBE)

# text-embedding-3-small
EMBEDDING_DIMENSIONS = 1536


class BookmarkStatus(StrEnum):
    """Ingestion processing status. Only READY bookmarks are searchable."""

    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    READY = "READY"
    ERROR = "ERROR"


class Bookmark(Base, UUIDv7Mixin, TimestampMixin):
    """
    Bookmark model - stores URLs with the metadata produced by ingestion.

    The search engine only reads these rows. The ingestion pipeline and user actions
    own every write.
    """

    __tablename__ = "bookmarks"
    __table_args__ = (
        # Search always scopes by owner and status
        Index("ix_bookmarks_user_id_status", "user_id", "status"),
    )

    # id provided by UUIDv7Mixin (time-ordered, used as the ranking tie-break)
    user_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    url: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[BookmarkType | None] = mapped_column(
        Enum(BookmarkType, name="bookmark_type"),
        nullable=True,
    )
    title: Mapped[str | None] = mapped_column(String(500), nullable=True)
    summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    summary_embedding: Mapped[list[float] | None] = mapped_column(
        Vector(EMBEDDING_DIMENSIONS), nullable=True,
    )
    preview: Mapped[str | None] = mapped_column(Text, nullable=True)
    og_image_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    og_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    favicon_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[BookmarkStatus] = mapped_column(
        Enum(BookmarkStatus, name="bookmark_status"),
        nullable=False,
        default=BookmarkStatus.PENDING,
    )
    starred: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    tag_objects: Mapped[list["Tag"]] = relationship(
        secondary=bookmark_tags,
        back_populates="bookmarks",
    )
    opens: Mapped[list["BookmarkOpen"]] = relationship(
        back_populates="bookmark",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
