"""Engagement log: one row per time a user opened a bookmark."""
from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import DateTime, ForeignKey, Index, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from models.base import Base, UUIDv7Mixin, utc_now

if TYPE_CHECKING:
    from models.bookmark import Bookmark


class BookmarkOpen(Base, UUIDv7Mixin):
    """Append-only engagement event. Search only reads counts per bookmark."""

    __tablename__ = "bookmark_opens"
    __table_args__ = (
        Index("ix_bookmark_opens_user_id_bookmark_id", "user_id", "bookmark_id"),
    )

    user_id: Mapped[str] = mapped_column(String(255), nullable=False)
    bookmark_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("bookmarks.id", ondelete="CASCADE"),
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        server_default=func.now(),
        nullable=False,
    )

    bookmark: Mapped["Bookmark"] = relationship(back_populates="opens")
