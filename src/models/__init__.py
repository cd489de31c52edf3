"""SQLAlchemy models."""
from models.base import Base, TimestampMixin, UUIDv7Mixin
from models.tag import Tag, TagType, bookmark_tags  # Must be before bookmark due to import
from models.bookmark import Bookmark, BookmarkStatus, BookmarkType
from models.bookmark_open import BookmarkOpen

__all__ = [
    "Base",
    "Bookmark",
    "BookmarkOpen",
    "BookmarkStatus",
    "BookmarkType",
    "Tag",
    "TagType",
    "TimestampMixin",
    "UUIDv7Mixin",
    "bookmark_tags",
]
