"""Pydantic schemas for bookmark mutation endpoints."""
from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, HttpUrl, field_validator, model_validator
from pydantic.alias_generators import to_camel

from models.bookmark import EMBEDDING_DIMENSIONS, BookmarkStatus, BookmarkType

MAX_TAG_LENGTH = 100


def validate_embedding(embedding: list[float] | None) -> list[float] | None:
    """Check that an embedding matches the stored vector size."""
    if embedding is not None and len(embedding) != EMBEDDING_DIMENSIONS:
        raise ValueError(
            f"summaryEmbedding must have {EMBEDDING_DIMENSIONS} dimensions "
            f"(got {len(embedding)}).",
        )
    return embedding


def validate_and_normalize_tags(tags: list[str]) -> list[str]:
    """
    Trim tags, drop blanks and duplicates, keep first-seen order.

    Case is preserved: tag search matches names exactly, so "Python" and "python" are
    different tags.
    """
    normalized: list[str] = []
    for tag in tags:
        name = tag.strip()
        if not name:
            continue
        if len(name) > MAX_TAG_LENGTH:
            raise ValueError(f"Tag exceeds maximum length of {MAX_TAG_LENGTH} characters.")
        if name not in normalized:
            normalized.append(name)
    return normalized


class BookmarkCreate(BaseModel):
    """
    Schema for creating a new bookmark.

    Fields that ingestion normally fills in (summary, embedding, type, status) can be
    supplied directly.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    url: HttpUrl
    title: str | None = Field(default=None, max_length=500)
    summary: str | None = None
    summary_embedding: list[float] | None = None
    type: BookmarkType | None = None
    status: BookmarkStatus = BookmarkStatus.PENDING
    preview: str | None = None
    og_image_url: str | None = None
    og_description: str | None = None
    favicon_url: str | None = None
    starred: bool = False
    read: bool = False
    tags: list[str] = []

    @field_validator("tags", mode="before")
    @classmethod
    def normalize_tags(cls, v: list[str] | None) -> list[str]:
        """Normalize and validate tags."""
        if v is None:
            return []
        return validate_and_normalize_tags(v)

    @field_validator("summary_embedding")
    @classmethod
    def check_embedding(cls, v: list[float] | None) -> list[float] | None:
        """Reject embeddings of the wrong size."""
        return validate_embedding(v)


class BookmarkUpdate(BaseModel):
    """Schema for updating an existing bookmark. Only fields that are set are applied."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    title: str | None = Field(default=None, max_length=500)
    summary: str | None = None
    summary_embedding: list[float] | None = None
    type: BookmarkType | None = None
    status: BookmarkStatus | None = None
    starred: bool | None = None
    read: bool | None = None
    tags: list[str] | None = None

    @field_validator("tags", mode="before")
    @classmethod
    def normalize_tags(cls, v: list[str] | None) -> list[str] | None:
        """Normalize and validate tags if provided."""
        if v is None:
            return None
        return validate_and_normalize_tags(v)

    @field_validator("summary_embedding")
    @classmethod
    def check_embedding(cls, v: list[float] | None) -> list[float] | None:
        """Reject embeddings of the wrong size."""
        return validate_embedding(v)


class BookmarkResponse(BaseModel):
    """
    Schema for bookmark responses from mutation endpoints.

    Note: Uses model_validator to extract tag names from the tag_objects
    relationship when eagerly loaded.
    """

    model_config = ConfigDict(
        from_attributes=True, alias_generator=to_camel, populate_by_name=True,
    )

    id: UUID
    url: str
    title: str | None
    summary: str | None
    type: BookmarkType | None
    status: BookmarkStatus
    starred: bool
    read: bool
    tags: list[str]
    created_at: datetime
    updated_at: datetime

    @model_validator(mode="before")
    @classmethod
    def extract_tag_names(cls, data: Any) -> Any:
        """
        Extract tag names from tag_objects relationship.

        Only accesses tag_objects if it's already loaded (not lazy) to avoid
        triggering database queries outside async context.
        """
        if hasattr(data, "__dict__"):
            data_dict = {}
            for key in [
                "id", "url", "title", "summary", "type", "status",
                "starred", "read", "created_at", "updated_at",
            ]:
                if hasattr(data, key):
                    data_dict[key] = getattr(data, key)

            # SQLAlchemy sets __dict__ entry when relationship is loaded
            if "tag_objects" in data.__dict__ and data.__dict__["tag_objects"] is not None:
                data_dict["tags"] = sorted(tag.name for tag in data.__dict__["tag_objects"])
            else:
                data_dict["tags"] = []

            return data_dict
        return data


class BookmarkOpenResponse(BaseModel):
    """Schema for a recorded engagement event."""

    model_config = ConfigDict(
        from_attributes=True, alias_generator=to_camel, populate_by_name=True,
    )

    id: UUID
    bookmark_id: UUID
    created_at: datetime
