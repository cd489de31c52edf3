"""Schemas for the bookmark search engine: request value object and response models."""
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from uuid import UUID

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from models.bookmark import BookmarkStatus, BookmarkType


class SpecialFilter(StrEnum):
    """Flag-based filters. Several filters are OR'ed together."""

    READ = "READ"
    UNREAD = "UNREAD"
    STAR = "STAR"


class MatchType(StrEnum):
    """Which retrieval strategy is credited for a result."""

    TAG = "tag"
    DOMAIN = "domain"
    LEXICAL = "lexical"
    VECTOR = "vector"
    RECENT = "recent"


@dataclass(frozen=True)
class SearchRequest:
    """
    A search as received from a caller, before validation and normalization.

    `types` and `special_filters` accept raw strings so the search service can apply
    its own rules (unknown types are dropped, unknown special filters are rejected).
    `limit` and `matching_distance` fall back to the configured defaults when None, and
    may arrive as raw query-string text.
    """

    user_id: str
    query: str | None = None
    tags: list[str] = field(default_factory=list)
    types: list[str] = field(default_factory=list)
    special_filters: list[str] = field(default_factory=list)
    limit: int | str | None = None
    cursor: str | None = None
    matching_distance: float | str | None = None


class SearchResultItem(BaseModel):
    """A bookmark summary annotated with its ranking data."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: UUID
    url: str
    title: str | None
    summary: str | None
    type: BookmarkType | None
    status: BookmarkStatus
    starred: bool
    read: bool
    preview: str | None
    og_image_url: str | None
    og_description: str | None
    favicon_url: str | None
    created_at: datetime
    tags: list[str]
    matched_tags: list[str]
    score: float
    match_type: MatchType
    open_count: int


class SearchResponse(BaseModel):
    """One page of search results."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    bookmarks: list[SearchResultItem]
    has_more: bool
    next_cursor: str | None = None
