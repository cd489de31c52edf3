"""
Retrieval strategies for bookmark search.

Each strategy is an independent read-only query that turns SearchCriteria into a list
of Candidates. Strategies never see each other's results; merging, the engagement
boost and ordering happen in services.search_ranking. Every strategy applies the same
eligibility rules: owned by the requesting user, status READY, and the optional
type and special filters.
"""
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from uuid import UUID

from sqlalchemy import ColumnElement, and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from models.bookmark import EMBEDDING_DIMENSIONS, READABLE_TYPES, Bookmark, BookmarkStatus
from models.tag import Tag, bookmark_tags
from schemas.search import MatchType, SpecialFilter
from services.search_helpers import SearchCriteria
from services.utils import LIKE_ESCAPE_CHAR, escape_ilike

logger = logging.getLogger(__name__)

TAG_WEIGHT = 150.0
DOMAIN_WEIGHT = 120.0
LEXICAL_WEIGHT = 80.0
VECTOR_WEIGHT = 100.0


@dataclass(frozen=True)
class Candidate:
    """One strategy's claim that a bookmark matches, before merging."""

    bookmark_id: UUID
    strategy: MatchType
    base_score: float
    matched_tags: tuple[str, ...] = field(default_factory=tuple)


def eligibility_filters(criteria: SearchCriteria) -> list[ColumnElement[bool]]:
    """
    Build the WHERE clauses shared by every strategy.

    Type filters restrict to the given types. Special filters are OR'ed together.
    READ and UNREAD only match readable types (articles and YouTube videos), so
    READ + UNREAD matches every readable bookmark and STAR + UNREAD matches starred
    bookmarks of any type plus unread readable ones.
    """
    clauses: list[ColumnElement[bool]] = [
        Bookmark.user_id == criteria.user_id,
        Bookmark.status == BookmarkStatus.READY,
    ]
    if criteria.types:
        clauses.append(Bookmark.type.in_(criteria.types))
    if criteria.special_filters:
        special_clauses = []
        for special in criteria.special_filters:
            if special == SpecialFilter.READ:
                special_clauses.append(and_(
                    Bookmark.read.is_(True), Bookmark.type.in_(READABLE_TYPES),
                ))
            elif special == SpecialFilter.UNREAD:
                special_clauses.append(and_(
                    Bookmark.read.is_(False), Bookmark.type.in_(READABLE_TYPES),
                ))
            elif special == SpecialFilter.STAR:
                special_clauses.append(Bookmark.starred.is_(True))
        clauses.append(or_(*special_clauses))
    return clauses


# =============================================================================
# Tag-Match
# =============================================================================


async def search_by_tags(db: AsyncSession, criteria: SearchCriteria) -> list[Candidate]:
    """
    Match bookmarks carrying any of the requested tags.

    Tag names compare exactly (case-sensitive) against the owner's tags. The score is
    the fraction of requested tags present, scaled by TAG_WEIGHT.
    """
    if not criteria.tags:
        return []

    query = (
        select(bookmark_tags.c.bookmark_id, Tag.name)
        .join(Tag, bookmark_tags.c.tag_id == Tag.id)
        .join(Bookmark, bookmark_tags.c.bookmark_id == Bookmark.id)
        .where(
            Tag.user_id == criteria.user_id,
            Tag.name.in_(criteria.tags),
            *eligibility_filters(criteria),
        )
    )
    result = await db.execute(query)

    matches: dict[UUID, set[str]] = {}
    for bookmark_id, tag_name in result.all():
        matches.setdefault(bookmark_id, set()).add(tag_name)

    requested = len(criteria.tags)
    return [
        Candidate(
            bookmark_id=bookmark_id,
            strategy=MatchType.TAG,
            base_score=len(names) / requested * TAG_WEIGHT,
            matched_tags=tuple(sorted(names)),
        )
        for bookmark_id, names in matches.items()
    ]


# =============================================================================
# Domain-Match
# =============================================================================


async def search_by_domain(db: AsyncSession, criteria: SearchCriteria) -> list[Candidate]:
    """Match bookmarks whose URL contains the domain found in the query."""
    if not criteria.domain:
        return []

    pattern = f"%{escape_ilike(criteria.domain)}%"
    query = select(Bookmark.id).where(
        *eligibility_filters(criteria),
        Bookmark.url.ilike(pattern, escape=LIKE_ESCAPE_CHAR),
    )
    result = await db.execute(query)
    return [
        Candidate(bookmark_id=bookmark_id, strategy=MatchType.DOMAIN, base_score=DOMAIN_WEIGHT)
        for bookmark_id in result.scalars().all()
    ]


# =============================================================================
# Lexical-Match
# =============================================================================


async def search_by_text(db: AsyncSession, criteria: SearchCriteria) -> list[Candidate]:
    """Match bookmarks whose title or summary contains the query, case-insensitively."""
    if not criteria.query:
        return []

    pattern = f"%{escape_ilike(criteria.query)}%"
    query = select(Bookmark.id).where(
        *eligibility_filters(criteria),
        or_(
            Bookmark.title.ilike(pattern, escape=LIKE_ESCAPE_CHAR),
            Bookmark.summary.ilike(pattern, escape=LIKE_ESCAPE_CHAR),
        ),
    )
    result = await db.execute(query)
    return [
        Candidate(bookmark_id=bookmark_id, strategy=MatchType.LEXICAL, base_score=LEXICAL_WEIGHT)
        for bookmark_id in result.scalars().all()
    ]


# =============================================================================
# Vector-Similarity
# =============================================================================


def vector_score(distance: float) -> float:
    """Convert a cosine distance to a base score."""
    return max(0.0, (1.0 - distance) * VECTOR_WEIGHT)


async def search_by_vector(
    db: AsyncSession,
    criteria: SearchCriteria,
    query_embedding: Sequence[float],
) -> list[Candidate]:
    """
    Match bookmarks whose summary embedding is within matching_distance of the query.

    Distance is pgvector cosine distance (0 to 2), computed and filtered in SQL. The
    threshold is absolute: a bookmark farther than matching_distance is never returned,
    even when nothing else qualifies.

    Raises:
        ValueError: If the query embedding has the wrong number of dimensions.
    """
    if len(query_embedding) != EMBEDDING_DIMENSIONS:
        raise ValueError(
            f"Query embedding has {len(query_embedding)} dimensions, "
            f"expected {EMBEDDING_DIMENSIONS}",
        )

    distance = Bookmark.summary_embedding.cosine_distance(query_embedding)
    query = (
        select(Bookmark.id, distance.label("distance"))
        .where(
            *eligibility_filters(criteria),
            Bookmark.summary_embedding.is_not(None),
            distance <= criteria.matching_distance,
        )
        .order_by(distance.asc())
    )
    result = await db.execute(query)
    candidates = [
        Candidate(
            bookmark_id=row.id,
            strategy=MatchType.VECTOR,
            base_score=vector_score(float(row.distance)),
        )
        for row in result.all()
    ]
    logger.debug(
        "vector_search_matches",
        extra={"user_id": criteria.user_id, "matches": len(candidates)},
    )
    return candidates


# =============================================================================
# Recent-Listing
# =============================================================================


async def list_recent(
    db: AsyncSession,
    criteria: SearchCriteria,
    after_id: UUID | None = None,
) -> list[Candidate]:
    """
    List the owner's READY bookmarks, newest first.

    Used when no other strategy is active. Keyset-paginated on id (UUIDv7 ids are
    time-ordered) and fetches one extra row so the caller can detect another page.
    """
    query = select(Bookmark.id).where(*eligibility_filters(criteria))
    if after_id is not None:
        query = query.where(Bookmark.id < after_id)
    query = query.order_by(Bookmark.id.desc()).limit(criteria.limit + 1)

    result = await db.execute(query)
    return [
        Candidate(bookmark_id=bookmark_id, strategy=MatchType.RECENT, base_score=0.0)
        for bookmark_id in result.scalars().all()
    ]
