"""
Ranking for bookmark search: engagement boost, merging, ordering and keyset pagination.

Everything here except get_open_counts is pure, so the final ordering depends only on
the set of candidates and never on which strategy finished first.
"""
import base64
import binascii
import math
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from pydantic import AwareDatetime, BaseModel, ValidationError
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from models.bookmark_open import BookmarkOpen
from schemas.search import MatchType
from services.exceptions import InvalidCursorError
from services.search_strategies import Candidate

ENGAGEMENT_WEIGHT = 10.0

# Lower wins when two strategies report the same base score
STRATEGY_PRECEDENCE = {
    MatchType.TAG: 0,
    MatchType.DOMAIN: 1,
    MatchType.LEXICAL: 2,
    MatchType.VECTOR: 3,
    MatchType.RECENT: 4,
}


@dataclass(frozen=True)
class RankedResult:
    """A merged, scored bookmark ready for ordering."""

    bookmark_id: UUID
    score: float
    match_type: MatchType
    matched_tags: tuple[str, ...]
    open_count: int

    @property
    def sort_key(self) -> tuple[float, int]:
        """Ordering key. Sorted descending: higher score first, then newer id."""
        return (self.score, self.bookmark_id.int)


@dataclass(frozen=True)
class CursorPosition:
    """
    The (score, id) of the last item on a page.

    `snapshot` is the time the first page was ranked. Open counts are frozen at that
    time for every later page, so scores cannot move across the cursor.
    """

    score: float
    bookmark_id: UUID
    snapshot: datetime

    @property
    def sort_key(self) -> tuple[float, int]:
        return (self.score, self.bookmark_id.int)


@dataclass(frozen=True)
class Page:
    """One page of ranked results."""

    items: list[RankedResult]
    has_more: bool
    next_cursor: str | None


class _CursorPayload(BaseModel):
    s: float
    i: str
    h: str
    t: AwareDatetime


# =============================================================================
# Engagement
# =============================================================================


def engagement_boost(open_count: int) -> float:
    """Logarithmic boost so heavily opened bookmarks rise without dominating relevance."""
    return math.log(open_count + 1) * ENGAGEMENT_WEIGHT


async def get_open_counts(
    db: AsyncSession,
    user_id: str,
    bookmark_ids: Iterable[UUID],
    as_of: datetime | None = None,
) -> dict[UUID, int]:
    """
    Count engagement events per bookmark in a single grouped query.

    With `as_of`, only events recorded at or before that time are counted.
    """
    ids = list(set(bookmark_ids))
    if not ids:
        return {}
    query = (
        select(BookmarkOpen.bookmark_id, func.count(BookmarkOpen.id))
        .where(
            BookmarkOpen.user_id == user_id,
            BookmarkOpen.bookmark_id.in_(ids),
        )
        .group_by(BookmarkOpen.bookmark_id)
    )
    if as_of is not None:
        query = query.where(BookmarkOpen.created_at <= as_of)
    result = await db.execute(query)
    return {bookmark_id: count for bookmark_id, count in result.all()}


# =============================================================================
# Merging and ordering
# =============================================================================


def merge_candidates(
    candidates: Iterable[Candidate],
    open_counts: dict[UUID, int] | None = None,
) -> list[RankedResult]:
    """
    Deduplicate candidates by bookmark id and compute final scores.

    The final score is the best base score across strategies plus the engagement
    boost. The match type comes from the strategy with the best base score, with
    ties resolved by STRATEGY_PRECEDENCE. Matched tags are unioned. The result is
    sorted by (score desc, id desc).
    """
    open_counts = open_counts or {}
    grouped: dict[UUID, list[Candidate]] = {}
    for candidate in candidates:
        grouped.setdefault(candidate.bookmark_id, []).append(candidate)

    ranked = []
    for bookmark_id, group in grouped.items():
        best = min(
            group,
            key=lambda c: (-c.base_score, STRATEGY_PRECEDENCE[c.strategy]),
        )
        matched_tags = sorted({tag for c in group for tag in c.matched_tags})
        open_count = open_counts.get(bookmark_id, 0)
        ranked.append(RankedResult(
            bookmark_id=bookmark_id,
            score=best.base_score + engagement_boost(open_count),
            match_type=best.strategy,
            matched_tags=tuple(matched_tags),
            open_count=open_count,
        ))
    return sort_results(ranked)


def sort_results(results: Iterable[RankedResult]) -> list[RankedResult]:
    """Sort by score descending, then id descending (newest first)."""
    return sorted(results, key=lambda r: r.sort_key, reverse=True)


# =============================================================================
# Cursors
# =============================================================================


def encode_cursor(score: float, bookmark_id: UUID, signature: str, snapshot: datetime) -> str:
    """Encode a keyset position bound to the signature of the search that produced it."""
    payload = _CursorPayload(s=score, i=bookmark_id.hex, h=signature, t=snapshot)
    return base64.urlsafe_b64encode(payload.model_dump_json().encode("utf-8")).decode("ascii")


def decode_cursor(cursor: str, signature: str) -> CursorPosition:
    """
    Decode a cursor and check that it belongs to this search.

    Raises:
        InvalidCursorError: If the cursor is malformed or was produced by a search with
            a different signature.
    """
    try:
        raw = base64.urlsafe_b64decode(cursor.encode("ascii"))
        payload = _CursorPayload.model_validate_json(raw)
        bookmark_id = UUID(hex=payload.i)
    except (binascii.Error, UnicodeError, ValidationError, ValueError) as e:
        raise InvalidCursorError("Malformed cursor") from e

    if not math.isfinite(payload.s):
        raise InvalidCursorError("Malformed cursor")
    if payload.h != signature:
        raise InvalidCursorError("Cursor does not belong to this search")
    return CursorPosition(score=payload.s, bookmark_id=bookmark_id, snapshot=payload.t)


# =============================================================================
# Pagination
# =============================================================================


def paginate(
    ranked: list[RankedResult],
    limit: int,
    signature: str,
    snapshot: datetime,
    after: CursorPosition | None = None,
) -> Page:
    """
    Take one page from an already sorted result list.

    With a cursor, only items strictly after the cursor's (score, id) are eligible. The
    next cursor carries `snapshot` forward.
    """
    if after is not None:
        ranked = [r for r in ranked if r.sort_key < after.sort_key]

    items = ranked[:limit]
    has_more = len(ranked) > limit
    next_cursor = None
    if has_more and items:
        last = items[-1]
        next_cursor = encode_cursor(last.score, last.bookmark_id, signature, snapshot)
    return Page(items=items, has_more=has_more, next_cursor=next_cursor)
