"""
Search facade: validation, caching, parallel strategy execution, ranking and hydration.

A search runs in these phases:

1. Normalize and validate the request (caller errors surface before any query runs).
2. Read the owner's cache generation and return a cached page on hit.
3. Run every activated strategy as its own task, each with its own session. Failed or
   late strategies contribute nothing; if all of them fail the search is unavailable.
4. Fetch open counts as of the search snapshot, merge, sort and paginate.
5. Hydrate the page's bookmarks and store the response under the generation read in
   step 2.

One deadline covers phases 2 to 5. The engagement lookup has its own shorter budget
and degrades to no boost when late; a late hydration makes the search unavailable.

With no query and no tags, the Recent-Listing strategy runs instead and paginates in
SQL.
"""
import asyncio
import logging
import time
from collections.abc import Callable, Coroutine
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from core.config import Settings
from core.search_cache import SearchCache
from models.base import utc_now
from models.bookmark import Bookmark, BookmarkStatus
from schemas.search import MatchType, SearchRequest, SearchResponse, SearchResultItem
from services.embedding_service import EmbeddingProvider
from services.exceptions import SearchUnavailableError
from services.search_helpers import SearchCriteria, normalize_search_request
from services.search_ranking import (
    CursorPosition,
    Page,
    RankedResult,
    decode_cursor,
    encode_cursor,
    get_open_counts,
    merge_candidates,
    paginate,
)
from services.search_strategies import (
    Candidate,
    list_recent,
    search_by_domain,
    search_by_tags,
    search_by_text,
    search_by_vector,
)

logger = logging.getLogger(__name__)

StrategyRunner = Callable[[], Coroutine[Any, Any, list[Candidate]]]


class SearchService:
    """Entry point for bookmark search."""

    def __init__(
        self,
        session_factory: async_sessionmaker,
        settings: Settings,
        cache: SearchCache | None = None,
        embedding_provider: EmbeddingProvider | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._settings = settings
        self._cache = cache
        self._embedding_provider = embedding_provider

    async def search(self, request: SearchRequest) -> SearchResponse:
        """
        Run a search and return one page of results.

        Raises:
            SearchValidationError: Invalid limit, matching distance, special filter, or
                cursor (InvalidCursorError).
            SearchUnavailableError: Every activated strategy failed or timed out, or the
                page could not be loaded before the deadline.
        """
        started = time.monotonic()
        deadline = started + self._settings.search_deadline_seconds
        criteria = normalize_search_request(request, self._settings)
        after = decode_cursor(criteria.cursor, criteria.signature) if criteria.cursor else None
        # Later pages reuse the first page's snapshot so engagement scores stay fixed
        snapshot = after.snapshot if after is not None else utc_now()

        generation = None
        cache_fields = criteria.cache_fields()
        if self._cache is not None:
            generation = await self._cache.get_generation(criteria.user_id)
            if generation is not None:
                cached = await self._cache.get(criteria.user_id, generation, cache_fields)
                if cached is not None:
                    logger.info(
                        "search_cache_hit",
                        extra={"user_id": criteria.user_id, "results": len(cached.bookmarks)},
                    )
                    return cached

        strategies = self._active_strategies(criteria)
        if strategies:
            candidates = await self._run_strategies(criteria, strategies, deadline)
            open_counts = await self._load_open_counts(
                criteria.user_id, {c.bookmark_id for c in candidates}, snapshot, deadline,
            )
            ranked = merge_candidates(candidates, open_counts)
            page = paginate(ranked, criteria.limit, criteria.signature, snapshot, after)
        else:
            page = await self._recent_page(criteria, after, snapshot, deadline)

        response = await self._build_response(criteria, page, deadline)

        if self._cache is not None and generation is not None:
            await self._cache.set(criteria.user_id, generation, cache_fields, response)

        logger.info(
            "search_completed",
            extra={
                "user_id": criteria.user_id,
                "strategies": [s.value for s in strategies] or [MatchType.RECENT.value],
                "results": len(response.bookmarks),
                "has_more": response.has_more,
                "duration_ms": round((time.monotonic() - started) * 1000, 1),
            },
        )
        return response

    def _active_strategies(self, criteria: SearchCriteria) -> dict[MatchType, StrategyRunner]:
        """Select the strategies the request activates."""
        strategies: dict[MatchType, StrategyRunner] = {}
        if criteria.tags:
            strategies[MatchType.TAG] = lambda: self._query(search_by_tags, criteria)
        if criteria.domain:
            strategies[MatchType.DOMAIN] = lambda: self._query(search_by_domain, criteria)
        if criteria.query:
            strategies[MatchType.LEXICAL] = lambda: self._query(search_by_text, criteria)
            if self._embedding_provider is not None:
                strategies[MatchType.VECTOR] = lambda: self._vector_search(criteria)
        return strategies

    async def _query(self, fn: Callable[..., Coroutine], *args: Any) -> Any:
        async with self._session_factory() as db:
            return await fn(db, *args)

    async def _vector_search(self, criteria: SearchCriteria) -> list[Candidate]:
        # Embed before opening a session so no connection is held during the HTTP call
        embedding = await self._embedding_provider.embed(criteria.query)
        return await self._query(search_by_vector, criteria, embedding)

    async def _run_strategies(
        self,
        criteria: SearchCriteria,
        strategies: dict[MatchType, StrategyRunner],
        deadline: float,
    ) -> list[Candidate]:
        """
        Run strategies concurrently until the search deadline.

        Raises:
            SearchUnavailableError: If no strategy completed successfully.
        """
        tasks = {
            asyncio.create_task(runner(), name=f"search-{strategy.value}"): strategy
            for strategy, runner in strategies.items()
        }
        done, pending = await asyncio.wait(tasks, timeout=_remaining(deadline))

        for task in pending:
            task.cancel()
            logger.warning(
                "search_strategy_timeout",
                extra={
                    "user_id": criteria.user_id,
                    "strategy": tasks[task].value,
                    "deadline_seconds": self._settings.search_deadline_seconds,
                },
            )
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        candidates: list[Candidate] = []
        succeeded = 0
        for task in done:
            exc = task.exception()
            if exc is not None:
                logger.warning(
                    "search_strategy_failed",
                    extra={
                        "user_id": criteria.user_id,
                        "strategy": tasks[task].value,
                        "error": str(exc),
                        "error_type": type(exc).__name__,
                    },
                )
                continue
            succeeded += 1
            candidates.extend(task.result())

        if not succeeded:
            raise SearchUnavailableError(
                "Search is temporarily unavailable: no search strategy completed",
            )
        return candidates

    async def _load_open_counts(
        self,
        user_id: str,
        bookmark_ids: set[UUID],
        snapshot: datetime,
        deadline: float,
    ) -> dict[UUID, int]:
        """Fetch open counts as of the snapshot, degrading to no engagement data."""
        if not bookmark_ids:
            return {}
        budget = min(self._settings.search_engagement_timeout_seconds, _remaining(deadline))
        try:
            async with asyncio.timeout(budget):
                return await self._query(get_open_counts, user_id, bookmark_ids, snapshot)
        except (TimeoutError, SQLAlchemyError, OSError) as e:
            logger.warning(
                "search_engagement_failed",
                extra={"user_id": user_id, "error": str(e), "error_type": type(e).__name__},
            )
            return {}

    async def _recent_page(
        self,
        criteria: SearchCriteria,
        after: CursorPosition | None,
        snapshot: datetime,
        deadline: float,
    ) -> Page:
        """Newest READY bookmarks, keyset-paginated on id in SQL."""
        after_id = after.bookmark_id if after is not None else None
        candidates = await self._run_strategies(
            criteria,
            {MatchType.RECENT: lambda: self._query(list_recent, criteria, after_id)},
            deadline,
        )
        has_more = len(candidates) > criteria.limit
        candidates = candidates[:criteria.limit]
        open_counts = await self._load_open_counts(
            criteria.user_id, {c.bookmark_id for c in candidates}, snapshot, deadline,
        )
        items = [
            RankedResult(
                bookmark_id=c.bookmark_id,
                score=0.0,
                match_type=MatchType.RECENT,
                matched_tags=(),
                open_count=open_counts.get(c.bookmark_id, 0),
            )
            for c in candidates
        ]
        next_cursor = None
        if has_more and items:
            next_cursor = encode_cursor(
                0.0, items[-1].bookmark_id, criteria.signature, snapshot,
            )
        return Page(items=items, has_more=has_more, next_cursor=next_cursor)

    async def _build_response(
        self,
        criteria: SearchCriteria,
        page: Page,
        deadline: float,
    ) -> SearchResponse:
        """Load the page's bookmarks and assemble result items in ranked order."""
        try:
            async with asyncio.timeout(_remaining(deadline)):
                bookmarks = await self._query(
                    _load_bookmarks, criteria.user_id, [r.bookmark_id for r in page.items],
                )
        except TimeoutError as e:
            logger.warning("search_hydration_timeout", extra={"user_id": criteria.user_id})
            raise SearchUnavailableError("Search results could not be loaded in time") from e
        except (SQLAlchemyError, OSError) as e:
            logger.exception("search_hydration_failed", extra={"user_id": criteria.user_id})
            raise SearchUnavailableError("Search results could not be loaded") from e

        items = []
        for ranked in page.items:
            bookmark = bookmarks.get(ranked.bookmark_id)
            # Deleted or no longer READY since ranking
            if bookmark is None or bookmark.status != BookmarkStatus.READY:
                continue
            items.append(_to_result_item(bookmark, ranked))

        return SearchResponse(
            bookmarks=items,
            has_more=page.has_more,
            next_cursor=page.next_cursor,
        )


def _remaining(deadline: float) -> float:
    """Seconds left before the deadline (never negative)."""
    return max(0.0, deadline - time.monotonic())


async def _load_bookmarks(
    db: AsyncSession,
    user_id: str,
    bookmark_ids: list[UUID],
) -> dict[UUID, Bookmark]:
    if not bookmark_ids:
        return {}
    query = (
        select(Bookmark)
        .options(selectinload(Bookmark.tag_objects))
        .where(Bookmark.user_id == user_id, Bookmark.id.in_(bookmark_ids))
    )
    result = await db.execute(query)
    return {bookmark.id: bookmark for bookmark in result.scalars().all()}


def _to_result_item(bookmark: Bookmark, ranked: RankedResult) -> SearchResultItem:
    return SearchResultItem(
        id=bookmark.id,
        url=bookmark.url,
        title=bookmark.title,
        summary=bookmark.summary,
        type=bookmark.type,
        status=bookmark.status,
        starred=bookmark.starred,
        read=bookmark.read,
        preview=bookmark.preview,
        og_image_url=bookmark.og_image_url,
        og_description=bookmark.og_description,
        favicon_url=bookmark.favicon_url,
        created_at=bookmark.created_at,
        tags=sorted(tag.name for tag in bookmark.tag_objects),
        matched_tags=list(ranked.matched_tags),
        score=ranked.score,
        match_type=ranked.match_type,
        open_count=ranked.open_count,
    )
