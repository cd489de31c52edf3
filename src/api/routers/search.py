"""Bookmark search endpoint."""
from fastapi import APIRouter, Depends, HTTPException, Query

from api.dependencies import get_current_user_id, get_search_service
from api.helpers import split_csv_params
from schemas.search import SearchRequest, SearchResponse
from services.exceptions import SearchUnavailableError, SearchValidationError
from services.search_service import SearchService

router = APIRouter(prefix="/bookmarks", tags=["search"])


@router.get("/search", response_model=SearchResponse, response_model_by_alias=True)
async def search_bookmarks(
    query: str | None = Query(default=None, description="Free-text query (title, summary, domain, semantic)"),  # noqa: E501
    tags: list[str] = Query(default=[], description="Tag names, repeated or comma-separated (exact match)"),  # noqa: E501
    types: list[str] = Query(default=[], description="Bookmark types, e.g. ARTICLE,VIDEO (unknown types ignored)"),  # noqa: E501
    special: list[str] = Query(default=[], description="READ, UNREAD and/or STAR (OR'ed together)"),  # noqa: E501
    limit: str | None = Query(default=None, description="Page size (1-100)"),
    cursor: str | None = Query(default=None, description="Opaque cursor from a previous page"),
    matching_distance: str | None = Query(
        default=None,
        alias="matchingDistance",
        description="Maximum cosine distance for semantic matches (0.1-2.0)",
    ),
    user_id: str = Depends(get_current_user_id),
    search_service: SearchService = Depends(get_search_service),
) -> SearchResponse:
    """
    Search the current user's READY bookmarks.

    - **query**: Matched against title/summary (case-insensitive), against URLs when it
      contains a domain, and semantically when an embedding provider is configured
    - **tags**: Bookmarks carrying more of the requested tags rank higher
    - **types** / **special**: Restrict results; they never activate a search by themselves
    - Without query and tags, returns the newest bookmarks first
    """
    request = SearchRequest(
        user_id=user_id,
        query=query,
        tags=split_csv_params(tags),
        types=split_csv_params(types),
        special_filters=split_csv_params(special),
        limit=limit,
        cursor=cursor,
        matching_distance=matching_distance,
    )
    try:
        return await search_service.search(request)
    except SearchValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except SearchUnavailableError as e:
        raise HTTPException(status_code=503, detail=str(e))
