"""
Request normalization and query parsing for bookmark search.

Turns a raw SearchRequest into SearchCriteria: the validated, canonical form that the
strategies, the paginator and the result cache all key off. Two requests that
normalize to the same criteria are the same search.
"""
import re
from dataclasses import dataclass
from typing import Any

from core.config import Settings
from models.bookmark import BookmarkType
from schemas.search import SearchRequest, SpecialFilter
from services.exceptions import SearchValidationError
from services.utils import stable_digest

MIN_LIMIT = 1
MAX_LIMIT = 100
MIN_MATCHING_DISTANCE = 0.1
MAX_MATCHING_DISTANCE = 2.0

_DOMAIN_PATTERNS = (
    re.compile(r"^[a-z0-9.-]+\.[a-z]{2,}$", re.IGNORECASE),  # domain.com
    re.compile(r"^www\.[a-z0-9.-]+\.[a-z]{2,}$", re.IGNORECASE),  # www.domain.com
    re.compile(r"^https?://[a-z0-9.-]+\.[a-z]{2,}", re.IGNORECASE),  # http(s)://domain.com/...
)


@dataclass(frozen=True)
class SearchCriteria:
    """Validated, normalized search parameters."""

    user_id: str
    query: str | None
    domain: str | None
    tags: tuple[str, ...]
    types: tuple[BookmarkType, ...]
    special_filters: tuple[SpecialFilter, ...]
    limit: int
    cursor: str | None
    matching_distance: float

    def signature_fields(self) -> dict[str, Any]:
        """Fields that define the ordering of a search (everything except paging)."""
        return {
            "user": self.user_id,
            "query": self.query,
            "tags": list(self.tags),
            "types": [t.value for t in self.types],
            "special": [s.value for s in self.special_filters],
            "distance": self.matching_distance,
        }

    @property
    def signature(self) -> str:
        """Digest of the ordering-defining fields. Cursors are bound to it."""
        return stable_digest(self.signature_fields())

    def cache_fields(self) -> dict[str, Any]:
        """Everything that determines the exact page returned."""
        return {**self.signature_fields(), "cursor": self.cursor, "limit": self.limit}


def normalize_query(query: str | None) -> str | None:
    """Trim and collapse whitespace. Blank queries become None."""
    if query is None:
        return None
    normalized = " ".join(query.split())
    return normalized or None


def is_domain_query(query: str) -> bool:
    """Detect whether a single token looks like a hostname or URL."""
    clean = query.strip().lower()
    return any(pattern.search(clean) for pattern in _DOMAIN_PATTERNS)


def extract_domain(query: str) -> str:
    """Strip protocol, leading www., path, query string and fragment from a hostname token."""
    domain = query.strip().lower()
    domain = re.sub(r"^https?://", "", domain)
    domain = re.sub(r"^www\.", "", domain)
    for separator in ("/", "?", "#"):
        domain = domain.split(separator)[0] or domain
    return domain


def find_domain(query: str | None) -> str | None:
    """Return the first hostname-like token in the query, already extracted."""
    if not query:
        return None
    for token in query.split():
        if is_domain_query(token):
            domain = extract_domain(token)
            if domain:
                return domain
    return None


def _normalize_tags(tags: list[str]) -> tuple[str, ...]:
    # Tag matching is exact and case-sensitive, so only whitespace is normalized
    return tuple(sorted({tag.strip() for tag in tags if tag and tag.strip()}))


def _normalize_types(types: list[str]) -> tuple[BookmarkType, ...]:
    valid = {t.value for t in BookmarkType}
    # Unknown types are dropped silently
    return tuple(sorted(
        {BookmarkType(t.strip().upper()) for t in types if t and t.strip().upper() in valid},
    ))


def _normalize_special_filters(special_filters: list[str]) -> tuple[SpecialFilter, ...]:
    valid = {s.value for s in SpecialFilter}
    normalized = set()
    for raw in special_filters:
        value = raw.strip().upper() if raw else ""
        if not value:
            continue
        if value not in valid:
            raise SearchValidationError(
                f"Unknown special filter '{raw}'. Expected one of: {', '.join(sorted(valid))}.",
                field="special",
            )
        normalized.add(SpecialFilter(value))
    return tuple(sorted(normalized))


def _parse_limit(value: int | str | None, default: int) -> int:
    """Accept an int or its string form (as sent over HTTP) within the page size bounds."""
    if value is None:
        return default
    error = SearchValidationError(
        f"limit must be an integer between {MIN_LIMIT} and {MAX_LIMIT} (got {value!r}).",
        field="limit",
    )
    if isinstance(value, str):
        try:
            value = int(value.strip())
        except ValueError as e:
            raise error from e
    if isinstance(value, bool) or not isinstance(value, int) or not MIN_LIMIT <= value <= MAX_LIMIT:
        raise error
    return value


def normalize_search_request(request: SearchRequest, settings: Settings) -> SearchCriteria:
    """
    Validate a raw request and convert it to canonical SearchCriteria.

    Raises:
        SearchValidationError: If limit or matching distance are out of bounds, a special
            filter is unknown, or the owner is missing.
    """
    if not request.user_id:
        raise SearchValidationError("Search requires an owner", field="user_id")

    limit = _parse_limit(request.limit, settings.search_default_limit)

    distance = (
        settings.search_default_matching_distance
        if request.matching_distance is None
        else request.matching_distance
    )
    try:
        distance = float(distance)
    except (TypeError, ValueError) as e:
        raise SearchValidationError(
            f"matchingDistance must be a number (got {distance!r}).",
            field="matchingDistance",
        ) from e
    # NaN fails both comparisons
    if not MIN_MATCHING_DISTANCE <= distance <= MAX_MATCHING_DISTANCE:
        raise SearchValidationError(
            f"matchingDistance must be between {MIN_MATCHING_DISTANCE} and "
            f"{MAX_MATCHING_DISTANCE} (got {distance!r}).",
            field="matchingDistance",
        )

    query = normalize_query(request.query)
    cursor = request.cursor.strip() if request.cursor and request.cursor.strip() else None

    return SearchCriteria(
        user_id=request.user_id,
        query=query,
        domain=find_domain(query),
        tags=_normalize_tags(request.tags),
        types=_normalize_types(request.types),
        special_filters=_normalize_special_filters(request.special_filters),
        limit=limit,
        cursor=cursor,
        matching_distance=distance,
    )
