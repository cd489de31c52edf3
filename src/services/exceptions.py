"""Shared exceptions for service layer operations."""


class SearchValidationError(Exception):
    """
    Raised when a search request is invalid (caller error).

    Raised before any strategy runs. The API layer maps it to a 400 response and it is
    never retried.
    """

    def __init__(self, message: str, field: str | None = None) -> None:
        self.field = field
        super().__init__(message)


class InvalidCursorError(SearchValidationError):
    """Raised when a pagination cursor is malformed or belongs to a different search."""

    def __init__(self, message: str = "Invalid cursor") -> None:
        super().__init__(message, field="cursor")


class SearchUnavailableError(Exception):
    """
    Raised when a search cannot produce any result (server error).

    Happens when every activated strategy failed or missed the deadline, or when the
    bookmark store could not be read at all.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message)


class EmbeddingError(Exception):
    """Raised when the embedding provider cannot embed a query."""

    def __init__(self, message: str) -> None:
        super().__init__(message)


class BookmarkNotFoundError(Exception):
    """Raised when a bookmark does not exist or does not belong to the user."""

    def __init__(self, bookmark_id: object) -> None:
        self.bookmark_id = bookmark_id
        super().__init__(f"Bookmark not found: {bookmark_id}")
