"""Shared utility functions for service layer."""
import hashlib
import json
from typing import Any

# Escape character passed explicitly to LIKE so SQLite and PostgreSQL agree
LIKE_ESCAPE_CHAR = "\\"


def escape_ilike(value: str) -> str:
    r"""
    Escape special ILIKE characters for safe use in LIKE/ILIKE patterns.

    LIKE/ILIKE treats these characters specially:
    - % matches any sequence of characters
    - _ matches any single character
    - \\ is the escape character

    This function escapes them so they match literally. Use together with
    `escape=LIKE_ESCAPE_CHAR` on the ilike() call.
    """
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def stable_digest(payload: dict[str, Any], length: int = 16) -> str:
    """Hash a JSON-serializable dict into a short hex digest independent of key order."""
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:length]
