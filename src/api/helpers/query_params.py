"""Helpers for parsing list-valued query parameters."""


def split_csv_params(values: list[str] | None) -> list[str]:
    """
    Flatten repeated and comma-separated query values.

    `?tags=a,b&tags=c` and `?tags=a&tags=b&tags=c` both yield ["a", "b", "c"].
    Blank entries are dropped; no other normalization happens here.
    """
    if not values:
        return []
    return [part for value in values for part in value.split(",") if part.strip()]
