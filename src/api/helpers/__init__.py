"""API helper utilities."""
from api.helpers.query_params import split_csv_params

__all__ = [
    "split_csv_params",
]
