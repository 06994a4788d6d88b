"""Shared utilities for the backend."""
from utils.dates import as_utc, isoformat, utcnow

__all__ = [
    "as_utc",
    "isoformat",
    "utcnow",
]
