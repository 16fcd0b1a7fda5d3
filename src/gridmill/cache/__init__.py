"""Caching layer for extracted cell values."""

from gridmill.cache.hash import fingerprint, string_hash
from gridmill.cache.store import MISSING, CellCache, MemoryCache, ResultCache, get_cache

__all__ = [
    "MISSING",
    "CellCache",
    "MemoryCache",
    "ResultCache",
    "fingerprint",
    "get_cache",
    "string_hash",
]
