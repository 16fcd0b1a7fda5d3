"""Content hashing for cache keys."""

from __future__ import annotations

import hashlib
import json
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from gridmill.grinding.types import Column, CustomType

FINGERPRINT_LENGTH = 32


def canonical_json(data: Any) -> str:
    """Serialize data as canonical JSON (sorted keys, compact separators)."""
    return json.dumps(data, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def content_hash(data: bytes, length: int = FINGERPRINT_LENGTH) -> str:
    """Generate a hash for arbitrary byte content.

    Args:
        data: Byte content to hash.
        length: Number of hex characters to keep.

    Returns:
        Truncated SHA-256 hex digest.
    """
    return hashlib.sha256(data).hexdigest()[:length]


def string_hash(text: str, length: int = FINGERPRINT_LENGTH) -> str:
    """Generate a hash for string content."""
    return content_hash(text.encode("utf-8"), length)


def fingerprint(
    document_id: str,
    column_id: str,
    document_text: str,
    column: Column,
    custom_types: Iterable[CustomType],
) -> str:
    """Cache key for one extraction cell.

    Covers every input that determines the cell's value, including the whole
    custom type set, so adding an unrelated type also changes the key. The
    inputs are encoded as one JSON array, which keeps field boundaries
    unambiguous whatever characters the text contains. Custom types are
    ordered by name since the set is unordered.

    Returns:
        32 hex characters (128 bits) of SHA-256.
    """
    types = sorted((t.to_dict() for t in custom_types), key=lambda t: t["name"])
    payload = canonical_json([document_id, column_id, document_text, column.to_dict(), types])
    return string_hash(payload)
