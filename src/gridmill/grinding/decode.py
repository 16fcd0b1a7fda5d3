"""Validated decoding of extracted values.

Remote extractors return loosely typed JSON. Each value is checked against
the shape its column declares; anything that does not fit is dropped to
``None`` (or ``[]`` for list columns) instead of raising.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from typing import Any

from gridmill.exceptions import UnknownTypeError
from gridmill.grinding.schema import resolve_custom_type
from gridmill.grinding.types import (
    BaseColumnType,
    BaseType,
    Cardinality,
    Column,
    CustomType,
)

logger = logging.getLogger(__name__)

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}")


def decode_scalar(base_type: BaseType, raw: Any) -> Any:
    """Decode one scalar, returning None when the shape does not match."""
    if raw is None:
        return None

    if base_type == BaseType.TEXT:
        return raw if isinstance(raw, str) else None

    if base_type == BaseType.NUMBER:
        # bool is an int subclass but never a valid number here
        if isinstance(raw, bool) or not isinstance(raw, (int, float)):
            return None
        return raw

    if base_type == BaseType.DATE:
        if isinstance(raw, str) and _ISO_DATE.match(raw):
            return raw[:10]
        return None

    if base_type == BaseType.BOOLEAN:
        return raw if isinstance(raw, bool) else None

    return None


def decode_object(custom_type: CustomType, raw: Any) -> dict[str, Any] | None:
    """Decode an attribute object; unknown keys are dropped, missing ones are None."""
    if not isinstance(raw, dict):
        return None
    return {attr.name: decode_scalar(attr.type, raw.get(attr.name)) for attr in custom_type.attributes}


def decode_value(column: Column, custom_types: Sequence[CustomType], raw: Any) -> Any:
    """Decode a raw extracted value for a column.

    Args:
        column: Column the value belongs to.
        custom_types: Known custom types.
        raw: Value as parsed from the extractor's JSON.

    Returns:
        A value of the column's declared shape. Scalars and objects fall back
        to None, lists to [] (with non-conforming items removed).

    Raises:
        UnknownTypeError: If the column references a missing custom type.
    """
    if isinstance(column.type, BaseColumnType):
        base_type = column.type.base_type

        def decode_item(item: Any) -> Any:
            return decode_scalar(base_type, item)

    else:
        custom_type = resolve_custom_type(column.type.type_name, custom_types, column.id)

        def decode_item(item: Any) -> Any:
            return decode_object(custom_type, item)

    if column.cardinality == Cardinality.MANY:
        if not isinstance(raw, list):
            if raw is not None:
                logger.debug(f"Expected a list for column {column.id}, got {type(raw).__name__}")
            return []
        return [v for v in (decode_item(item) for item in raw) if v is not None]

    value = decode_item(raw)
    if value is None and raw is not None:
        logger.debug(f"Dropped malformed value for column {column.id}: {raw!r}")
    return value


def decode_row(
    data: Any,
    columns: Sequence[Column],
    custom_types: Sequence[CustomType],
) -> dict[str, Any]:
    """Decode a partial result row.

    Only columns that appear in ``data`` are returned, so merging the row
    never touches other columns.
    """
    if not isinstance(data, dict):
        return {}

    row: dict[str, Any] = {}
    for column in columns:
        if column.id not in data:
            continue
        try:
            row[column.id] = decode_value(column, custom_types, data[column.id])
        except UnknownTypeError:
            logger.warning(f"Skipping column {column.id}: its custom type no longer exists")
    return row
