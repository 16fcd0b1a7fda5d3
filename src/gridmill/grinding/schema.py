"""Schema compiler for Gridmill.

Turns column declarations plus custom types into the structured-output
contract sent to the extractor: a JSON schema with one property per column
id, and an instruction text enumerating the columns.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from gridmill.exceptions import UnknownTypeError
from gridmill.grinding.types import (
    BaseColumnType,
    BaseType,
    Cardinality,
    Column,
    CustomType,
)

INSTRUCTION_HEADER = (
    "Extract the requested fields from the document text. Use only the "
    "information present in the text. If a field is not explicitly present, "
    "return null for that field (or an empty array when a list is requested)."
)

INSTRUCTION_FOOTER = (
    "Respond strictly as JSON that conforms to the provided JSON schema. "
    "Do not include any extra keys or text."
)

_SCALAR_SCHEMAS: dict[BaseType, dict[str, Any]] = {
    BaseType.TEXT: {"type": ["string", "null"]},
    BaseType.NUMBER: {"type": ["number", "null"]},
    BaseType.DATE: {"type": ["string", "null"], "format": "date"},
    BaseType.BOOLEAN: {"type": ["boolean", "null"]},
}


@dataclass(frozen=True)
class CompiledSchema:
    """Structured-output contract for one extraction request."""

    json_schema: dict[str, Any]
    """Top-level object schema keyed by column id."""

    instruction: str
    """Natural-language instruction listing every column."""

    def to_json(self) -> str:
        """Canonical JSON form of the schema."""
        return json.dumps(self.json_schema, sort_keys=True, separators=(",", ":"))


def scalar_schema(base_type: BaseType, description: str | None = None) -> dict[str, Any]:
    """Nullable JSON schema for a base type."""
    schema = dict(_SCALAR_SCHEMAS[base_type])
    if description:
        schema["description"] = description
    return schema


def resolve_custom_type(
    type_name: str,
    custom_types: Sequence[CustomType],
    column_id: str | None = None,
) -> CustomType:
    """Find a custom type by name.

    Raises:
        UnknownTypeError: If no type has that name.
    """
    for custom_type in custom_types:
        if custom_type.name == type_name:
            return custom_type
    raise UnknownTypeError(type_name, column_id)


def custom_type_schema(custom_type: CustomType) -> dict[str, Any]:
    """Object schema for a custom type; every attribute is a nullable scalar."""
    properties = {
        attr.name: scalar_schema(attr.type, attr.description)
        for attr in custom_type.attributes
    }
    return {
        "type": "object",
        "description": custom_type.description,
        "additionalProperties": False,
        "properties": properties,
        "required": list(properties),
    }


def column_schema(column: Column, custom_types: Sequence[CustomType]) -> dict[str, Any]:
    """JSON schema for the value of a single column."""
    if isinstance(column.type, BaseColumnType):
        schema = scalar_schema(column.type.base_type, column.description)
    else:
        custom_type = resolve_custom_type(column.type.type_name, custom_types, column.id)
        schema = custom_type_schema(custom_type)

    if column.cardinality == Cardinality.MANY:
        return {
            "type": "array",
            "description": column.description,
            "items": schema,
        }
    return schema


def check_references(columns: Sequence[Column], custom_types: Sequence[CustomType]) -> None:
    """Verify every custom column type resolves.

    Raises:
        UnknownTypeError: For the first column with a dangling reference.
    """
    for column in columns:
        type_name = column.custom_type_name
        if type_name is not None:
            resolve_custom_type(type_name, custom_types, column.id)


def build_instruction(columns: Sequence[Column], custom_types: Sequence[CustomType]) -> str:
    """Build the instruction text listing columns in order."""
    lines = [INSTRUCTION_HEADER, "Columns to extract (by id):"]

    for column in columns:
        lines.append(
            f"- {column.id}: {column.name} "
            f"({column.type.describe()}, {column.cardinality.value}) - {column.description}"
        )
        type_name = column.custom_type_name
        if type_name is not None:
            custom_type = resolve_custom_type(type_name, custom_types, column.id)
            lines.append(f"  Attributes of {custom_type.name}:")
            for attr in custom_type.attributes:
                lines.append(f"  * {attr.name} ({attr.type.value}) - {attr.description}")

    lines.append(INSTRUCTION_FOOTER)
    return "\n".join(lines)


def compile_schema(
    columns: Sequence[Column],
    custom_types: Sequence[CustomType],
) -> CompiledSchema:
    """Compile columns and custom types into a structured-output contract.

    The output is a pure function of the inputs: compiling the same columns
    and types twice yields byte-identical schema JSON and instruction text.

    Args:
        columns: Columns to extract, in display order.
        custom_types: All known custom types.

    Returns:
        CompiledSchema with the JSON schema and the instruction text.

    Raises:
        UnknownTypeError: If a column references a missing custom type.
    """
    check_references(columns, custom_types)

    properties = {column.id: column_schema(column, custom_types) for column in columns}
    json_schema = {
        "type": "object",
        "additionalProperties": False,
        "properties": properties,
        "required": list(properties),
    }

    return CompiledSchema(
        json_schema=json_schema,
        instruction=build_instruction(columns, custom_types),
    )
