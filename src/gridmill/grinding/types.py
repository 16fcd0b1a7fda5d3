"""Document, column and custom type definitions for Gridmill.

Column values are shaped by a column's type and cardinality: a base type
yields a scalar, a custom type yields an object keyed by the type's
attribute names, and ``many`` cardinality wraps either in a list.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union


class BaseType(str, Enum):
    """Scalar type of a column or custom type attribute."""

    TEXT = "text"
    NUMBER = "number"
    DATE = "date"  # ISO 8601 date string
    BOOLEAN = "boolean"


class Cardinality(str, Enum):
    """Whether a column yields a single value or a list."""

    ONE = "one"
    MANY = "many"


@dataclass
class Document:
    """A document whose text is available for extraction."""

    id: str
    name: str
    text: str = ""
    """Filled in by ingestion; empty while OCR is still pending."""

    @property
    def is_pending(self) -> bool:
        """True while the document has no text to extract from."""
        return not self.text.strip()

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {"id": self.id, "name": self.name, "text": self.text}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Document:
        """Create from dictionary."""
        return cls(id=data["id"], name=data["name"], text=data.get("text", ""))


@dataclass(frozen=True)
class Attribute:
    """A named, base-typed field of a custom type."""

    name: str
    description: str
    type: BaseType = BaseType.TEXT

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "name": self.name,
            "description": self.description,
            "type": self.type.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Attribute:
        """Create from dictionary."""
        return cls(
            name=data["name"],
            description=data["description"],
            type=BaseType(data.get("type", "text")),
        )


@dataclass(frozen=True)
class CustomType:
    """A user-defined composite value shape."""

    name: str
    """Unique key; columns reference the type by this name."""

    description: str

    attributes: tuple[Attribute, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "name": self.name,
            "description": self.description,
            "attributes": [a.to_dict() for a in self.attributes],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CustomType:
        """Create from dictionary."""
        return cls(
            name=data["name"],
            description=data.get("description", ""),
            attributes=tuple(Attribute.from_dict(a) for a in data.get("attributes", [])),
        )

    def validate(self) -> list[str]:
        """Validate the definition and return any errors.

        Returns:
            List of validation error messages.
        """
        errors = []

        if not self.name.strip():
            errors.append("Custom type has an empty name")
        if not self.description.strip():
            errors.append(f"Custom type '{self.name}' has an empty description")
        if not self.attributes:
            errors.append(f"Custom type '{self.name}' needs at least one attribute")

        names = [a.name for a in self.attributes]
        duplicates = {n for n in names if names.count(n) > 1}
        if duplicates:
            errors.append(f"Duplicate attribute names in '{self.name}': {sorted(duplicates)}")

        for attr in self.attributes:
            if not attr.name.strip():
                errors.append(f"Custom type '{self.name}' has an attribute with an empty name")
            if not attr.description.strip():
                errors.append(f"Attribute '{attr.name}' of '{self.name}' has an empty description")

        return errors


@dataclass(frozen=True)
class BaseColumnType:
    """Column type backed by a scalar base type."""

    base_type: BaseType

    kind = "base"

    def describe(self) -> str:
        return self.base_type.value

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "baseType": self.base_type.value}


@dataclass(frozen=True)
class CustomColumnType:
    """Column type referencing a custom type by name."""

    type_name: str

    kind = "custom"

    def describe(self) -> str:
        return f"custom type: {self.type_name}"

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "typeName": self.type_name}


ColumnType = Union[BaseColumnType, CustomColumnType]


def column_type_from_dict(data: dict[str, Any]) -> ColumnType:
    """Create a column type from its tagged dictionary form."""
    kind = data.get("kind")
    if kind == "base":
        return BaseColumnType(BaseType(data["baseType"]))
    if kind == "custom":
        return CustomColumnType(data["typeName"])
    raise ValueError(f"Unknown column type kind: {kind!r}")


@dataclass
class Column:
    """A typed column of the extraction matrix.

    ``id`` is the stable identity. ``type`` is only changed by the custom
    type rename path, never edited directly.
    """

    id: str
    name: str
    description: str
    type: ColumnType = field(default_factory=lambda: BaseColumnType(BaseType.TEXT))
    cardinality: Cardinality = Cardinality.ONE

    @property
    def custom_type_name(self) -> str | None:
        """Name of the referenced custom type, if any."""
        if isinstance(self.type, CustomColumnType):
            return self.type.type_name
        return None

    def references(self, type_name: str) -> bool:
        """Check whether this column is typed by the given custom type."""
        return self.custom_type_name == type_name

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "type": self.type.to_dict(),
            "cardinality": self.cardinality.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Column:
        """Create from dictionary."""
        return cls(
            id=data["id"],
            name=data["name"],
            description=data.get("description", ""),
            type=column_type_from_dict(data["type"]),
            cardinality=Cardinality(data.get("cardinality", "one")),
        )

    def validate(self) -> list[str]:
        """Validate the column and return any errors."""
        errors = []
        if not self.id.strip():
            errors.append("Found column with empty id")
        if not self.name.strip():
            errors.append(f"Column '{self.id}' has an empty name")
        if not self.description.strip():
            errors.append(f"Column '{self.id}' has an empty description")
        if isinstance(self.type, CustomColumnType) and not self.type.type_name.strip():
            errors.append(f"Column '{self.id}' references a custom type with an empty name")
        return errors
