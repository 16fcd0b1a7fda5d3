"""Workspace state store for Gridmill.

Everything an extraction session mutates lives on one explicit
``WorkspaceStore`` object, so independent sessions never share state.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from typing import Any

from gridmill.exceptions import (
    DefinitionError,
    UnknownColumnError,
    UnknownDocumentError,
    UnknownTypeError,
)
from gridmill.grinding.matrix import ExtractionMatrix, LoadingSet
from gridmill.grinding.types import Cardinality, Column, CustomColumnType, CustomType, Document

logger = logging.getLogger(__name__)


@dataclass
class WorkspaceStore:
    """Documents, columns, custom types and the extraction matrix."""

    documents: list[Document] = field(default_factory=list)
    columns: list[Column] = field(default_factory=list)
    custom_types: list[CustomType] = field(default_factory=list)
    matrix: ExtractionMatrix = field(default_factory=ExtractionMatrix)
    loading: LoadingSet = field(default_factory=LoadingSet)
    """In-flight cells; never persisted."""

    # Documents

    def get_document(self, document_id: str) -> Document:
        for doc in self.documents:
            if doc.id == document_id:
                return doc
        raise UnknownDocumentError(f"Unknown document: {document_id}")

    def add_documents(self, documents: Iterable[Document]) -> list[Document]:
        """Add documents, replacing any existing document with the same id.

        Returns:
            The added documents.
        """
        added = list(documents)
        by_id = {doc.id: doc for doc in self.documents}
        for doc in added:
            by_id[doc.id] = doc
        self.documents = list(by_id.values())
        return added

    def set_document_text(self, document_id: str, text: str) -> Document:
        """Fill in text that arrived after the document was created.

        Replacing text a document already had clears its matrix row, since
        those values were extracted from the old text.
        """
        doc = self.get_document(document_id)
        if not doc.is_pending and doc.text != text:
            self.matrix.remove_document(document_id)
            logger.debug(f"Text of document {document_id} replaced; cleared its row")
        doc.text = text
        return doc

    def remove_document(self, document_id: str) -> None:
        """Remove a document with its matrix row and in-flight cells."""
        doc = self.get_document(document_id)
        self.documents.remove(doc)
        self.matrix.remove_document(document_id)
        self.loading.remove_document(document_id)

    # Columns

    def get_column(self, column_id: str) -> Column:
        for column in self.columns:
            if column.id == column_id:
                return column
        raise UnknownColumnError(f"Unknown column: {column_id}")

    def add_column(self, column: Column) -> Column:
        """Add a column.

        Raises:
            DefinitionError: If the column is invalid or its id is taken.
            UnknownTypeError: If it references a missing custom type.
        """
        errors = column.validate()
        if errors:
            raise DefinitionError(f"Invalid column '{column.id}'", "; ".join(errors))
        if any(c.id == column.id for c in self.columns):
            raise DefinitionError(f"Column id already exists: {column.id}")

        type_name = column.custom_type_name
        if type_name is not None and self.find_custom_type(type_name) is None:
            raise UnknownTypeError(type_name, column.id)

        self.columns.append(column)
        return column

    def update_column(
        self,
        column_id: str,
        name: str | None = None,
        description: str | None = None,
        cardinality: Cardinality | str | None = None,
    ) -> Column:
        """Edit a column's name, description or cardinality.

        The edited column replaces the old object in place. Its type is not
        editable; custom type changes go through ``replace_custom_type``.

        Raises:
            UnknownColumnError: If no column has that id.
            DefinitionError: If the edit leaves the column invalid.
        """
        column = self.get_column(column_id)
        changes: dict[str, Any] = {}
        if name is not None:
            changes["name"] = name
        if description is not None:
            changes["description"] = description
        if cardinality is not None:
            try:
                changes["cardinality"] = Cardinality(cardinality)
            except ValueError as e:
                raise DefinitionError(f"Invalid cardinality: {cardinality}") from e

        updated = replace(column, **changes)
        errors = updated.validate()
        if errors:
            raise DefinitionError(f"Invalid column '{column_id}'", "; ".join(errors))

        index = next(i for i, c in enumerate(self.columns) if c is column)
        self.columns[index] = updated
        return updated

    def remove_column(self, column_id: str) -> Column:
        """Remove a column with its matrix column and in-flight cells."""
        column = self.get_column(column_id)
        self.clear_column_state(column_id)
        self.columns.remove(column)
        return column

    def clear_column_state(self, column_id: str) -> None:
        """Drop every matrix value and in-flight flag of a column."""
        removed = self.matrix.remove_column(column_id)
        self.loading.remove_column(column_id)
        logger.debug(f"Cleared {removed} cells of column {column_id}")

    # Custom types

    def find_custom_type(self, name: str) -> CustomType | None:
        for custom_type in self.custom_types:
            if custom_type.name == name:
                return custom_type
        return None

    def get_custom_type(self, name: str) -> CustomType:
        custom_type = self.find_custom_type(name)
        if custom_type is None:
            raise UnknownTypeError(name)
        return custom_type

    def columns_using_type(self, name: str) -> list[Column]:
        """Columns whose type references the named custom type."""
        return [c for c in self.columns if c.references(name)]

    def add_custom_type(self, custom_type: CustomType) -> CustomType:
        """Add a new custom type.

        Raises:
            DefinitionError: If the definition is invalid or the name is taken.
        """
        errors = custom_type.validate()
        if errors:
            raise DefinitionError(f"Invalid custom type '{custom_type.name}'", "; ".join(errors))
        if self.find_custom_type(custom_type.name) is not None:
            raise DefinitionError(
                f"Custom type already exists: {custom_type.name}",
                hint="Use redefine-type to change an existing type",
            )
        self.custom_types.append(custom_type)
        return custom_type

    def replace_custom_type(self, old_name: str, new_definition: CustomType) -> list[Column]:
        """Swap a type definition and repoint the columns that reference it.

        Returns:
            The columns whose type reference was rewritten.
        """
        index = self.custom_types.index(self.get_custom_type(old_name))
        self.custom_types[index] = new_definition

        affected = self.columns_using_type(old_name)
        if new_definition.name != old_name:
            for column in affected:
                column.type = CustomColumnType(new_definition.name)
        return affected

    def remove_custom_type(self, name: str) -> CustomType:
        custom_type = self.get_custom_type(name)
        self.custom_types.remove(custom_type)
        return custom_type

    # Serialization

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary. The loading set is not included."""
        return {
            "documents": [d.to_dict() for d in self.documents],
            "columns": [c.to_dict() for c in self.columns],
            "customTypes": [t.to_dict() for t in self.custom_types],
            "resultsByDoc": self.matrix.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> WorkspaceStore:
        """Create from dictionary."""
        return cls(
            documents=[Document.from_dict(d) for d in data.get("documents", [])],
            columns=[Column.from_dict(c) for c in data.get("columns", [])],
            custom_types=[CustomType.from_dict(t) for t in data.get("customTypes", [])],
            matrix=ExtractionMatrix.from_dict(data.get("resultsByDoc", {})),
        )
