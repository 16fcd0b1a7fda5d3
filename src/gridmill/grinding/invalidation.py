"""Invalidation controller for Gridmill.

Keeps the matrix consistent with the type system when custom types or
columns change.
"""

from __future__ import annotations

import asyncio
import logging

from gridmill.exceptions import DefinitionError, TypeInUseError
from gridmill.grinding.orchestrator import ExtractionOutcome, Orchestrator
from gridmill.grinding.store import WorkspaceStore
from gridmill.grinding.types import Cardinality, Column, CustomType

logger = logging.getLogger(__name__)


class InvalidationController:
    """Clears stale matrix state and triggers re-extraction."""

    def __init__(self, store: WorkspaceStore, orchestrator: Orchestrator):
        self.store = store
        self.orchestrator = orchestrator

    def _check_definition(self, old_name: str, new_definition: CustomType) -> None:
        errors = new_definition.validate()
        if errors:
            raise DefinitionError(
                f"Invalid custom type '{new_definition.name}'", "; ".join(errors)
            )
        if new_definition.name != old_name and self.store.find_custom_type(new_definition.name):
            raise DefinitionError(
                f"Cannot rename '{old_name}' to '{new_definition.name}': "
                "a custom type with that name already exists"
            )

    async def on_custom_type_redefine(
        self,
        old_name: str,
        new_definition: CustomType,
    ) -> dict[str, ExtractionOutcome]:
        """Replace a custom type and re-extract the columns that use it.

        Every dependent column's cells are cleared before the definition is
        swapped, so no request for those columns can start against the stale
        type. Re-extraction then runs once per column, concurrently.

        Args:
            old_name: Name of the type being redefined.
            new_definition: Replacement definition; its name may differ.

        Returns:
            Map of column id -> ExtractionOutcome for each dependent column.

        Raises:
            UnknownTypeError: If no type is named ``old_name``.
            DefinitionError: If the new definition is invalid or its new name
                collides with another type. Nothing is changed.
            RemoteCallError: If any re-extraction failed; the first failure is
                raised after all of them settle.
        """
        self.store.get_custom_type(old_name)
        self._check_definition(old_name, new_definition)

        affected = self.store.columns_using_type(old_name)
        for column in affected:
            self.store.clear_column_state(column.id)

        self.store.replace_custom_type(old_name, new_definition)
        logger.info(
            f"Redefined custom type {old_name!r}"
            + (f" as {new_definition.name!r}" if new_definition.name != old_name else "")
            + f"; re-extracting {len(affected)} column(s)"
        )

        results = await asyncio.gather(
            *(self.orchestrator.extract_for_new_column(column) for column in affected),
            return_exceptions=True,
        )

        outcomes: dict[str, ExtractionOutcome] = {}
        first_error: BaseException | None = None
        for column, result in zip(affected, results):
            if isinstance(result, BaseException):
                logger.error(f"Re-extraction of column {column.id} failed: {result}")
                first_error = first_error or result
            else:
                outcomes[column.id] = result

        if first_error is not None:
            raise first_error
        return outcomes

    def on_custom_type_remove(self, name: str) -> CustomType:
        """Remove a custom type that no column references.

        Raises:
            TypeInUseError: If a column still uses the type. Nothing is changed.
            UnknownTypeError: If no type has that name.
        """
        dependents = self.store.columns_using_type(name)
        if dependents:
            raise TypeInUseError(name, [c.name for c in dependents])
        removed = self.store.remove_custom_type(name)
        logger.info(f"Removed custom type {name!r}")
        return removed

    def on_column_remove(self, column_id: str) -> Column:
        """Remove a column along with its matrix column and in-flight cells.

        Cached values for the column stay in the cache as unreachable entries.
        """
        column = self.store.remove_column(column_id)
        logger.info(f"Removed column {column_id!r}")
        return column

    async def on_column_edit(
        self,
        column_id: str,
        name: str | None = None,
        description: str | None = None,
        cardinality: Cardinality | str | None = None,
    ) -> ExtractionOutcome:
        """Edit a column and re-extract it for every document.

        The column's cells are cleared first. An unchanged definition is
        answered from the cache; a changed one has new fingerprints and is
        requested again.

        Raises:
            UnknownColumnError: If no column has that id.
            DefinitionError: If the edit is invalid. Nothing is changed.
            RemoteCallError: If the re-extraction failed; the column's cells
                stay absent.
        """
        updated = self.store.update_column(
            column_id, name=name, description=description, cardinality=cardinality
        )
        self.store.clear_column_state(column_id)
        logger.info(f"Edited column {column_id!r}; re-extracting")
        return await self.orchestrator.extract_for_new_column(updated)
