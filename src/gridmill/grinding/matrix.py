"""Extraction matrix for Gridmill.

Holds extracted values as a sparse document x column table, plus the set of
cells currently awaiting a remote response.
"""

from __future__ import annotations

import csv
import json
import logging
from collections.abc import Iterable, Iterator
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

Cell = tuple[str, str]
"""(document_id, column_id) coordinate."""


class ExtractionMatrix:
    """Sparse mapping document id -> column id -> value.

    A missing key means the cell has not been extracted yet; a stored
    ``None`` or ``[]`` means it was extracted and nothing was found.
    """

    def __init__(self, rows: dict[str, dict[str, Any]] | None = None):
        self._rows: dict[str, dict[str, Any]] = {
            doc_id: dict(row) for doc_id, row in (rows or {}).items()
        }

    def has(self, document_id: str, column_id: str) -> bool:
        """Check whether a cell holds a value."""
        return column_id in self._rows.get(document_id, {})

    def get(self, document_id: str, column_id: str, default: Any = None) -> Any:
        """Get the value of a cell."""
        return self._rows.get(document_id, {}).get(column_id, default)

    def row(self, document_id: str) -> dict[str, Any]:
        """Copy of the stored values for a document."""
        return dict(self._rows.get(document_id, {}))

    def set(self, document_id: str, column_id: str, value: Any) -> None:
        """Set the value of a single cell."""
        self._rows.setdefault(document_id, {})[column_id] = value

    def merge_row(self, document_id: str, values: dict[str, Any]) -> None:
        """Merge a partial row into a document's row.

        Only the keys present in ``values`` are written; other columns keep
        whatever they held before.
        """
        self._rows.setdefault(document_id, {}).update(values)

    def remove_column(self, column_id: str) -> int:
        """Drop a column from every row.

        Returns:
            Number of cells removed.
        """
        removed = 0
        for row in self._rows.values():
            if column_id in row:
                del row[column_id]
                removed += 1
        return removed

    def remove_document(self, document_id: str) -> bool:
        """Drop a document's row."""
        return self._rows.pop(document_id, None) is not None

    def column_values(self, column_id: str) -> dict[str, Any]:
        """Map document id -> value for every document with this cell set."""
        return {
            doc_id: row[column_id] for doc_id, row in self._rows.items() if column_id in row
        }

    def cells(self) -> Iterator[Cell]:
        """Iterate over populated cells."""
        for doc_id, row in self._rows.items():
            for column_id in row:
                yield doc_id, column_id

    def __len__(self) -> int:
        """Number of populated cells."""
        return sum(len(row) for row in self._rows.values())

    def __contains__(self, cell: Cell) -> bool:
        return self.has(*cell)

    def to_dict(self) -> dict[str, dict[str, Any]]:
        """Convert to a plain nested dictionary."""
        return {doc_id: dict(row) for doc_id, row in self._rows.items()}

    @classmethod
    def from_dict(cls, data: dict[str, dict[str, Any]]) -> ExtractionMatrix:
        """Create from a plain nested dictionary."""
        return cls({doc_id: row for doc_id, row in data.items() if isinstance(row, dict)})

    def to_records(
        self,
        documents: Iterable[tuple[str, str]],
        column_ids: list[str],
    ) -> list[dict[str, Any]]:
        """Flatten into one record per document.

        Args:
            documents: (document_id, document_name) pairs, in output order.
            column_ids: Columns to include, in output order.

        Returns:
            List of flat dicts; unextracted cells are empty strings and
            structured values are JSON-encoded.
        """
        records = []
        for doc_id, doc_name in documents:
            record: dict[str, Any] = {"document_id": doc_id, "document": doc_name}
            row = self._rows.get(doc_id, {})
            for column_id in column_ids:
                if column_id not in row:
                    record[column_id] = ""
                    continue
                value = row[column_id]
                if isinstance(value, (dict, list)):
                    value = json.dumps(value, ensure_ascii=False)
                record[column_id] = "" if value is None else value
            records.append(record)
        return records

    def to_csv(
        self,
        path: Path,
        documents: Iterable[tuple[str, str]],
        column_ids: list[str],
    ) -> None:
        """Export to CSV file.

        Args:
            path: Path to save CSV.
            documents: (document_id, document_name) pairs, in row order.
            column_ids: Columns to export, in column order.
        """
        header = ["document_id", "document", *column_ids]
        with open(path, "w", newline="", encoding="utf-8") as f:
            writer = csv.DictWriter(f, fieldnames=header, extrasaction="ignore")
            writer.writeheader()
            for record in self.to_records(documents, column_ids):
                writer.writerow(record)

    def to_json(self, path: Path | None = None, indent: int = 2) -> str:
        """Export to JSON.

        Args:
            path: Optional path to save to.
            indent: JSON indentation.

        Returns:
            JSON string.
        """
        json_str = json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)
        if path:
            path.write_text(json_str, encoding="utf-8")
        return json_str

    def to_dataframe(self, documents: Iterable[tuple[str, str]], column_ids: list[str]):
        """Export to pandas DataFrame.

        Returns:
            pandas.DataFrame with one row per document.

        Raises:
            ImportError: If pandas is not installed.
        """
        try:
            import pandas as pd
        except ImportError:
            raise ImportError(
                "pandas is required for DataFrame export. "
                "Install with: pip install gridmill[pandas]"
            )

        return pd.DataFrame(self.to_records(documents, column_ids))

    def summary(self, document_ids: list[str], column_ids: list[str]) -> dict[str, str]:
        """Completeness per column, e.g. ``{"name": "2/3 (67%)"}``."""
        total = max(len(document_ids), 1)
        summary = {}
        for column_id in column_ids:
            filled = sum(
                1
                for doc_id in document_ids
                if self._rows.get(doc_id, {}).get(column_id) not in (None, [])
            )
            summary[column_id] = f"{filled}/{len(document_ids)} ({100 * filled / total:.0f}%)"
        return summary


class LoadingSet:
    """Cells currently awaiting a remote extraction response."""

    def __init__(self) -> None:
        self._cells: set[Cell] = set()

    def mark(self, cells: Iterable[Cell]) -> None:
        """Mark cells as in flight."""
        self._cells.update(cells)

    def done(self, cells: Iterable[Cell]) -> None:
        """Clear the in-flight flag for cells."""
        self._cells.difference_update(cells)

    def remove_column(self, column_id: str) -> None:
        """Clear every in-flight flag for a column."""
        self._cells = {cell for cell in self._cells if cell[1] != column_id}

    def remove_document(self, document_id: str) -> None:
        """Clear every in-flight flag for a document."""
        self._cells = {cell for cell in self._cells if cell[0] != document_id}

    def is_loading(self, document_id: str, column_id: str) -> bool:
        return (document_id, column_id) in self._cells

    def __contains__(self, cell: Cell) -> bool:
        return cell in self._cells

    def __iter__(self) -> Iterator[Cell]:
        return iter(set(self._cells))

    def __len__(self) -> int:
        return len(self._cells)
