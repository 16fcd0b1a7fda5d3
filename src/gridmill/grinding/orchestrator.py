"""Extraction orchestrator for Gridmill.

Computes which cells of the extraction matrix are missing, answers what it
can from the result cache, and sends one batched request for the rest.

Cell lifecycle:
    absent -> present            cache hit
    absent -> loading -> present batch succeeded and returned the cell
    absent -> loading -> absent  batch failed, or did not return the cell
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field, replace
from typing import Any

from gridmill.cache.hash import fingerprint
from gridmill.cache.store import MISSING, CellCache
from gridmill.exceptions import RemoteCallError
from gridmill.grinding.decode import decode_row
from gridmill.grinding.matrix import Cell
from gridmill.grinding.schema import compile_schema
from gridmill.grinding.service import ExtractionRequest, ExtractionService
from gridmill.grinding.store import WorkspaceStore
from gridmill.grinding.types import Column, Document

logger = logging.getLogger(__name__)


@dataclass
class ExtractionOutcome:
    """What one orchestrator invocation did."""

    cache_hits: int = 0
    requested_documents: list[str] = field(default_factory=list)
    requested_columns: list[str] = field(default_factory=list)
    cells_written: int = 0
    skipped_documents: list[str] = field(default_factory=list)
    """Documents left out because their text is still pending."""

    @property
    def requested(self) -> bool:
        """Whether a remote request was issued."""
        return bool(self.requested_documents)


def _ordered_union(items: Sequence[Any], wanted: set[str]) -> list[Any]:
    """Items whose id is in ``wanted``, in their given order."""
    return [item for item in items if item.id in wanted]


class Orchestrator:
    """Fills missing matrix cells from the cache or the extraction service."""

    def __init__(
        self,
        store: WorkspaceStore,
        cache: CellCache,
        service: ExtractionService,
        model_config: dict[str, Any] | None = None,
    ):
        """Initialize the orchestrator.

        Args:
            store: Workspace state to read definitions from and write results to.
            cache: Result cache keyed by cell fingerprint.
            service: Backend that runs batched extraction requests.
            model_config: Optional model tuning block sent with every request.
        """
        self.store = store
        self.cache = cache
        self.service = service
        self.model_config = model_config

    def fingerprint_cell(self, document: Document, column: Column) -> str:
        """Cache key of a cell under the current custom type set."""
        return fingerprint(document.id, column.id, document.text, column, self.store.custom_types)

    async def extract_for_columns(
        self,
        target_documents: Sequence[Document],
        target_columns: Sequence[Column],
    ) -> ExtractionOutcome:
        """Fill the cells of ``target_documents x target_columns``.

        Cache hits are merged straight away. All misses go out in a single
        request covering the union of documents and the union of columns
        with at least one miss; any cached cells this over-fetches are
        simply re-cached and re-merged.

        Args:
            target_documents: Documents to extract from.
            target_columns: Columns to fill.

        Returns:
            ExtractionOutcome describing hits and the issued request.

        Raises:
            UnknownTypeError: If a target column references a missing custom
                type. Raised before any state changes.
            RemoteCallError: If the batch failed. Loading flags are cleared
                and the matrix is left as it was.
        """
        outcome = ExtractionOutcome()
        custom_types = list(self.store.custom_types)
        columns = list(target_columns)

        # Fails closed before touching the matrix or the loading set
        compile_schema(columns, custom_types)

        documents = []
        for doc in target_documents:
            if doc.is_pending:
                outcome.skipped_documents.append(doc.id)
            else:
                documents.append(doc)
        if outcome.skipped_documents:
            logger.warning(
                f"Skipping {len(outcome.skipped_documents)} document(s) without text: "
                + ", ".join(outcome.skipped_documents)
            )

        if not documents or not columns:
            return outcome

        misses: list[Cell] = []
        for doc in documents:
            hits: dict[str, Any] = {}
            for column in columns:
                cached = self.cache.get(self.fingerprint_cell(doc, column))
                if cached is MISSING:
                    misses.append((doc.id, column.id))
                else:
                    hits[column.id] = cached
            if hits:
                self.store.matrix.merge_row(doc.id, hits)
                outcome.cache_hits += len(hits)

        if not misses:
            logger.debug(f"All {outcome.cache_hits} cells served from cache")
            return outcome

        miss_docs = {doc_id for doc_id, _ in misses}
        miss_cols = {col_id for _, col_id in misses}
        request_docs = _ordered_union(documents, miss_docs)
        request_cols = _ordered_union(columns, miss_cols)
        outcome.requested_documents = [d.id for d in request_docs]
        outcome.requested_columns = [c.id for c in request_cols]

        # Copies: cache keys and staleness checks use the inputs as sent
        request = ExtractionRequest(
            documents=[replace(doc) for doc in request_docs],
            columns=[replace(column) for column in request_cols],
            custom_types=custom_types,
            schema=compile_schema(request_cols, custom_types),
            model_config=self.model_config,
        )

        # Hits went straight from absent to present; only misses pass through loading
        self.store.loading.mark(misses)
        logger.info(
            f"Extracting {len(request_cols)} column(s) from {len(request_docs)} document(s) "
            f"({len(misses)} missing cells, {outcome.cache_hits} cache hits)"
        )
        try:
            response = await self.service.extract(request)
            outcome.cells_written = self._apply(request, response.results)
        except RemoteCallError as e:
            logger.error(f"Extraction batch failed: {e.message}")
            raise
        finally:
            self.store.loading.done(misses)

        logger.info(f"Extraction batch wrote {outcome.cells_written} cells")
        return outcome

    def _apply(self, request: ExtractionRequest, results: Sequence[Any]) -> int:
        """Write a successful response to the cache, then the matrix.

        Rows for documents outside the request and values for columns
        outside the request are ignored. Every row is decoded before anything
        is written, so a response is applied as a unit.

        Cache keys come from the request's own copies of its inputs. A value
        only reaches the matrix if its document and column still exist
        unchanged; results for anything removed or edited while the batch was
        in flight are cached but not merged.
        """
        docs_by_id = {doc.id: doc for doc in request.documents}
        decoded: list[tuple[Document, dict[str, Any]]] = []
        for result in results:
            doc = docs_by_id.get(result.document_id)
            if doc is None:
                logger.debug(f"Ignoring result for unrequested document {result.document_id}")
                continue
            row = decode_row(result.data, request.columns, request.custom_types)
            if row:
                decoded.append((doc, row))

        columns_by_id = {column.id: column for column in request.columns}
        live_documents = {doc.id: doc for doc in self.store.documents}
        live_columns = {column.id: column for column in self.store.columns}
        written = 0
        for doc, row in decoded:
            for column_id, value in row.items():
                key = fingerprint(
                    doc.id, column_id, doc.text, columns_by_id[column_id], request.custom_types
                )
                self.cache.set(key, value)

            live_doc = live_documents.get(doc.id)
            if live_doc is None or live_doc.text != doc.text:
                logger.debug(f"Dropping stale row for document {doc.id}")
                continue
            current = {
                column_id: value
                for column_id, value in row.items()
                if live_columns.get(column_id) == columns_by_id[column_id]
            }
            if len(current) < len(row):
                logger.debug(
                    f"Dropping {len(row) - len(current)} stale value(s) for document {doc.id}"
                )
            if current:
                self.store.matrix.merge_row(doc.id, current)
                written += len(current)
        return written

    async def extract_missing(self) -> ExtractionOutcome:
        """Fill the absent cells of the whole workspace.

        Only documents and columns with at least one absent cell are
        targeted, so a fully populated matrix never issues a request, even
        after unrelated custom type changes have moved its fingerprints.
        """
        documents = list(self.store.documents)
        columns = list(self.store.columns)
        absent = [
            (doc.id, column.id)
            for doc in documents
            for column in columns
            if not self.store.matrix.has(doc.id, column.id)
        ]
        return await self.extract_for_columns(
            _ordered_union(documents, {doc_id for doc_id, _ in absent}),
            _ordered_union(columns, {col_id for _, col_id in absent}),
        )

    async def extract_for_new_column(self, column: Column) -> ExtractionOutcome:
        """Fill a column for every document in the workspace."""
        return await self.extract_for_columns(list(self.store.documents), [column])

    async def extract_for_new_documents(
        self,
        documents: Sequence[Document],
        columns: Sequence[Column] | None = None,
    ) -> ExtractionOutcome:
        """Fill the given columns (default: all columns) for new documents."""
        if columns is None:
            columns = list(self.store.columns)
        return await self.extract_for_columns(documents, columns)
