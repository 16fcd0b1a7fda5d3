"""Session API for Gridmill.

An ``ExtractionSession`` bundles a workspace store with a cache and an
extraction backend and exposes the user-level actions. Each action that adds
documents or columns extracts the missing cells straight away.

Example:
    >>> session = ExtractionSession(service=LLMExtractionService())
    >>> await session.add_documents([Document("d1", "memo.txt", text)])
    >>> await session.add_column(Column("owner", "Owner", "Who owns the asset"))
    >>> session.store.matrix.get("d1", "owner")
"""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path

from gridmill.cache.store import CellCache, MemoryCache, get_cache
from gridmill.config.settings import get_settings
from gridmill.grinding.invalidation import InvalidationController
from gridmill.grinding.orchestrator import ExtractionOutcome, Orchestrator
from gridmill.grinding.service import ExtractionService, get_service
from gridmill.grinding.store import WorkspaceStore
from gridmill.grinding.types import Cardinality, Column, CustomType, Document


class ExtractionSession:
    """User-level actions over one workspace."""

    def __init__(
        self,
        store: WorkspaceStore | None = None,
        cache: CellCache | None = None,
        service: ExtractionService | None = None,
        model_config: dict | None = None,
    ):
        """Initialize the session.

        Args:
            store: Workspace state (a fresh one by default).
            cache: Result cache (an in-memory cache by default).
            service: Extraction backend (the configured one by default).
            model_config: Optional model tuning block sent with requests.
        """
        self.store = store or WorkspaceStore()
        self.cache = cache if cache is not None else MemoryCache()
        self.service = service or get_service()
        self.orchestrator = Orchestrator(self.store, self.cache, self.service, model_config)
        self.controller = InvalidationController(self.store, self.orchestrator)

    @classmethod
    def from_settings(
        cls,
        store: WorkspaceStore | None = None,
        service: ExtractionService | None = None,
    ) -> ExtractionSession:
        """Create a session using the persistent cache and backend from settings."""
        settings = get_settings()
        cache: CellCache
        if settings.cache.enabled:
            cache = get_cache(str(settings.cache.directory))
        else:
            cache = MemoryCache()
        return cls(
            store=store,
            cache=cache,
            service=service,
            model_config=settings.llm.model_config_params(),
        )

    # Documents

    async def add_documents(self, documents: Iterable[Document]) -> ExtractionOutcome:
        """Add documents and extract every existing column for them."""
        added = self.store.add_documents(documents)
        return await self.orchestrator.extract_for_new_documents(added)

    async def set_document_text(self, document_id: str, text: str) -> ExtractionOutcome:
        """Fill in a pending document's text and extract its cells."""
        doc = self.store.set_document_text(document_id, text)
        return await self.orchestrator.extract_for_new_documents([doc])

    def remove_document(self, document_id: str) -> None:
        self.store.remove_document(document_id)

    # Columns

    async def add_column(self, column: Column) -> ExtractionOutcome:
        """Add a column and extract it for every document."""
        self.store.add_column(column)
        return await self.orchestrator.extract_for_new_column(column)

    async def edit_column(
        self,
        column_id: str,
        name: str | None = None,
        description: str | None = None,
        cardinality: Cardinality | str | None = None,
    ) -> ExtractionOutcome:
        """Edit a column and re-extract it for every document."""
        return await self.controller.on_column_edit(
            column_id, name=name, description=description, cardinality=cardinality
        )

    def remove_column(self, column_id: str) -> Column:
        return self.controller.on_column_remove(column_id)

    # Custom types

    def define_type(self, custom_type: CustomType) -> CustomType:
        return self.store.add_custom_type(custom_type)

    async def redefine_type(
        self,
        old_name: str,
        new_definition: CustomType,
    ) -> dict[str, ExtractionOutcome]:
        return await self.controller.on_custom_type_redefine(old_name, new_definition)

    def remove_type(self, name: str) -> CustomType:
        return self.controller.on_custom_type_remove(name)

    # Maintenance

    async def refresh(self) -> ExtractionOutcome:
        """Extract every absent cell; cells already in the matrix are left alone."""
        return await self.orchestrator.extract_missing()

    def clear_cache(self) -> None:
        self.cache.clear()

    # Export

    def _layout(self) -> tuple[list[tuple[str, str]], list[str]]:
        documents = [(d.id, d.name) for d in self.store.documents]
        return documents, [c.id for c in self.store.columns]

    def export_csv(self, path: Path) -> None:
        """Export the matrix to CSV, one row per document."""
        documents, column_ids = self._layout()
        self.store.matrix.to_csv(path, documents, column_ids)

    def export_json(self, path: Path | None = None) -> str:
        """Export the matrix to JSON."""
        return self.store.matrix.to_json(path)
